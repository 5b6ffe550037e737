import logging

from library_api.core.audit import record_audit, sanitize_for_audit


def test_sanitize_drops_secrets():
    data = {"email": "a@example.com", "password": "x", "refreshToken": "y", "name": "A"}
    assert sanitize_for_audit(data) == {"email": "a@example.com", "name": "A"}
    assert sanitize_for_audit(None) is None


def test_record_audit_logs_one_line(caplog):
    with caplog.at_level(logging.INFO, logger="library_api.audit"):
        record_audit("UPDATE", "book", user_id="u1", resource_id="b1", correlation_id="req-1", data={"title": "T"})

    (rec,) = [r for r in caplog.records if r.name == "library_api.audit"]
    message = rec.getMessage()
    assert "action=UPDATE" in message
    assert "resource_id=b1" in message
    assert "correlation_id=req-1" in message
