from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("library_api.audit")

SENSITIVE_FIELDS = frozenset({"password", "password_hash", "refreshToken", "refresh_token"})


def sanitize_for_audit(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    return {k: v for k, v in data.items() if k not in SENSITIVE_FIELDS}


def record_audit(
    action: str,
    resource: str,
    *,
    user_id: str | None,
    resource_id: str | None = None,
    correlation_id: str | None = None,
    data: Any = None,
) -> None:
    """Emit one audit entry. Routes schedule this as a post-response task."""
    logger.info(
        "AUDIT action=%s resource=%s resource_id=%s user_id=%s correlation_id=%s data=%s",
        action,
        resource,
        resource_id,
        user_id,
        correlation_id,
        sanitize_for_audit(data),
    )


def schedule_audit(
    background_tasks,
    request,
    action: str,
    resource: str,
    *,
    user,
    resource_id: str | None = None,
    data: Any = None,
) -> None:
    background_tasks.add_task(
        record_audit,
        action,
        resource,
        user_id=getattr(user, "id", None),
        resource_id=resource_id,
        correlation_id=getattr(request.state, "request_id", None),
        data=data,
    )
