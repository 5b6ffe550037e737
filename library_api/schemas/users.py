from __future__ import annotations

from datetime import datetime

from library_api.models.loan import LoanStatus
from library_api.schemas.common import CamelModel


class LoanBookOut(CamelModel):
    id: str
    title: str
    isbn: str | None


class LoanOut(CamelModel):
    id: str
    status: LoanStatus
    loaned_at: datetime
    due_date: datetime
    returned_at: datetime | None
    book: LoanBookOut


class LoanListData(CamelModel):
    loans: list[LoanOut]
    total: int
