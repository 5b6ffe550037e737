from __future__ import annotations

from library_api.core.errors import NotFoundError
from library_api.models.loan import Loan
from library_api.models.user import User
from library_api.schemas.users import LoanOut
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_profile(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_loans(self, user_id: str) -> list[LoanOut]:
        self.get_profile(user_id)
        loans = (
            self.db.execute(
                select(Loan)
                .where(Loan.user_id == user_id)
                .options(selectinload(Loan.book))
                .order_by(Loan.loaned_at.desc())
            )
            .scalars()
            .all()
        )
        return [LoanOut.model_validate(loan) for loan in loans]
