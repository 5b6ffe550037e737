"""library schema: users, categories, authors, books, loans, reservations

Revision ID: 3f9a1c2d7e10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

from alembic_helpers.library_ops import (
    create_authors,
    create_books,
    create_categories,
    create_loans_and_reservations,
    create_users,
    drop_all,
)

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7e10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    create_users()
    create_categories()
    create_authors()
    create_books()
    create_loans_and_reservations()


def downgrade() -> None:
    drop_all()
