"""One booking per payment intent.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NON_EMPTY = sa.text("payment_intent_id <> ''")


def upgrade() -> None:
    op.drop_index("ix_bookings_payment_intent_id", table_name="bookings")
    op.create_index(
        "uq_bookings_payment_intent_id",
        "bookings",
        ["payment_intent_id"],
        unique=True,
        postgresql_where=NON_EMPTY,
        sqlite_where=NON_EMPTY,
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_payment_intent_id", table_name="bookings")
    op.create_index("ix_bookings_payment_intent_id", "bookings", ["payment_intent_id"])
