"""cryptoorder table

Baseline for managed deployments. Local/dev databases are created by
SQLModel.metadata.create_all(engine) at startup and match this schema.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel  # noqa: F401


revision: str = "0001_initial_models"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cryptoorder",
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("asset", sa.String(), nullable=False),
        sa.Column("network", sa.String(), nullable=False),
        sa.Column("fiat_amount", sa.Float(), nullable=False),
        sa.Column("fiat_currency", sa.String(), nullable=False),
        sa.Column("fiat_amount_usd", sa.Float(), nullable=False),
        sa.Column("crypto_amount", sa.String(), nullable=False),
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("country", sa.String(), nullable=False),
        sa.Column("payment_channel", sa.String(), nullable=True),
        sa.Column("card_last4", sa.String(length=4), nullable=True),
        sa.Column("card_holder", sa.String(), nullable=True),
        sa.Column("payment_id", sa.String(), nullable=True),
        sa.Column("auth_code", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("tx_hash", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("order_id"),
    )
    op.create_index("ix_cryptoorder_status", "cryptoorder", ["status"])
    op.create_index("ix_cryptoorder_payment_id", "cryptoorder", ["payment_id"])
    op.create_index("ix_cryptoorder_created_at", "cryptoorder", ["created_at"])


def downgrade() -> None:
    # Orders are an audit trail; no destructive downgrade.
    pass
