"""Create subscription ledger tables

Revision ID: 20261017_000001
Revises: None
Create Date: 2026-10-17

Ledger configuration, append-only payment history, per-subscriber
accounts and the payment event outbox. Token amounts are decimal text.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ledger_states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner", sa.String(128), nullable=False),
        sa.Column("fee_collector", sa.String(128), nullable=False),
        sa.Column("fee_amount", sa.String(80), nullable=True),
        sa.Column("token_identifier", sa.String(128), nullable=True),
        sa.Column("total_collected", sa.String(80), nullable=False),
        sa.Column("custody_account", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_states"),
        sa.UniqueConstraint("custody_account", name="uq_ledger_states_custody_account"),
    )

    op.create_table(
        "subscription_payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("ledger_id", sa.Integer(), nullable=False),
        sa.Column("payer", sa.String(128), nullable=False),
        sa.Column("paid_at", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("period_count", sa.Integer(), nullable=False),
        sa.Column("nominal_fee", sa.String(80), nullable=False),
        sa.Column("amount_received", sa.String(80), nullable=False),
        sa.Column("token_identifier", sa.String(128), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_subscription_payments"),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["ledger_states.id"],
            name="fk_subscription_payments_ledger_id",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("period_count >= 1", name="ck_subscription_payments_period_count_positive"),
        sa.CheckConstraint("expires_at > paid_at", name="ck_subscription_payments_expiry_after_payment"),
    )
    op.create_index("ix_subscription_payments_ledger_id", "subscription_payments", ["ledger_id"])
    op.create_index("ix_subscription_payments_payer", "subscription_payments", ["payer"])

    op.create_table(
        "subscriber_accounts",
        sa.Column("ledger_id", sa.Integer(), nullable=False),
        sa.Column("subscriber", sa.String(128), nullable=False),
        sa.Column("latest_payment_id", sa.Integer(), nullable=False),
        sa.Column("total_paid", sa.String(80), nullable=False),
        sa.PrimaryKeyConstraint("ledger_id", "subscriber", name="pk_subscriber_accounts"),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["ledger_states.id"],
            name="fk_subscriber_accounts_ledger_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["latest_payment_id"],
            ["subscription_payments.id"],
            name="fk_subscriber_accounts_latest_payment_id",
            ondelete="RESTRICT",
        ),
    )

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("ledger_id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=False),
        sa.Column("payer", sa.String(128), nullable=False),
        sa.Column("nominal_fee", sa.String(80), nullable=False),
        sa.Column("period_count", sa.Integer(), nullable=False),
        sa.Column("emitted_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_payment_events"),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["ledger_states.id"],
            name="fk_payment_events_ledger_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["payment_id"],
            ["subscription_payments.id"],
            name="fk_payment_events_payment_id",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("payment_id", name="uq_payment_events_payment_id"),
    )
    op.create_index("ix_payment_events_ledger_id", "payment_events", ["ledger_id"])


def downgrade() -> None:
    op.drop_index("ix_payment_events_ledger_id", table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_table("subscriber_accounts")
    op.drop_index("ix_subscription_payments_payer", table_name="subscription_payments")
    op.drop_index("ix_subscription_payments_ledger_id", table_name="subscription_payments")
    op.drop_table("subscription_payments")
    op.drop_table("ledger_states")
