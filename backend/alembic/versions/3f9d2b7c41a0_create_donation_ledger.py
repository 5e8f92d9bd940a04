"""create_donation_ledger

Revision ID: 3f9d2b7c41a0
Revises:
Create Date: 2026-10-19 10:12:31.418205

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9d2b7c41a0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

donation_status = sa.Enum(
    "WAITING", "TO_APPROVE", "COMMITTED", "PAYING", "PAID", name="donationstatus"
)
history_kind = sa.Enum(
    "NEW_DONATION",
    "COMMITTED_DELEGATION",
    "CAMPAIGN_TO_MILESTONE",
    "REGULAR_TRANSFER",
    name="historykind",
)
admin_type = sa.Enum("GIVER", "DAC", "CAMPAIGN", "MILESTONE", name="admintype")


def upgrade() -> None:
    """Create donation ledger tables."""
    op.create_table(
        "pledge_admins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", admin_type, nullable=False),
        sa.Column("type_id", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=42), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "milestones",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("mined", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "donations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("giver_address", sa.String(length=42), nullable=True),
        sa.Column("amount", sa.String(length=78), nullable=False),
        sa.Column("pledge_id", sa.String(length=78), nullable=False),
        sa.Column("owner", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("owner_type", sa.String(length=20), nullable=False),
        sa.Column("status", donation_status, nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("intended_project", sa.Integer(), nullable=True),
        sa.Column("intended_project_id", sa.String(length=255), nullable=True),
        sa.Column("intended_project_type", sa.String(length=20), nullable=True),
        sa.Column("delegate", sa.Integer(), nullable=True),
        sa.Column("delegate_id", sa.String(length=255), nullable=True),
        sa.Column("delegate_type", sa.String(length=20), nullable=True),
        sa.Column("commit_time", sa.DateTime(), nullable=True),
        sa.Column("tx_hash", sa.String(length=66), nullable=True),
        sa.Column("confirmations", sa.Integer(), nullable=False),
        sa.Column("required_confirmations", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_donations_pledge_id", "donations", ["pledge_id"])
    op.create_index("ix_donations_status", "donations", ["status"])
    op.create_index("ix_donations_tx_hash", "donations", ["tx_hash"])

    op.create_table(
        "donation_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("donation_id", sa.Uuid(), nullable=False),
        sa.Column("from_donation_id", sa.Uuid(), nullable=True),
        sa.Column("kind", history_kind, nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("owner_type", sa.String(length=20), nullable=False),
        sa.Column("from_owner_id", sa.String(length=255), nullable=True),
        sa.Column("from_owner_type", sa.String(length=20), nullable=True),
        sa.Column("delegate_id", sa.String(length=255), nullable=True),
        sa.Column("delegate_type", sa.String(length=20), nullable=True),
        sa.Column("amount", sa.String(length=78), nullable=False),
        sa.Column("tx_hash", sa.String(length=66), nullable=True),
        sa.Column("giver_address", sa.String(length=42), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["donation_id"], ["donations.id"]),
        sa.ForeignKeyConstraint(["from_donation_id"], ["donations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_donation_history_donation_id", "donation_history", ["donation_id"])
    op.create_index("ix_donation_history_kind", "donation_history", ["kind"])


def downgrade() -> None:
    """Drop donation ledger tables."""
    op.drop_index("ix_donation_history_kind", table_name="donation_history")
    op.drop_index("ix_donation_history_donation_id", table_name="donation_history")
    op.drop_table("donation_history")
    op.drop_index("ix_donations_tx_hash", table_name="donations")
    op.drop_index("ix_donations_status", table_name="donations")
    op.drop_index("ix_donations_pledge_id", table_name="donations")
    op.drop_table("donations")
    op.drop_table("milestones")
    op.drop_table("pledge_admins")
    donation_status.drop(op.get_bind(), checkfirst=True)
    history_kind.drop(op.get_bind(), checkfirst=True)
    admin_type.drop(op.get_bind(), checkfirst=True)
