"""create referral tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "referrers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("referral_code", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referral_code"),
    )
    op.create_index("ix_referrers_company", "referrers", ["company_id"], unique=False)
    op.create_index("ix_referrers_user", "referrers", ["user_id"], unique=False)

    op.create_table(
        "leads",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("company_name", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="new"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leads_company_status", "leads", ["company_id", "status"], unique=False)
    op.create_index("ix_leads_referrer", "leads", ["referrer_id"], unique=False)
    op.create_index("ix_leads_company_email", "leads", ["company_id", "email"], unique=False)

    op.create_table(
        "deals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deals_company_status", "deals", ["company_id", "status"], unique=False)
    op.create_index("ix_deals_lead", "deals", ["lead_id"], unique=False)
    op.create_index("ix_deals_referrer", "deals", ["referrer_id"], unique=False)

    op.create_table(
        "commission_ledger",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.Uuid(), nullable=False),
        sa.Column("deal_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(28, 10), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_commission_ledger_company_status", "commission_ledger", ["company_id", "status"], unique=False
    )
    op.create_index("ix_commission_ledger_deal", "commission_ledger", ["deal_id"], unique=False)
    op.create_index("ix_commission_ledger_referrer", "commission_ledger", ["referrer_id"], unique=False)

    op.create_table(
        "payouts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payouts_company_status", "payouts", ["company_id", "status"], unique=False)
    op.create_index("ix_payouts_referrer", "payouts", ["referrer_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_payouts_referrer", table_name="payouts")
    op.drop_index("ix_payouts_company_status", table_name="payouts")
    op.drop_table("payouts")
    op.drop_index("ix_commission_ledger_referrer", table_name="commission_ledger")
    op.drop_index("ix_commission_ledger_deal", table_name="commission_ledger")
    op.drop_index("ix_commission_ledger_company_status", table_name="commission_ledger")
    op.drop_table("commission_ledger")
    op.drop_index("ix_deals_referrer", table_name="deals")
    op.drop_index("ix_deals_lead", table_name="deals")
    op.drop_index("ix_deals_company_status", table_name="deals")
    op.drop_table("deals")
    op.drop_index("ix_leads_company_email", table_name="leads")
    op.drop_index("ix_leads_referrer", table_name="leads")
    op.drop_index("ix_leads_company_status", table_name="leads")
    op.drop_table("leads")
    op.drop_index("ix_referrers_user", table_name="referrers")
    op.drop_index("ix_referrers_company", table_name="referrers")
    op.drop_table("referrers")
