"""initial budget schema

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "budget_groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "forecast_type",
            sa.Enum("FIXED", "VARIABLE", "SAVINGS", name="forecasttype"),
            nullable=False,
            server_default="VARIABLE",
        ),
        sa.Column("is_catch_all", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("linked_bucket_ids", sa.JSON(), nullable=False),
        sa.Column("monthly_data", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "sub_categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("main_category_id", sa.String(36), nullable=False),
        sa.Column("budget_group_id", sa.String(36), nullable=True),
        sa.Column("is_savings", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "buckets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(36), nullable=False, server_default=""),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "type", sa.Enum("FIXED", "DAILY", "GOAL", name="buckettype"), nullable=False
        ),
        sa.Column("is_savings", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "payment_source",
            sa.Enum("INCOME", "BALANCE", name="paymentsource"),
            nullable=True,
        ),
        sa.Column("archived_date", sa.String(7), nullable=True),
        sa.Column("budget_group_id", sa.String(36), nullable=True),
        sa.Column("linked_goal_id", sa.String(36), nullable=True),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_date", sa.String(7), nullable=True),
        sa.Column("start_saving_date", sa.String(7), nullable=True),
        sa.Column("event_start_date", sa.Date(), nullable=True),
        sa.Column("event_end_date", sa.Date(), nullable=True),
        sa.Column("monthly_data", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "target_amount_cents >= 0", name="ck_buckets_target_amount_positive"
        ),
    )
    op.create_index("ix_buckets_group", "buckets", ["budget_group_id"])

    op.create_table(
        "budget_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("group_limits", sa.JSON(), nullable=False),
        sa.Column("sub_category_budgets", sa.JSON(), nullable=False),
        sa.Column("bucket_values", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "month_configs",
        sa.Column("month_key", sa.String(7), primary_key=True),
        sa.Column(
            "template_id",
            sa.String(36),
            sa.ForeignKey("budget_templates.id"),
            nullable=False,
        ),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("group_overrides", sa.JSON(), nullable=False),
        sa.Column("sub_category_overrides", sa.JSON(), nullable=False),
        sa.Column("bucket_overrides", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(36), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "kind",
            sa.Enum("EXPENSE", "TRANSFER", "INCOME", name="transactionkind"),
            nullable=True,
        ),
        sa.Column("bucket_id", sa.String(36), nullable=True),
        sa.Column("category_sub_id", sa.String(36), nullable=True),
        sa.Column("linked_expense_id", sa.String(36), nullable=True),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index(
        "ix_transactions_bucket_date", "transactions", ["bucket_id", "date"]
    )

    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payday", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("payday BETWEEN 1 AND 31", name="ck_app_settings_payday_range"),
    )


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_index("ix_transactions_bucket_date", table_name="transactions")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("month_configs")
    op.drop_table("budget_templates")
    op.drop_index("ix_buckets_group", table_name="buckets")
    op.drop_table("buckets")
    op.drop_table("sub_categories")
    op.drop_table("budget_groups")
