from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class BucketType(str, Enum):
    fixed = "FIXED"
    daily = "DAILY"
    goal = "GOAL"


class PaymentSource(str, Enum):
    income = "INCOME"
    balance = "BALANCE"


class ForecastType(str, Enum):
    fixed = "FIXED"
    variable = "VARIABLE"
    savings = "SAVINGS"


class TransactionKind(str, Enum):
    expense = "EXPENSE"
    transfer = "TRANSFER"
    income = "INCOME"


class DeletionScope(str, Enum):
    this_month = "THIS_MONTH"
    this_and_future = "THIS_AND_FUTURE"
    all = "ALL"


class BudgetTarget(str, Enum):
    group = "GROUP"
    sub = "SUB"
    bucket = "BUCKET"


class LimitMode(str, Enum):
    template = "TEMPLATE"
    override = "OVERRIDE"


def _enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class BucketRecord(Base, TimestampMixin):
    __tablename__ = "buckets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[BucketType] = mapped_column(_enum(BucketType, "buckettype"), nullable=False)
    is_savings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_source: Mapped[Optional[PaymentSource]] = mapped_column(
        _enum(PaymentSource, "paymentsource")
    )
    archived_date: Mapped[Optional[str]] = mapped_column(String(7))
    budget_group_id: Mapped[Optional[str]] = mapped_column(String(36))
    linked_goal_id: Mapped[Optional[str]] = mapped_column(String(36))
    target_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_date: Mapped[Optional[str]] = mapped_column(String(7))
    start_saving_date: Mapped[Optional[str]] = mapped_column(String(7))
    event_start_date: Mapped[Optional[date]] = mapped_column(Date)
    event_end_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        Index("ix_buckets_group", "budget_group_id"),
        CheckConstraint(
            "target_amount_cents >= 0", name="ck_buckets_target_amount_positive"
        ),
    )


class BudgetGroupRecord(Base, TimestampMixin):
    __tablename__ = "budget_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    forecast_type: Mapped[ForecastType] = mapped_column(
        _enum(ForecastType, "forecasttype"), default=ForecastType.variable, nullable=False
    )
    is_catch_all: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    linked_bucket_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    monthly_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class SubCategoryRecord(Base, TimestampMixin):
    __tablename__ = "sub_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    main_category_id: Mapped[str] = mapped_column(String(36), nullable=False)
    budget_group_id: Mapped[Optional[str]] = mapped_column(String(36))
    is_savings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class BudgetTemplateRecord(Base, TimestampMixin):
    __tablename__ = "budget_templates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    group_limits: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    sub_category_budgets: Mapped[dict[str, int]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    bucket_values: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)


class MonthConfigRecord(Base, TimestampMixin):
    __tablename__ = "month_configs"

    month_key: Mapped[str] = mapped_column(String(7), primary_key=True)
    template_id: Mapped[str] = mapped_column(
        ForeignKey("budget_templates.id"), nullable=False
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    group_overrides: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    sub_category_overrides: Mapped[dict[str, int]] = mapped_column(
        JSON, default=dict, nullable=False
    )
    bucket_overrides: Mapped[dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )


class TransactionRecord(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False, default="")
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kind: Mapped[Optional[TransactionKind]] = mapped_column(
        _enum(TransactionKind, "transactionkind")
    )
    bucket_id: Mapped[Optional[str]] = mapped_column(String(36))
    category_sub_id: Mapped[Optional[str]] = mapped_column(String(36))
    linked_expense_id: Mapped[Optional[str]] = mapped_column(String(36))
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_bucket_date", "bucket_id", "date"),
    )


class AppSettingsRecord(Base, TimestampMixin):
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    payday: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("payday BETWEEN 1 AND 31", name="ck_app_settings_payday_range"),
    )
