from datetime import date
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import (
    BucketType,
    BudgetTarget,
    ForecastType,
    LimitMode,
    PaymentSource,
    TransactionKind,
)

MonthKey = Annotated[str, Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")]
Weekday = Annotated[int, Field(ge=0, le=6)]


class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def check_goal_target(bucket_type, payment_source, target_amount_cents: int) -> None:
    if (
        bucket_type == BucketType.goal
        and payment_source == PaymentSource.income
        and target_amount_cents <= 0
    ):
        raise ValueError("Income-funded goals need a positive target amount")


class BucketData(DomainModel):
    amount_cents: int = 0
    daily_amount_cents: int = 0
    # 0 = Sunday ... 6 = Saturday
    active_days: list[Weekday] = Field(default_factory=list)
    is_explicitly_deleted: bool = False

    @field_validator("active_days")
    @classmethod
    def _normalize_days(cls, value: list[int]) -> list[int]:
        return sorted(set(value))


class BudgetGroupData(DomainModel):
    limit_cents: int = 0
    is_explicitly_deleted: bool = False


class Bucket(DomainModel):
    id: str
    account_id: str = ""
    name: str = ""
    type: BucketType
    is_savings: bool = False
    payment_source: Optional[PaymentSource] = None
    archived_date: Optional[MonthKey] = None
    budget_group_id: Optional[str] = None
    linked_goal_id: Optional[str] = None
    monthly_data: dict[MonthKey, BucketData] = Field(default_factory=dict)
    target_amount_cents: int = 0
    target_date: Optional[MonthKey] = None
    start_saving_date: Optional[MonthKey] = None
    event_start_date: Optional[date] = None
    event_end_date: Optional[date] = None


class BudgetGroup(DomainModel):
    id: str
    name: str = ""
    forecast_type: ForecastType = ForecastType.variable
    is_catch_all: bool = False
    linked_bucket_ids: list[str] = Field(default_factory=list)
    monthly_data: dict[MonthKey, BudgetGroupData] = Field(default_factory=dict)


class SubCategory(DomainModel):
    id: str
    name: str = ""
    main_category_id: str
    budget_group_id: Optional[str] = None
    is_savings: bool = False


class BudgetTemplate(DomainModel):
    id: str
    name: str
    is_default: bool = False
    group_limits: dict[str, int] = Field(default_factory=dict)
    sub_category_budgets: dict[str, int] = Field(default_factory=dict)
    bucket_values: dict[str, BucketData] = Field(default_factory=dict)


class MonthConfig(DomainModel):
    month_key: MonthKey
    template_id: str
    is_locked: bool = False
    group_overrides: dict[str, int] = Field(default_factory=dict)
    sub_category_overrides: dict[str, int] = Field(default_factory=dict)
    bucket_overrides: dict[str, BucketData] = Field(default_factory=dict)


class Transaction(DomainModel):
    id: str
    account_id: str = ""
    date: date
    amount_cents: int
    description: str = ""
    kind: Optional[TransactionKind] = None
    bucket_id: Optional[str] = None
    category_sub_id: Optional[str] = None
    linked_expense_id: Optional[str] = None
    is_hidden: bool = False


class BudgetSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payday: int = Field(default=25, ge=1, le=31)
    buckets: list[Bucket] = Field(default_factory=list)
    budget_groups: list[BudgetGroup] = Field(default_factory=list)
    sub_categories: list[SubCategory] = Field(default_factory=list)
    budget_templates: list[BudgetTemplate] = Field(default_factory=list)
    month_configs: list[MonthConfig] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _goals_have_targets(self) -> "BudgetSnapshot":
        for bucket in self.buckets:
            try:
                check_goal_target(
                    bucket.type, bucket.payment_source, bucket.target_amount_cents
                )
            except ValueError as exc:
                raise ValueError(f"Bucket {bucket.id}: {exc}") from exc
        return self


class BucketIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    account_id: str = ""
    type: BucketType
    is_savings: bool = False
    payment_source: Optional[PaymentSource] = None
    budget_group_id: Optional[str] = None
    month: MonthKey
    data: BucketData = Field(default_factory=BucketData)
    target_amount_cents: int = Field(default=0, ge=0)
    target_date: Optional[MonthKey] = None
    start_saving_date: Optional[MonthKey] = None
    event_start_date: Optional[date] = None
    event_end_date: Optional[date] = None

    @model_validator(mode="after")
    def _goal_has_target(self) -> "BucketIn":
        check_goal_target(self.type, self.payment_source, self.target_amount_cents)
        return self


class BudgetGroupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    month: MonthKey
    limit_cents: int = Field(default=0, ge=0)
    forecast_type: ForecastType = ForecastType.variable
    is_catch_all: bool = False


class SubCategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    main_category_id: str
    budget_group_id: Optional[str] = None
    is_savings: bool = False


class TransactionIn(BaseModel):
    account_id: str = ""
    date: date
    amount_cents: int
    description: str = Field(default="", max_length=200)
    kind: Optional[TransactionKind] = None
    bucket_id: Optional[str] = None
    category_sub_id: Optional[str] = None
    linked_expense_id: Optional[str] = None
    is_hidden: bool = False


class TemplateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    source_month: MonthKey


class TemplateRenameIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)


class BudgetLimitIn(BaseModel):
    target: BudgetTarget
    entity_id: str
    mode: LimitMode = LimitMode.override
    amount_cents: int = Field(default=0, ge=0)
    bucket_data: Optional[BucketData] = None


class BudgetOverrideClearIn(BaseModel):
    target: BudgetTarget
    entity_id: str


class PaydayIn(BaseModel):
    payday: int = Field(..., ge=1, le=31)
