from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from models import BucketType, PaymentSource, TransactionKind
from periods import (
    BudgetInterval,
    month_index,
    parse_month_key,
    resolve_interval,
    shift_month,
)
from resolution import resolve_bucket_data
from schemas import Bucket, BudgetTemplate, MonthConfig, Transaction


class UndefinedGoalContribution(ValueError):
    pass


def _to_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def reimbursement_map(transactions: Iterable[Transaction]) -> dict[str, int]:
    reimbursed: dict[str, int] = {}
    for txn in transactions:
        if txn.is_hidden or not txn.linked_expense_id:
            continue
        reimbursed[txn.linked_expense_id] = (
            reimbursed.get(txn.linked_expense_id, 0) + txn.amount_cents
        )
    return reimbursed


def effective_amount(txn: Transaction, reimbursed: dict[str, int]) -> int:
    # A reimbursement nets out its expense and counts nothing on its own.
    if txn.linked_expense_id:
        return 0
    return txn.amount_cents + reimbursed.get(txn.id, 0)


def _is_expense(txn: Transaction) -> bool:
    if txn.kind is not None:
        return txn.kind == TransactionKind.expense
    return txn.amount_cents < 0


def bucket_spend(
    bucket_id: str,
    transactions: Sequence[Transaction],
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    before: Optional[date] = None,
) -> int:
    """Absolute, reimbursement-adjusted expense total booked against a bucket."""
    reimbursed = reimbursement_map(transactions)
    total = 0
    for txn in transactions:
        if txn.is_hidden or txn.bucket_id != bucket_id or not _is_expense(txn):
            continue
        if before is not None and not txn.date < before:
            continue
        if start is not None and txn.date < start:
            continue
        if end is not None and txn.date > end:
            continue
        total += abs(effective_amount(txn, reimbursed))
    return total


def count_active_days(
    interval: BudgetInterval, active_days: Iterable[int], *, until: Optional[date] = None
) -> int:
    weekdays = set(active_days)
    count = 0
    for day in interval.days():
        if until is not None and day > until:
            break
        # isoweekday: Monday=1 .. Sunday=7, stored days use Sunday=0.
        if day.isoweekday() % 7 in weekdays:
            count += 1
    return count


def calculate_fixed_bucket_cost(
    bucket: Bucket,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> int:
    if bucket.type != BucketType.fixed:
        return 0
    resolved = resolve_bucket_data(bucket, month_key, templates, configs)
    if resolved.value is None:
        return 0
    return resolved.value.amount_cents


def calculate_daily_bucket_cost(
    bucket: Bucket,
    month_key: str,
    payday: int,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> int:
    if bucket.type != BucketType.daily:
        return 0
    interval = resolve_interval(month_key, payday)
    resolved = resolve_bucket_data(bucket, month_key, templates, configs)
    if resolved.value is None:
        return 0
    data = resolved.value
    return count_active_days(interval, data.active_days) * data.daily_amount_cents


def calculate_daily_bucket_cost_so_far(
    bucket: Bucket,
    month_key: str,
    payday: int,
    today: date,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> int:
    if bucket.type != BucketType.daily:
        return 0
    interval = resolve_interval(month_key, payday)
    if today < interval.start:
        return 0
    resolved = resolve_bucket_data(bucket, month_key, templates, configs)
    if resolved.value is None:
        return 0
    data = resolved.value
    days = count_active_days(interval, data.active_days, until=today)
    return days * data.daily_amount_cents


def calculate_goal_saving_cost(bucket: Bucket, month_key: str) -> int:
    """Monthly contribution from income towards a goal.

    The target is spread evenly from ``start_saving_date`` up to (excluding)
    ``target_date``. Months with an explicit entry count their actual amount,
    so under- or over-paying earlier months re-plans the rate of the rest.
    """
    if bucket.type != BucketType.goal:
        return 0
    if bucket.payment_source != PaymentSource.income:
        return 0
    if bucket.target_amount_cents <= 0:
        raise UndefinedGoalContribution(
            f"Goal {bucket.id} has no positive target amount to save towards"
        )
    current = month_index(month_key)
    if not bucket.start_saving_date or not bucket.target_date:
        return 0
    start = month_index(bucket.start_saving_date)
    target = month_index(bucket.target_date)
    if current < start or current >= target:
        return 0
    if bucket.archived_date and current > month_index(bucket.archived_date):
        return 0

    specific = bucket.monthly_data.get(month_key)
    if specific is not None:
        if specific.is_explicitly_deleted:
            return 0
        if specific.amount_cents > 0:
            return specific.amount_cents

    goal = Decimal(bucket.target_amount_cents)
    base_rate = goal / (target - start)
    delta = Decimal(0)
    for offset in range(current - start):
        past = bucket.monthly_data.get(shift_month(bucket.start_saving_date, offset))
        if past is None:
            continue
        if past.is_explicitly_deleted:
            actual = Decimal(0)
        else:
            actual = Decimal(past.amount_cents) if past.amount_cents else base_rate
        delta += actual - base_rate

    saved_so_far = (current - start) * base_rate + delta
    rate = (goal - saved_so_far) / (target - current)
    return max(0, _to_cents(rate))


def calculate_saved_amount(bucket: Bucket, month_key: str) -> int:
    """Total contributed from the start month through ``month_key``."""
    if bucket.type != BucketType.goal:
        return 0
    if not bucket.start_saving_date or not bucket.target_date:
        return 0
    if bucket.payment_source == PaymentSource.balance:
        return bucket.target_amount_cents
    last = month_index(month_key)
    if bucket.archived_date:
        last = min(last, month_index(bucket.archived_date))
    last = min(last, month_index(bucket.target_date) - 1)
    total = 0
    key = bucket.start_saving_date
    while month_index(key) <= last:
        total += calculate_goal_saving_cost(bucket, key)
        key = shift_month(key, 1)
    return total


@dataclass(frozen=True)
class GoalCost:
    saving_cents: int
    consumption_cents: int
    spent_cents: int
    remaining_cents: int
    is_active: bool

    @property
    def total_cents(self) -> int:
        return self.saving_cents + self.consumption_cents


def _in_goal_window(bucket: Bucket, month_key: str, interval: BudgetInterval) -> bool:
    if bucket.start_saving_date and bucket.target_date:
        if bucket.start_saving_date <= month_key <= bucket.target_date:
            return True
    if bucket.event_start_date and bucket.event_end_date:
        if (
            bucket.event_start_date <= interval.end
            and bucket.event_end_date >= interval.start
        ):
            return True
    return False


def goal_cost_breakdown(
    bucket: Bucket,
    month_key: str,
    payday: int,
    transactions: Sequence[Transaction] = (),
) -> GoalCost:
    if bucket.type != BucketType.goal:
        return GoalCost(0, 0, 0, 0, False)
    interval = resolve_interval(month_key, payday)
    saving = calculate_goal_saving_cost(bucket, month_key)

    past_spent = bucket_spend(bucket.id, transactions, before=interval.start)
    spent = bucket_spend(bucket.id, transactions, start=interval.start, end=interval.end)
    remaining = max(0, bucket.target_amount_cents - past_spent)

    is_active = (remaining > 0 and _in_goal_window(bucket, month_key, interval)) or spent > 0
    consumption = 0
    if is_active:
        consumption = remaining
        if bucket.archived_date and month_key >= bucket.archived_date:
            consumption = min(remaining, spent)
    return GoalCost(
        saving_cents=saving,
        consumption_cents=consumption,
        spent_cents=spent,
        remaining_cents=remaining,
        is_active=is_active,
    )


def calculate_goal_bucket_cost(
    bucket: Bucket,
    month_key: str,
    payday: int,
    transactions: Sequence[Transaction] = (),
) -> int:
    return goal_cost_breakdown(bucket, month_key, payday, transactions).total_cents


def calculate_bucket_cost(
    bucket: Bucket,
    month_key: str,
    payday: int,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
    transactions: Sequence[Transaction] = (),
) -> int:
    parse_month_key(month_key)
    if bucket.type == BucketType.fixed:
        return calculate_fixed_bucket_cost(bucket, month_key, templates, configs)
    if bucket.type == BucketType.daily:
        return calculate_daily_bucket_cost(bucket, month_key, payday, templates, configs)
    return calculate_goal_bucket_cost(bucket, month_key, payday, transactions)
