"""Mutations of the month-maps that ``resolution`` reads.

Every function is pure: it takes the current in-memory representation and
returns an updated copy for the caller to persist.
"""

from typing import Optional, Sequence

from models import BucketType, DeletionScope, PaymentSource
from periods import next_month_key, parse_month_key
from resolution import resolve_bucket_data, resolve_group_data
from schemas import (
    Bucket,
    BucketData,
    BudgetGroup,
    BudgetGroupData,
    BudgetTemplate,
    MonthConfig,
    SubCategory,
    Transaction,
)


def apply_deletion_scope(
    bucket: Bucket,
    month_key: str,
    scope: DeletionScope,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Optional[Bucket]:
    """Remove ``bucket`` for ``month_key`` with the given propagation scope.

    Returns ``None`` for ``ALL``: the bucket ceases to exist and callers must
    drop it (see ``release_transactions``).
    """
    parse_month_key(month_key)
    if scope == DeletionScope.all:
        return None

    current = resolve_bucket_data(bucket, month_key, templates, configs).value
    current = current or BucketData()
    monthly = dict(bucket.monthly_data)
    monthly[month_key] = current.model_copy(
        update={"amount_cents": 0, "daily_amount_cents": 0, "is_explicitly_deleted": True}
    )

    if scope == DeletionScope.this_month:
        # Fence post: without it the stop at month_key would be inherited by
        # every later month. Payouts never inherit, so they need none.
        following = next_month_key(month_key)
        if following not in monthly and bucket.linked_goal_id is None:
            monthly[following] = current.model_copy(
                update={"is_explicitly_deleted": False}
            )
    elif scope == DeletionScope.this_and_future:
        for key, entry in bucket.monthly_data.items():
            if key > month_key:
                monthly[key] = entry.model_copy(
                    update={
                        "amount_cents": 0,
                        "daily_amount_cents": 0,
                        "is_explicitly_deleted": True,
                    }
                )
    else:
        raise ValueError(f"Unknown deletion scope: {scope!r}")

    return bucket.model_copy(update={"monthly_data": monthly})


def apply_group_deletion_scope(
    group: BudgetGroup,
    month_key: str,
    scope: DeletionScope,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Optional[BudgetGroup]:
    parse_month_key(month_key)
    if scope == DeletionScope.all:
        return None

    current = resolve_group_data(group, month_key, templates, configs).value
    current = current or BudgetGroupData()
    monthly = dict(group.monthly_data)
    monthly[month_key] = BudgetGroupData(limit_cents=0, is_explicitly_deleted=True)

    if scope == DeletionScope.this_month:
        following = next_month_key(month_key)
        if following not in monthly:
            monthly[following] = BudgetGroupData(limit_cents=current.limit_cents)
    elif scope == DeletionScope.this_and_future:
        for key in group.monthly_data:
            if key > month_key:
                monthly[key] = BudgetGroupData(limit_cents=0, is_explicitly_deleted=True)
    else:
        raise ValueError(f"Unknown deletion scope: {scope!r}")

    return group.model_copy(update={"monthly_data": monthly})


def release_transactions(
    transactions: Sequence[Transaction], bucket_id: str
) -> list[Transaction]:
    """Transactions that referenced ``bucket_id``, with the reference cleared."""
    return [
        txn.model_copy(update={"bucket_id": None})
        for txn in transactions
        if txn.bucket_id == bucket_id
    ]


def release_sub_categories(
    sub_categories: Sequence[SubCategory], group_id: str
) -> list[SubCategory]:
    return [
        sub.model_copy(update={"budget_group_id": None})
        for sub in sub_categories
        if sub.budget_group_id == group_id
    ]


def confirm_bucket_value(
    bucket: Bucket,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Bucket:
    """Pin an inherited value at ``month_key`` so earlier edits stop cascading past it."""
    resolved = resolve_bucket_data(bucket, month_key, templates, configs)
    if not resolved.is_inherited or resolved.value is None:
        return bucket
    monthly = dict(bucket.monthly_data)
    monthly[month_key] = resolved.value.model_copy(update={"is_explicitly_deleted": False})
    return bucket.model_copy(update={"monthly_data": monthly})


def confirm_group_limit(
    group: BudgetGroup,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> BudgetGroup:
    resolved = resolve_group_data(group, month_key, templates, configs)
    if not resolved.is_inherited or resolved.value is None:
        return group
    monthly = dict(group.monthly_data)
    monthly[month_key] = BudgetGroupData(limit_cents=resolved.value.limit_cents)
    return group.model_copy(update={"monthly_data": monthly})


def set_bucket_month(bucket: Bucket, month_key: str, data: BucketData) -> Bucket:
    parse_month_key(month_key)
    monthly = dict(bucket.monthly_data)
    monthly[month_key] = data.model_copy(update={"is_explicitly_deleted": False})
    return bucket.model_copy(update={"monthly_data": monthly})


def archive_bucket(bucket: Bucket, month_key: str) -> Bucket:
    parse_month_key(month_key)
    return bucket.model_copy(update={"archived_date": month_key})


def copy_from_next_month(buckets: Sequence[Bucket], month_key: str) -> list[Bucket]:
    """Seed ``month_key`` from the following month for buckets that lack an entry.

    Only the changed buckets are returned.
    """
    following = next_month_key(month_key)
    updated: list[Bucket] = []
    for bucket in buckets:
        if month_key in bucket.monthly_data:
            continue
        source = bucket.monthly_data.get(following)
        if source is None or source.is_explicitly_deleted:
            continue
        monthly = dict(bucket.monthly_data)
        monthly[month_key] = source.model_copy()
        updated.append(bucket.model_copy(update={"monthly_data": monthly}))
    return updated


def goal_payout_bucket(
    goal: Bucket, payout_id: str, existing: Optional[Bucket] = None
) -> Bucket:
    """FIXED bucket spending a goal's target from the balance in its target month.

    ``existing`` is the goal's current payout, which is rewritten in place.
    """
    if goal.type != BucketType.goal:
        raise ValueError("Only goal buckets can be paid out")
    if not goal.target_date:
        raise ValueError(f"Goal {goal.id} has no target date to pay out in")
    base = existing or Bucket(
        id=payout_id,
        account_id=goal.account_id,
        type=BucketType.fixed,
        budget_group_id=goal.budget_group_id,
        linked_goal_id=goal.id,
    )
    return base.model_copy(
        update={
            "name": f"Payout: {goal.name}",
            "is_savings": False,
            "payment_source": PaymentSource.balance,
            "target_amount_cents": 0,
            "monthly_data": {
                goal.target_date: BucketData(amount_cents=goal.target_amount_cents)
            },
        }
    )
