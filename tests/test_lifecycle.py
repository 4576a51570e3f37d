from datetime import date

import pytest

from lifecycle import (
    apply_deletion_scope,
    apply_group_deletion_scope,
    archive_bucket,
    confirm_bucket_value,
    confirm_group_limit,
    copy_from_next_month,
    goal_payout_bucket,
    release_sub_categories,
    release_transactions,
)
from models import BucketType, DeletionScope, PaymentSource
from resolution import ResolutionSource, resolve_bucket_data, resolve_group_data
from schemas import (
    Bucket,
    BucketData,
    BudgetGroup,
    BudgetGroupData,
    BudgetTemplate,
    SubCategory,
    Transaction,
)


def _rent(monthly_data) -> Bucket:
    return Bucket(id="rent", name="Rent", type=BucketType.fixed, monthly_data=monthly_data)


def test_this_month_deletion_writes_fence_post() -> None:
    bucket = _rent({"2024-01": BucketData(amount_cents=100)})
    updated = apply_deletion_scope(bucket, "2024-01", DeletionScope.this_month)

    at_month = resolve_bucket_data(updated, "2024-01")
    assert at_month.value is None

    following = resolve_bucket_data(updated, "2024-02")
    assert following.value.amount_cents == 100
    assert following.is_inherited is False

    assert resolve_bucket_data(updated, "2024-09").value.amount_cents == 100
    # The input is left untouched.
    assert bucket.monthly_data["2024-01"].is_explicitly_deleted is False


def test_this_month_deletion_of_inherited_value_clones_inherited_data() -> None:
    bucket = Bucket(
        id="lunch",
        type=BucketType.daily,
        monthly_data={
            "2023-10": BucketData(daily_amount_cents=135, active_days=[1, 2, 3, 4, 5])
        },
    )
    updated = apply_deletion_scope(bucket, "2024-01", DeletionScope.this_month)
    deleted = updated.monthly_data["2024-01"]
    assert deleted.is_explicitly_deleted is True
    assert deleted.daily_amount_cents == 0
    assert deleted.active_days == [1, 2, 3, 4, 5]

    fence = updated.monthly_data["2024-02"]
    assert fence.daily_amount_cents == 135
    assert fence.is_explicitly_deleted is False
    assert resolve_bucket_data(updated, "2023-12").value.daily_amount_cents == 135


def test_this_month_deletion_keeps_existing_next_entry() -> None:
    bucket = _rent(
        {
            "2024-01": BucketData(amount_cents=100),
            "2024-02": BucketData(amount_cents=250),
        }
    )
    updated = apply_deletion_scope(bucket, "2024-01", DeletionScope.this_month)
    assert updated.monthly_data["2024-02"].amount_cents == 250


def test_this_and_future_deletion_cuts_off_series() -> None:
    bucket = _rent(
        {
            "2023-06": BucketData(amount_cents=80),
            "2024-03": BucketData(amount_cents=120),
            "2024-06": BucketData(amount_cents=150),
        }
    )
    updated = apply_deletion_scope(bucket, "2024-01", DeletionScope.this_and_future)

    for month in ("2024-01", "2024-02", "2024-03", "2024-05", "2024-06", "2025-01"):
        assert resolve_bucket_data(updated, month).value is None

    assert resolve_bucket_data(updated, "2023-12").value.amount_cents == 80
    assert updated.archived_date is None
    assert "2024-02" not in updated.monthly_data

    restarted = updated.model_copy(
        update={
            "monthly_data": {
                **updated.monthly_data,
                "2024-09": BucketData(amount_cents=200),
            }
        }
    )
    assert resolve_bucket_data(restarted, "2024-10").value.amount_cents == 200


def test_all_scope_removes_bucket_and_releases_transactions() -> None:
    bucket = _rent({"2024-01": BucketData(amount_cents=100)})
    assert apply_deletion_scope(bucket, "2024-01", DeletionScope.all) is None

    txns = [
        Transaction(id="a", date=date(2024, 1, 2), amount_cents=-100, bucket_id="rent"),
        Transaction(id="b", date=date(2024, 1, 3), amount_cents=-50, bucket_id="food"),
    ]
    released = release_transactions(txns, "rent")
    assert [t.id for t in released] == ["a"]
    assert released[0].bucket_id is None
    assert txns[0].bucket_id == "rent"


def test_confirm_pins_inherited_value() -> None:
    bucket = _rent({"2024-01": BucketData(amount_cents=100)})
    confirmed = confirm_bucket_value(bucket, "2024-04")
    resolved = resolve_bucket_data(confirmed, "2024-04")
    assert resolved.is_inherited is False
    assert resolved.value.amount_cents == 100

    # Confirming an already explicit month is a no-op.
    assert confirm_bucket_value(confirmed, "2024-04") is confirmed


def test_confirm_pins_templated_value() -> None:
    bucket = _rent({})
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    confirmed = confirm_bucket_value(bucket, "2024-04", [template], [])
    resolved = resolve_bucket_data(confirmed, "2024-04", [template], [])
    assert resolved.source == ResolutionSource.explicit
    assert resolved.value.amount_cents == 500


def test_group_deletion_scopes() -> None:
    group = BudgetGroup(
        id="g1", name="Food", monthly_data={"2024-01": BudgetGroupData(limit_cents=4_000)}
    )
    this_month = apply_group_deletion_scope(group, "2024-03", DeletionScope.this_month)
    assert resolve_group_data(this_month, "2024-03").value is None
    assert resolve_group_data(this_month, "2024-04").value.limit_cents == 4_000

    future = apply_group_deletion_scope(group, "2024-03", DeletionScope.this_and_future)
    assert resolve_group_data(future, "2024-08").value is None
    assert apply_group_deletion_scope(group, "2024-03", DeletionScope.all) is None

    subs = [
        SubCategory(id="s1", main_category_id="m", budget_group_id="g1"),
        SubCategory(id="s2", main_category_id="m", budget_group_id="g2"),
    ]
    released = release_sub_categories(subs, "g1")
    assert [(s.id, s.budget_group_id) for s in released] == [("s1", None)]


def test_confirm_group_limit() -> None:
    group = BudgetGroup(
        id="g1", monthly_data={"2024-01": BudgetGroupData(limit_cents=4_000)}
    )
    confirmed = confirm_group_limit(group, "2024-05")
    assert confirmed.monthly_data["2024-05"].limit_cents == 4_000
    assert resolve_group_data(confirmed, "2024-05").is_inherited is False


def test_archive_and_copy_from_next_month() -> None:
    bucket = _rent({"2024-02": BucketData(amount_cents=300)})
    assert archive_bucket(bucket, "2024-05").archived_date == "2024-05"

    already = _rent({"2024-01": BucketData(amount_cents=10)}).model_copy(
        update={"id": "other"}
    )
    stopped = _rent({"2024-02": BucketData(is_explicitly_deleted=True)}).model_copy(
        update={"id": "stopped"}
    )
    updated = copy_from_next_month([bucket, already, stopped], "2024-01")
    assert [b.id for b in updated] == ["rent"]
    assert updated[0].monthly_data["2024-01"].amount_cents == 300


def test_goal_payout_spends_target_in_target_month() -> None:
    goal = Bucket(
        id="trip",
        name="Trip",
        account_id="acc",
        type=BucketType.goal,
        payment_source=PaymentSource.income,
        target_amount_cents=12_000,
        start_saving_date="2024-01",
        target_date="2024-07",
    )
    payout = goal_payout_bucket(goal, "payout")
    assert payout.id == "payout"
    assert payout.name == "Payout: Trip"
    assert payout.account_id == "acc"
    assert payout.linked_goal_id == "trip"
    assert payout.monthly_data == {"2024-07": BucketData(amount_cents=12_000)}

    moved = goal.model_copy(update={"target_date": "2024-09"})
    rewritten = goal_payout_bucket(moved, "unused", payout)
    assert rewritten.id == "payout"
    assert list(rewritten.monthly_data) == ["2024-09"]

    with pytest.raises(ValueError, match="no target date"):
        goal_payout_bucket(goal.model_copy(update={"target_date": None}), "x")
    with pytest.raises(ValueError, match="Only goal buckets"):
        goal_payout_bucket(payout, "x")


def test_deleting_a_payout_month_writes_no_fence_post() -> None:
    payout = Bucket(
        id="payout",
        type=BucketType.fixed,
        linked_goal_id="trip",
        monthly_data={"2024-07": BucketData(amount_cents=12_000)},
    )
    updated = apply_deletion_scope(payout, "2024-07", DeletionScope.this_month)
    assert list(updated.monthly_data) == ["2024-07"]
    assert resolve_bucket_data(updated, "2024-08").value is None
