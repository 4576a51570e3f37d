import pytest

from models import BucketType
from periods import InvalidMonthKey
from resolution import (
    ResolutionSource,
    resolve_bucket_data,
    resolve_effective,
    resolve_group_data,
    resolve_sub_category_budget,
    template_for_month,
)
from schemas import (
    Bucket,
    BucketData,
    BudgetGroup,
    BudgetGroupData,
    BudgetTemplate,
    MonthConfig,
    SubCategory,
)


def _bucket(monthly_data=None, bucket_type=BucketType.fixed) -> Bucket:
    return Bucket(id="rent", name="Rent", type=bucket_type, monthly_data=monthly_data or {})


def test_exact_entry_is_not_inherited() -> None:
    month_map = {"2024-01": BucketData(amount_cents=100)}
    resolved = resolve_effective(month_map, "2024-01")
    assert resolved.value.amount_cents == 100
    assert resolved.is_inherited is False
    assert resolved.source == ResolutionSource.explicit


def test_missing_month_inherits_nearest_earlier_entry() -> None:
    month_map = {
        "2023-11": BucketData(amount_cents=50),
        "2024-01": BucketData(amount_cents=100),
        "2024-06": BucketData(amount_cents=300),
    }
    resolved = resolve_effective(month_map, "2024-04")
    assert resolved.value.amount_cents == 100
    assert resolved.is_inherited is True

    later = resolve_effective(month_map, "2030-01")
    assert later.value.amount_cents == 300


def test_no_earlier_entry_resolves_to_nothing() -> None:
    resolved = resolve_effective({"2024-05": BucketData(amount_cents=1)}, "2024-04")
    assert resolved.value is None
    assert resolved.is_inherited is False
    assert resolved.source == ResolutionSource.none
    assert resolved.stopped is False


def test_deleted_entry_stops_the_series() -> None:
    month_map = {
        "2024-01": BucketData(amount_cents=100),
        "2024-03": BucketData(is_explicitly_deleted=True),
    }
    at_stop = resolve_effective(month_map, "2024-03")
    assert at_stop.value is None
    assert at_stop.is_inherited is False
    assert at_stop.stopped is True

    after_stop = resolve_effective(month_map, "2024-08")
    assert after_stop.value is None
    assert after_stop.stopped is True

    before_stop = resolve_effective(month_map, "2024-02")
    assert before_stop.value.amount_cents == 100


def test_resolve_effective_rejects_bad_month_key() -> None:
    with pytest.raises(InvalidMonthKey):
        resolve_effective({}, "2024-1")


def test_sub_category_resolves_template_then_override_without_mutating_template() -> None:
    sub = SubCategory(id="food", name="Food", main_category_id="living")
    template = BudgetTemplate(
        id="t1", name="Standard", is_default=True, sub_category_budgets={"food": 4_000}
    )
    config = MonthConfig(month_key="2024-02", template_id="t1")

    resolved = resolve_sub_category_budget(sub, "2024-02", [template], [config])
    assert resolved.value == 4_000
    assert resolved.source == ResolutionSource.templated
    assert resolved.template_id == "t1"

    overridden = config.model_copy(update={"sub_category_overrides": {"food": 5_500}})
    resolved = resolve_sub_category_budget(sub, "2024-02", [template], [overridden])
    assert resolved.value == 5_500
    assert resolved.source == ResolutionSource.overridden
    assert template.sub_category_budgets == {"food": 4_000}


def test_missing_month_config_falls_back_to_default_template() -> None:
    sub = SubCategory(id="food", main_category_id="living")
    default = BudgetTemplate(
        id="t1", name="Standard", is_default=True, sub_category_budgets={"food": 4_000}
    )
    other = BudgetTemplate(id="t2", name="Lean", sub_category_budgets={"food": 2_000})
    assert resolve_sub_category_budget(sub, "2024-07", [default, other], []).value == 4_000

    lean_month = MonthConfig(month_key="2024-07", template_id="t2")
    lean = resolve_sub_category_budget(sub, "2024-07", [default, other], [lean_month])
    assert lean.value == 2_000
    assert lean.template_id == "t2"
    assert template_for_month("2024-08", [default, other], [lean_month]).id == "t1"


def test_own_entry_pinned_at_month_beats_override_and_template() -> None:
    bucket = _bucket({"2024-03": BucketData(amount_cents=900)})
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    config = MonthConfig(
        month_key="2024-03",
        template_id="t1",
        bucket_overrides={"rent": BucketData(amount_cents=700)},
    )
    resolved = resolve_bucket_data(bucket, "2024-03", [template], [config])
    assert resolved.value.amount_cents == 900
    assert resolved.is_inherited is False
    assert resolved.source == ResolutionSource.explicit


def test_inherited_own_entry_yields_to_override_and_template() -> None:
    bucket = _bucket({"2024-01": BucketData(amount_cents=900)})
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    config = MonthConfig(
        month_key="2024-03",
        template_id="t1",
        bucket_overrides={"rent": BucketData(amount_cents=700)},
    )
    overridden = resolve_bucket_data(bucket, "2024-03", [template], [config])
    assert overridden.value.amount_cents == 700
    assert overridden.source == ResolutionSource.overridden

    templated = resolve_bucket_data(bucket, "2024-04", [template], [config])
    assert templated.value.amount_cents == 500
    assert templated.source == ResolutionSource.templated

    inherited = resolve_bucket_data(bucket, "2024-04")
    assert inherited.value.amount_cents == 900
    assert inherited.is_inherited is True
    assert inherited.source == ResolutionSource.explicit


def test_bucket_without_own_data_uses_override_then_template() -> None:
    bucket = _bucket()
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    config = MonthConfig(
        month_key="2024-03",
        template_id="t1",
        bucket_overrides={"rent": BucketData(amount_cents=700)},
    )
    overridden = resolve_bucket_data(bucket, "2024-03", [template], [config])
    assert overridden.value.amount_cents == 700
    assert overridden.is_inherited is False
    assert overridden.source == ResolutionSource.overridden

    templated = resolve_bucket_data(bucket, "2024-04", [template], [config])
    assert templated.value.amount_cents == 500
    assert templated.is_inherited is True
    assert templated.source == ResolutionSource.templated


def test_explicit_stop_does_not_fall_through_to_template() -> None:
    bucket = _bucket({"2024-03": BucketData(is_explicitly_deleted=True)})
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    resolved = resolve_bucket_data(bucket, "2024-03", [template], [])
    assert resolved.value is None
    assert resolved.stopped is True


def test_goal_buckets_ignore_templates() -> None:
    goal = _bucket(bucket_type=BucketType.goal)
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"rent": BucketData(amount_cents=500)},
    )
    resolved = resolve_bucket_data(goal, "2024-03", [template], [])
    assert resolved.value is None
    assert resolved.source == ResolutionSource.none


def test_group_limit_layering() -> None:
    group = BudgetGroup(
        id="g1", name="Household", monthly_data={"2024-01": BudgetGroupData(limit_cents=8_000)}
    )
    template = BudgetTemplate(
        id="t1", name="Standard", is_default=True, group_limits={"g2": 1_000}
    )
    inherited = resolve_group_data(group, "2024-05", [template], [])
    assert inherited.value.limit_cents == 8_000
    assert inherited.is_inherited is True
    assert resolve_group_data(group, "2023-12", [template], []).value is None

    limited = template.model_copy(update={"group_limits": {"g1": 6_000}})
    assert resolve_group_data(group, "2024-05", [limited], []).value.limit_cents == 6_000
    assert resolve_group_data(group, "2024-01", [limited], []).value.limit_cents == 8_000

    empty = BudgetGroup(id="g3", name="Unbudgeted")
    assert resolve_group_data(empty, "2024-05", [template], []).source == ResolutionSource.none


def test_goal_payout_never_inherits() -> None:
    payout = Bucket(
        id="payout",
        name="Payout: Trip",
        type=BucketType.fixed,
        linked_goal_id="trip",
        monthly_data={"2024-07": BucketData(amount_cents=12_000)},
    )
    template = BudgetTemplate(
        id="t1",
        name="Standard",
        is_default=True,
        bucket_values={"payout": BucketData(amount_cents=1)},
    )
    assert resolve_bucket_data(payout, "2024-07", [template], []).value.amount_cents == 12_000
    later = resolve_bucket_data(payout, "2024-08", [template], [])
    assert later.value is None
    assert later.source == ResolutionSource.none
