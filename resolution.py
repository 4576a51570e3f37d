"""Effective-value resolution for recurring monthly data.

Month-maps are sparse: a missing month inherits the nearest earlier entry, an
entry flagged ``is_explicitly_deleted`` stops the series at that month. Values
that take part in the template system are layered as

    entry pinned at the month  >  MonthConfig override
        >  template baseline  >  inherited entry  >  nothing

Buckets paying out a goal (``linked_goal_id``) never inherit.
"""

from bisect import bisect_left
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Mapping, Optional, Protocol, Sequence, TypeVar

from models import BucketType
from periods import parse_month_key
from schemas import (
    Bucket,
    BucketData,
    BudgetGroup,
    BudgetGroupData,
    BudgetTemplate,
    MonthConfig,
    SubCategory,
)


class MonthEntry(Protocol):
    is_explicitly_deleted: bool


E = TypeVar("E", bound=MonthEntry)
T = TypeVar("T")


class ResolutionSource(str, Enum):
    explicit = "explicit"
    overridden = "overridden"
    templated = "templated"
    none = "none"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    value: Optional[T]
    is_inherited: bool
    source: ResolutionSource
    # Set when an explicit deletion ended the series at or before the month.
    stopped: bool = False
    template_id: Optional[str] = None

    @classmethod
    def nothing(cls, *, stopped: bool = False) -> "Resolution[T]":
        return cls(None, False, ResolutionSource.none, stopped=stopped)

    @property
    def has_value(self) -> bool:
        return self.value is not None


def resolve_effective(month_map: Mapping[str, E], month_key: str) -> Resolution[E]:
    parse_month_key(month_key)
    entry = month_map.get(month_key)
    if entry is not None:
        if entry.is_explicitly_deleted:
            return Resolution.nothing(stopped=True)
        return Resolution(entry, False, ResolutionSource.explicit)

    keys = sorted(month_map)
    idx = bisect_left(keys, month_key)
    if idx == 0:
        return Resolution.nothing()
    previous = month_map[keys[idx - 1]]
    if previous.is_explicitly_deleted:
        return Resolution.nothing(stopped=True)
    return Resolution(previous, True, ResolutionSource.explicit)


def find_month_config(
    configs: Sequence[MonthConfig], month_key: str
) -> Optional[MonthConfig]:
    for config in configs:
        if config.month_key == month_key:
            return config
    return None


def default_template(templates: Sequence[BudgetTemplate]) -> Optional[BudgetTemplate]:
    for template in templates:
        if template.is_default:
            return template
    return None


def find_template(
    templates: Sequence[BudgetTemplate], template_id: Optional[str]
) -> Optional[BudgetTemplate]:
    if template_id is None:
        return None
    for template in templates:
        if template.id == template_id:
            return template
    return None


def template_for_month(
    month_key: str,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
) -> Optional[BudgetTemplate]:
    config = find_month_config(configs, month_key)
    if config is not None:
        return find_template(templates, config.template_id)
    return default_template(templates)


def _layered(
    own: Optional[Resolution[T]],
    month_key: str,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
    override_of,
    baseline_of,
) -> Resolution[T]:
    # A stop or an entry pinned at this very month outranks every other layer.
    if own is not None and (own.stopped or (own.has_value and not own.is_inherited)):
        return own

    config = find_month_config(configs, month_key)
    if config is not None:
        override = override_of(config)
        if override is not None:
            return Resolution(
                override,
                False,
                ResolutionSource.overridden,
                template_id=config.template_id,
            )

    template = template_for_month(month_key, templates, configs)
    if template is not None:
        baseline = baseline_of(template)
        if baseline is not None:
            return Resolution(
                baseline, True, ResolutionSource.templated, template_id=template.id
            )

    if own is not None and own.has_value:
        return own
    return Resolution.nothing()


def resolve_bucket_data(
    bucket: Bucket,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Resolution[BucketData]:
    own = resolve_effective(bucket.monthly_data, month_key)
    if bucket.type == BucketType.goal:
        # Goals follow their own timeline and never read templates.
        return own
    if bucket.linked_goal_id is not None:
        # Goal payouts exist only in the months they were written for.
        if own.is_inherited:
            return Resolution.nothing()
        return own
    return _layered(
        own,
        month_key,
        templates,
        configs,
        lambda config: config.bucket_overrides.get(bucket.id),
        lambda template: template.bucket_values.get(bucket.id),
    )


def _limit(value: Optional[int]) -> Optional[BudgetGroupData]:
    if value is None:
        return None
    return BudgetGroupData(limit_cents=value)


def resolve_group_data(
    group: BudgetGroup,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Resolution[BudgetGroupData]:
    return _layered(
        resolve_effective(group.monthly_data, month_key),
        month_key,
        templates,
        configs,
        lambda config: _limit(config.group_overrides.get(group.id)),
        lambda template: _limit(template.group_limits.get(group.id)),
    )


def resolve_sub_category_budget(
    sub: SubCategory,
    month_key: str,
    templates: Sequence[BudgetTemplate] = (),
    configs: Sequence[MonthConfig] = (),
) -> Resolution[int]:
    parse_month_key(month_key)
    return _layered(
        None,
        month_key,
        templates,
        configs,
        lambda config: config.sub_category_overrides.get(sub.id),
        lambda template: template.sub_category_budgets.get(sub.id),
    )

