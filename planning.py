"""Template and MonthConfig mutations.

Templates are shared baselines; a MonthConfig binds one month to a template
and carries sparse overrides on top of it. Functions return new collections.
"""

from typing import Optional, Sequence

from models import BudgetTarget, LimitMode
from periods import parse_month_key
from resolution import Resolution, default_template, find_month_config, find_template
from schemas import BucketData, BudgetTemplate, MonthConfig


class MonthLockedError(ValueError):
    pass


_OVERRIDE_FIELDS = {
    BudgetTarget.group: "group_overrides",
    BudgetTarget.sub: "sub_category_overrides",
    BudgetTarget.bucket: "bucket_overrides",
}

_BASELINE_FIELDS = {
    BudgetTarget.group: "group_limits",
    BudgetTarget.sub: "sub_category_budgets",
    BudgetTarget.bucket: "bucket_values",
}


def _replace_config(
    configs: Sequence[MonthConfig], config: MonthConfig
) -> list[MonthConfig]:
    others = [c for c in configs if c.month_key != config.month_key]
    return sorted([*others, config], key=lambda c: c.month_key)


def _replace_template(
    templates: Sequence[BudgetTemplate], template: BudgetTemplate
) -> list[BudgetTemplate]:
    return [template if t.id == template.id else t for t in templates]


def _ensure_unlocked(config: Optional[MonthConfig], month_key: str) -> None:
    if config is not None and config.is_locked:
        raise MonthLockedError(f"Month {month_key} is locked")


def _config_for_write(
    month_key: str,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
) -> MonthConfig:
    parse_month_key(month_key)
    config = find_month_config(configs, month_key)
    if config is not None:
        return config
    template = default_template(templates)
    if template is None:
        raise ValueError("No default template to bind the month to")
    return MonthConfig(month_key=month_key, template_id=template.id)


def assign_template_to_month(
    configs: Sequence[MonthConfig],
    month_key: str,
    template_id: str,
    templates: Sequence[BudgetTemplate],
) -> list[MonthConfig]:
    parse_month_key(month_key)
    if find_template(templates, template_id) is None:
        raise ValueError("Template not found")
    existing = find_month_config(configs, month_key)
    _ensure_unlocked(existing, month_key)
    # Overrides were deltas against the previous template, so they go too.
    config = MonthConfig(month_key=month_key, template_id=template_id)
    return _replace_config(configs, config)


def reset_month_to_template(
    configs: Sequence[MonthConfig], month_key: str
) -> list[MonthConfig]:
    parse_month_key(month_key)
    existing = find_month_config(configs, month_key)
    if existing is None:
        return list(configs)
    _ensure_unlocked(existing, month_key)
    config = existing.model_copy(
        update={
            "group_overrides": {},
            "sub_category_overrides": {},
            "bucket_overrides": {},
        }
    )
    return _replace_config(configs, config)


def toggle_month_lock(
    configs: Sequence[MonthConfig],
    month_key: str,
    templates: Sequence[BudgetTemplate],
) -> list[MonthConfig]:
    config = _config_for_write(month_key, templates, configs)
    return _replace_config(
        configs, config.model_copy(update={"is_locked": not config.is_locked})
    )


def check_override_visible(own: Resolution, month_key: str, label: str) -> None:
    """Refuse an override that the entity's own entry for ``month_key`` would hide."""
    if own.stopped:
        raise ValueError(f"{label} is stopped in {month_key}")
    if own.has_value and not own.is_inherited:
        raise ValueError(f"{label} has its own value pinned at {month_key}")


def set_budget_limit(
    target: BudgetTarget,
    entity_id: str,
    month_key: str,
    mode: LimitMode,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
    *,
    amount_cents: int = 0,
    bucket_data: Optional[BucketData] = None,
) -> tuple[list[BudgetTemplate], list[MonthConfig]]:
    """Write a limit either into the month's template or as a month override."""
    config = _config_for_write(month_key, templates, configs)
    _ensure_unlocked(config, month_key)

    if target == BudgetTarget.bucket:
        value = (bucket_data or BucketData(amount_cents=amount_cents)).model_copy(
            update={"is_explicitly_deleted": False}
        )
    else:
        value = amount_cents

    if mode == LimitMode.template:
        template = find_template(templates, config.template_id)
        if template is None:
            raise ValueError("Template not found")
        field = _BASELINE_FIELDS[target]
        values = dict(getattr(template, field))
        values[entity_id] = value
        updated = template.model_copy(update={field: values})
        return _replace_template(templates, updated), list(configs)

    field = _OVERRIDE_FIELDS[target]
    overrides = dict(getattr(config, field))
    overrides[entity_id] = value
    updated_config = config.model_copy(update={field: overrides})
    return list(templates), _replace_config(configs, updated_config)


def clear_budget_override(
    target: BudgetTarget,
    entity_id: str,
    month_key: str,
    configs: Sequence[MonthConfig],
) -> list[MonthConfig]:
    parse_month_key(month_key)
    config = find_month_config(configs, month_key)
    if config is None:
        return list(configs)
    _ensure_unlocked(config, month_key)
    field = _OVERRIDE_FIELDS[target]
    overrides = dict(getattr(config, field))
    if overrides.pop(entity_id, None) is None:
        return list(configs)
    return _replace_config(configs, config.model_copy(update={field: overrides}))


def snapshot_month(
    template_id: str,
    name: str,
    source_month: str,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
) -> BudgetTemplate:
    """Flatten the month's template plus its overrides into a new, independent template."""
    parse_month_key(source_month)
    config = find_month_config(configs, source_month)
    if config is not None:
        base = find_template(templates, config.template_id)
    else:
        base = default_template(templates)

    group_limits = dict(base.group_limits) if base else {}
    sub_budgets = dict(base.sub_category_budgets) if base else {}
    bucket_values = (
        {key: value.model_copy() for key, value in base.bucket_values.items()}
        if base
        else {}
    )
    if config is not None:
        group_limits.update(config.group_overrides)
        sub_budgets.update(config.sub_category_overrides)
        bucket_values.update(
            {key: value.model_copy() for key, value in config.bucket_overrides.items()}
        )
    return BudgetTemplate(
        id=template_id,
        name=name,
        is_default=False,
        group_limits=group_limits,
        sub_category_budgets=sub_budgets,
        bucket_values=bucket_values,
    )


def add_template(
    template_id: str,
    name: str,
    source_month: str,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
) -> list[BudgetTemplate]:
    template = snapshot_month(template_id, name, source_month, templates, configs)
    if default_template(templates) is None:
        template = template.model_copy(update={"is_default": True})
    return [*templates, template]


def rename_template(
    templates: Sequence[BudgetTemplate], template_id: str, name: str
) -> list[BudgetTemplate]:
    template = find_template(templates, template_id)
    if template is None:
        raise ValueError("Template not found")
    return _replace_template(templates, template.model_copy(update={"name": name}))


def set_default_template(
    templates: Sequence[BudgetTemplate], template_id: str
) -> list[BudgetTemplate]:
    if find_template(templates, template_id) is None:
        raise ValueError("Template not found")
    return [t.model_copy(update={"is_default": t.id == template_id}) for t in templates]


def delete_template(
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
    template_id: str,
) -> tuple[list[BudgetTemplate], list[MonthConfig]]:
    template = find_template(templates, template_id)
    if template is None:
        raise ValueError("Template not found")
    if template.is_default:
        raise ValueError("The default template cannot be deleted")
    for config in configs:
        if config.template_id == template_id:
            _ensure_unlocked(config, config.month_key)
    remaining = [t for t in templates if t.id != template_id]
    kept = [c for c in configs if c.template_id != template_id]
    return remaining, kept
