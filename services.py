from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from config import get_settings
from costs import (
    bucket_spend,
    calculate_bucket_cost,
    calculate_daily_bucket_cost_so_far,
    calculate_saved_amount,
    goal_cost_breakdown,
)
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
    set_bucket_month,
)
from models import (
    AppSettingsRecord,
    BucketRecord,
    BucketType,
    BudgetGroupRecord,
    BudgetTarget,
    BudgetTemplateRecord,
    DeletionScope,
    LimitMode,
    MonthConfigRecord,
    SubCategoryRecord,
    TransactionRecord,
)
from periods import (
    BudgetInterval,
    local_today,
    parse_month_key,
    resolve_interval,
    validate_payday,
)
from planning import (
    add_template,
    assign_template_to_month,
    check_override_visible,
    clear_budget_override,
    delete_template,
    rename_template,
    reset_month_to_template,
    set_budget_limit,
    set_default_template,
    toggle_month_lock,
)
from resolution import (
    Resolution,
    ResolutionSource,
    find_month_config,
    resolve_bucket_data,
    resolve_effective,
    resolve_group_data,
    resolve_sub_category_budget,
    template_for_month,
)
from schemas import (
    Bucket,
    BucketData,
    BucketIn,
    BudgetGroup,
    BudgetGroupData,
    BudgetGroupIn,
    BudgetLimitIn,
    BudgetOverrideClearIn,
    BudgetSnapshot,
    BudgetTemplate,
    MonthConfig,
    SubCategory,
    SubCategoryIn,
    TemplateIn,
    Transaction,
    TransactionIn,
)

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1
DEFAULT_TEMPLATE_NAME = "Standard"


def new_id() -> str:
    return str(uuid4())


def _apply(record, model) -> None:
    for name, value in model.model_dump().items():
        setattr(record, name, value)


def _sync(
    session: Session,
    record_cls,
    key: str,
    models: Sequence,
    *,
    remove_missing: bool = True,
) -> None:
    existing = {
        getattr(record, key): record
        for record in session.scalars(select(record_cls)).all()
    }
    for model in models:
        record = existing.pop(getattr(model, key), None)
        if record is None:
            session.add(record_cls(**model.model_dump()))
        else:
            _apply(record, model)
    if remove_missing:
        for record in existing.values():
            session.delete(record)


def load_templates(session: Session) -> list[BudgetTemplate]:
    records = session.scalars(
        select(BudgetTemplateRecord).order_by(BudgetTemplateRecord.created_at)
    ).all()
    return [BudgetTemplate.model_validate(record) for record in records]


def load_month_configs(session: Session) -> list[MonthConfig]:
    records = session.scalars(
        select(MonthConfigRecord).order_by(MonthConfigRecord.month_key)
    ).all()
    return [MonthConfig.model_validate(record) for record in records]


def load_transactions(session: Session) -> list[Transaction]:
    records = session.scalars(
        select(TransactionRecord).order_by(TransactionRecord.date, TransactionRecord.id)
    ).all()
    return [Transaction.model_validate(record) for record in records]


def save_plan(
    session: Session,
    templates: Sequence[BudgetTemplate],
    configs: Sequence[MonthConfig],
) -> None:
    # Templates must exist before configs point at them, and configs must be
    # gone before their template is removed.
    _sync(session, BudgetTemplateRecord, "id", templates, remove_missing=False)
    session.flush()
    _sync(session, MonthConfigRecord, "month_key", configs)
    session.flush()
    wanted = {template.id for template in templates}
    for record in session.scalars(select(BudgetTemplateRecord)).all():
        if record.id not in wanted:
            session.delete(record)


class SettingsService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def payday(self) -> int:
        row = self.session.get(AppSettingsRecord, SETTINGS_ROW_ID)
        if row is None:
            return get_settings().default_payday
        return row.payday

    def set_payday(self, payday: int) -> int:
        validate_payday(payday)
        row = self.session.get(AppSettingsRecord, SETTINGS_ROW_ID)
        if row is None:
            row = AppSettingsRecord(id=SETTINGS_ROW_ID, payday=payday)
            self.session.add(row)
        else:
            row.payday = payday
        self.session.commit()
        logger.info(f"payday_updated: payday={payday}")
        return payday

    def interval(self, month_key: str) -> BudgetInterval:
        return resolve_interval(month_key, self.payday())


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, *, bucket_id: Optional[str] = None) -> list[Transaction]:
        transactions = load_transactions(self.session)
        if bucket_id is None:
            return transactions
        return [txn for txn in transactions if txn.bucket_id == bucket_id]

    def create(self, data: TransactionIn) -> Transaction:
        if data.bucket_id is not None and not self.session.get(BucketRecord, data.bucket_id):
            raise ValueError("Bucket not found")
        txn = Transaction(id=new_id(), **data.model_dump())
        self.session.add(TransactionRecord(**txn.model_dump()))
        self.session.commit()
        return txn


class BucketService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _record(self, bucket_id: str) -> BucketRecord:
        record = self.session.get(BucketRecord, bucket_id)
        if not record:
            raise ValueError("Bucket not found")
        return record

    def _save(self, bucket: Bucket) -> Bucket:
        _apply(self._record(bucket.id), bucket)
        self.session.commit()
        return bucket

    def list(self) -> list[Bucket]:
        records = self.session.scalars(
            select(BucketRecord).order_by(BucketRecord.created_at, BucketRecord.name)
        ).all()
        return [Bucket.model_validate(record) for record in records]

    def get(self, bucket_id: str) -> Bucket:
        return Bucket.model_validate(self._record(bucket_id))

    def create(self, data: BucketIn) -> Bucket:
        if data.budget_group_id is not None and not self.session.get(
            BudgetGroupRecord, data.budget_group_id
        ):
            raise ValueError("Budget group not found")
        monthly_data = {}
        if data.type != BucketType.goal:
            monthly_data[data.month] = data.data
        bucket = Bucket(
            id=new_id(),
            monthly_data=monthly_data,
            **data.model_dump(exclude={"month", "data"}),
        )
        self.session.add(BucketRecord(**bucket.model_dump()))
        self.session.commit()
        logger.info(f"bucket_created: id={bucket.id} type={bucket.type.value}")
        return bucket

    def set_month(self, bucket_id: str, month_key: str, data: BucketData) -> Bucket:
        bucket = set_bucket_month(self.get(bucket_id), month_key, data)
        logger.info(f"bucket_month_set: id={bucket_id} month={month_key}")
        return self._save(bucket)

    def resolve(self, bucket_id: str, month_key: str) -> Resolution[BucketData]:
        return resolve_bucket_data(
            self.get(bucket_id),
            month_key,
            load_templates(self.session),
            load_month_configs(self.session),
        )

    def confirm(self, bucket_id: str, month_key: str) -> Bucket:
        bucket = self.get(bucket_id)
        confirmed = confirm_bucket_value(
            bucket,
            month_key,
            load_templates(self.session),
            load_month_configs(self.session),
        )
        if confirmed is bucket:
            return bucket
        logger.info(f"bucket_confirmed: id={bucket_id} month={month_key}")
        return self._save(confirmed)

    def delete(
        self, bucket_id: str, month_key: str, scope: DeletionScope
    ) -> Optional[Bucket]:
        bucket = self.get(bucket_id)
        updated = apply_deletion_scope(
            bucket,
            month_key,
            scope,
            load_templates(self.session),
            load_month_configs(self.session),
        )
        logger.info(
            f"bucket_deleted: id={bucket_id} month={month_key} scope={scope.value}"
        )
        if updated is not None:
            return self._save(updated)

        released = release_transactions(load_transactions(self.session), bucket_id)
        for txn in released:
            _apply(self.session.get(TransactionRecord, txn.id), txn)
        self.session.delete(self._record(bucket_id))
        self.session.commit()
        logger.info(
            f"bucket_removed: id={bucket_id} transactions_released={len(released)}"
        )
        return None

    def archive(self, bucket_id: str, month_key: str) -> Bucket:
        bucket = archive_bucket(self.get(bucket_id), month_key)
        logger.info(f"bucket_archived: id={bucket_id} month={month_key}")
        return self._save(bucket)

    def pay_out_goal(self, goal_id: str) -> Bucket:
        goal = self.get(goal_id)
        existing = next(
            (b for b in self.list() if b.linked_goal_id == goal_id), None
        )
        payout = goal_payout_bucket(goal, new_id(), existing)
        if existing is None:
            self.session.add(BucketRecord(**payout.model_dump()))
            self.session.commit()
        else:
            self._save(payout)
        logger.info(
            f"goal_payout_planned: goal_id={goal_id} bucket_id={payout.id} "
            f"month={goal.target_date}"
        )
        return payout

    def copy_from_next_month(self, month_key: str) -> int:
        updated = copy_from_next_month(self.list(), month_key)
        for bucket in updated:
            _apply(self._record(bucket.id), bucket)
        self.session.commit()
        logger.info(f"buckets_copied_from_next: month={month_key} count={len(updated)}")
        return len(updated)


class BudgetGroupService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _record(self, group_id: str) -> BudgetGroupRecord:
        record = self.session.get(BudgetGroupRecord, group_id)
        if not record:
            raise ValueError("Budget group not found")
        return record

    def list(self) -> list[BudgetGroup]:
        records = self.session.scalars(
            select(BudgetGroupRecord).order_by(
                BudgetGroupRecord.is_catch_all, BudgetGroupRecord.name
            )
        ).all()
        return [BudgetGroup.model_validate(record) for record in records]

    def get(self, group_id: str) -> BudgetGroup:
        return BudgetGroup.model_validate(self._record(group_id))

    def create(self, data: BudgetGroupIn) -> BudgetGroup:
        group = BudgetGroup(
            id=new_id(),
            name=data.name,
            forecast_type=data.forecast_type,
            is_catch_all=data.is_catch_all,
            monthly_data={data.month: BudgetGroupData(limit_cents=data.limit_cents)},
        )
        self.session.add(BudgetGroupRecord(**group.model_dump()))
        self.session.commit()
        logger.info(f"budget_group_created: id={group.id}")
        return group

    def resolve(self, group_id: str, month_key: str) -> Resolution[BudgetGroupData]:
        return resolve_group_data(
            self.get(group_id),
            month_key,
            load_templates(self.session),
            load_month_configs(self.session),
        )

    def confirm(self, group_id: str, month_key: str) -> BudgetGroup:
        group = self.get(group_id)
        confirmed = confirm_group_limit(
            group,
            month_key,
            load_templates(self.session),
            load_month_configs(self.session),
        )
        if confirmed is group:
            return group
        _apply(self._record(group_id), confirmed)
        self.session.commit()
        logger.info(f"budget_group_confirmed: id={group_id} month={month_key}")
        return confirmed

    def delete(
        self, group_id: str, month_key: str, scope: DeletionScope
    ) -> Optional[BudgetGroup]:
        group = self.get(group_id)
        updated = apply_group_deletion_scope(
            group,
            month_key,
            scope,
            load_templates(self.session),
            load_month_configs(self.session),
        )
        logger.info(
            f"budget_group_deleted: id={group_id} month={month_key} scope={scope.value}"
        )
        if updated is not None:
            _apply(self._record(group_id), updated)
            self.session.commit()
            return updated

        subs = SubCategoryService(self.session).list()
        for sub in release_sub_categories(subs, group_id):
            _apply(self.session.get(SubCategoryRecord, sub.id), sub)
        self.session.delete(self._record(group_id))
        self.session.commit()
        return None


class SubCategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self) -> list[SubCategory]:
        records = self.session.scalars(
            select(SubCategoryRecord).order_by(SubCategoryRecord.name)
        ).all()
        return [SubCategory.model_validate(record) for record in records]

    def get(self, sub_id: str) -> SubCategory:
        record = self.session.get(SubCategoryRecord, sub_id)
        if not record:
            raise ValueError("Sub-category not found")
        return SubCategory.model_validate(record)

    def create(self, data: SubCategoryIn) -> SubCategory:
        if data.budget_group_id is not None and not self.session.get(
            BudgetGroupRecord, data.budget_group_id
        ):
            raise ValueError("Budget group not found")
        sub = SubCategory(id=new_id(), **data.model_dump())
        self.session.add(SubCategoryRecord(**sub.model_dump()))
        self.session.commit()
        return sub

    def resolve(self, sub_id: str, month_key: str) -> Resolution[int]:
        return resolve_sub_category_budget(
            self.get(sub_id),
            month_key,
            load_templates(self.session),
            load_month_configs(self.session),
        )


class BudgetPlanService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_templates(self) -> list[BudgetTemplate]:
        return load_templates(self.session)

    def list_month_configs(self) -> list[MonthConfig]:
        return load_month_configs(self.session)

    def template_for_month(self, month_key: str) -> Optional[BudgetTemplate]:
        parse_month_key(month_key)
        return template_for_month(
            month_key, self.list_templates(), self.list_month_configs()
        )

    def _commit(
        self, templates: Sequence[BudgetTemplate], configs: Sequence[MonthConfig]
    ) -> None:
        save_plan(self.session, templates, configs)
        self.session.commit()

    def _templates_with_default(self) -> list[BudgetTemplate]:
        templates = self.list_templates()
        if not any(t.is_default for t in templates):
            if templates:
                templates = set_default_template(templates, templates[0].id)
            else:
                templates = [
                    BudgetTemplate(id=new_id(), name=DEFAULT_TEMPLATE_NAME, is_default=True)
                ]
            logger.info(f"default_template_ensured: id={templates[0].id}")
        return templates

    def ensure_default_template(self) -> BudgetTemplate:
        templates = self._templates_with_default()
        self._commit(templates, self.list_month_configs())
        return next(t for t in templates if t.is_default)

    def add_template(self, data: TemplateIn) -> BudgetTemplate:
        configs = self.list_month_configs()
        templates = add_template(
            new_id(), data.name, data.source_month, self.list_templates(), configs
        )
        self._commit(templates, configs)
        created = templates[-1]
        logger.info(
            f"template_added: id={created.id} source_month={data.source_month}"
        )
        return created

    def rename_template(self, template_id: str, name: str) -> BudgetTemplate:
        templates = rename_template(self.list_templates(), template_id, name)
        self._commit(templates, self.list_month_configs())
        return next(t for t in templates if t.id == template_id)

    def set_default(self, template_id: str) -> BudgetTemplate:
        templates = set_default_template(self.list_templates(), template_id)
        self._commit(templates, self.list_month_configs())
        logger.info(f"template_default_set: id={template_id}")
        return next(t for t in templates if t.id == template_id)

    def delete_template(self, template_id: str) -> None:
        templates, configs = delete_template(
            self.list_templates(), self.list_month_configs(), template_id
        )
        self._commit(templates, configs)
        logger.info(f"template_deleted: id={template_id}")

    def assign_template(self, month_key: str, template_id: str) -> MonthConfig:
        templates = self.list_templates()
        configs = assign_template_to_month(
            self.list_month_configs(), month_key, template_id, templates
        )
        self._commit(templates, configs)
        logger.info(f"template_assigned: month={month_key} template_id={template_id}")
        return find_month_config(configs, month_key)

    def reset_month(self, month_key: str) -> Optional[MonthConfig]:
        configs = reset_month_to_template(self.list_month_configs(), month_key)
        self._commit(self.list_templates(), configs)
        logger.info(f"month_reset_to_template: month={month_key}")
        return find_month_config(configs, month_key)

    def toggle_lock(self, month_key: str) -> MonthConfig:
        templates = self._templates_with_default()
        configs = toggle_month_lock(self.list_month_configs(), month_key, templates)
        self._commit(templates, configs)
        config = find_month_config(configs, month_key)
        logger.info(f"month_lock_toggled: month={month_key} locked={config.is_locked}")
        return config

    def _check_target(self, month_key: str, data: BudgetLimitIn) -> None:
        if data.target == BudgetTarget.sub:
            if not self.session.get(SubCategoryRecord, data.entity_id):
                raise ValueError("Sub-category not found")
            return
        if data.target == BudgetTarget.group:
            entity = BudgetGroupService(self.session).get(data.entity_id)
            label = f"Budget group {entity.id}"
        else:
            entity = BucketService(self.session).get(data.entity_id)
            label = f"Bucket {entity.id}"
            if entity.type == BucketType.goal or entity.linked_goal_id:
                raise ValueError(f"{label} follows its goal and takes no budget limits")
        if data.mode == LimitMode.override:
            check_override_visible(
                resolve_effective(entity.monthly_data, month_key), month_key, label
            )

    def set_budget_limit(self, month_key: str, data: BudgetLimitIn) -> None:
        self._check_target(month_key, data)
        templates, configs = set_budget_limit(
            data.target,
            data.entity_id,
            month_key,
            data.mode,
            self._templates_with_default(),
            self.list_month_configs(),
            amount_cents=data.amount_cents,
            bucket_data=data.bucket_data,
        )
        self._commit(templates, configs)
        logger.info(
            f"budget_limit_set: month={month_key} target={data.target.value} "
            f"entity_id={data.entity_id} mode={data.mode.value}"
        )

    def clear_override(self, month_key: str, data: BudgetOverrideClearIn) -> None:
        configs = clear_budget_override(
            data.target, data.entity_id, month_key, self.list_month_configs()
        )
        self._commit(self.list_templates(), configs)
        logger.info(
            f"budget_override_cleared: month={month_key} target={data.target.value} "
            f"entity_id={data.entity_id}"
        )


@dataclass(frozen=True)
class BucketCostRow:
    bucket_id: str
    name: str
    type: BucketType
    cost_cents: int
    source: ResolutionSource
    is_inherited: bool
    saving_cents: int = 0
    consumption_cents: int = 0
    spent_cents: int = 0
    saved_so_far_cents: int = 0
    accrued_cents: int = 0


@dataclass(frozen=True)
class GroupLimitRow:
    group_id: str
    name: str
    limit_cents: int
    source: ResolutionSource
    is_inherited: bool


@dataclass
class MonthOverview:
    interval: BudgetInterval
    payday: int
    template_id: Optional[str] = None
    is_locked: bool = False
    buckets: list[BucketCostRow] = field(default_factory=list)
    groups: list[GroupLimitRow] = field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return sum(row.cost_cents for row in self.buckets)


class MonthOverviewService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _bucket_row(
        self,
        bucket: Bucket,
        month_key: str,
        interval: BudgetInterval,
        payday: int,
        templates: Sequence[BudgetTemplate],
        configs: Sequence[MonthConfig],
        transactions: Sequence[Transaction],
    ) -> BucketCostRow:
        resolved = resolve_bucket_data(bucket, month_key, templates, configs)
        if bucket.type == BucketType.goal:
            goal = goal_cost_breakdown(bucket, month_key, payday, transactions)
            return BucketCostRow(
                bucket_id=bucket.id,
                name=bucket.name,
                type=bucket.type,
                cost_cents=goal.total_cents,
                source=resolved.source,
                is_inherited=resolved.is_inherited,
                saving_cents=goal.saving_cents,
                consumption_cents=goal.consumption_cents,
                spent_cents=goal.spent_cents,
                saved_so_far_cents=calculate_saved_amount(bucket, month_key),
            )
        cost = calculate_bucket_cost(bucket, month_key, payday, templates, configs)
        accrued = cost
        if bucket.type == BucketType.daily:
            accrued = calculate_daily_bucket_cost_so_far(
                bucket, month_key, payday, local_today(), templates, configs
            )
        return BucketCostRow(
            bucket_id=bucket.id,
            name=bucket.name,
            type=bucket.type,
            cost_cents=cost,
            source=resolved.source,
            is_inherited=resolved.is_inherited,
            spent_cents=bucket_spend(
                bucket.id, transactions, start=interval.start, end=interval.end
            ),
            accrued_cents=accrued,
        )

    def overview(self, month_key: str) -> MonthOverview:
        payday = SettingsService(self.session).payday()
        interval = resolve_interval(month_key, payday)
        templates = load_templates(self.session)
        configs = load_month_configs(self.session)
        transactions = load_transactions(self.session)

        config = find_month_config(configs, month_key)
        template = template_for_month(month_key, templates, configs)
        result = MonthOverview(
            interval=interval,
            payday=payday,
            template_id=template.id if template else None,
            is_locked=bool(config and config.is_locked),
        )
        for bucket in BucketService(self.session).list():
            if (
                bucket.type != BucketType.goal
                and bucket.archived_date
                and month_key > bucket.archived_date
            ):
                continue
            row = self._bucket_row(
                bucket, month_key, interval, payday, templates, configs, transactions
            )
            if bucket.linked_goal_id and not (row.cost_cents or row.spent_cents):
                continue
            result.buckets.append(row)
        for group in BudgetGroupService(self.session).list():
            resolved = resolve_group_data(group, month_key, templates, configs)
            if resolved.stopped:
                continue
            result.groups.append(
                GroupLimitRow(
                    group_id=group.id,
                    name=group.name,
                    limit_cents=resolved.value.limit_cents if resolved.value else 0,
                    source=resolved.source,
                    is_inherited=resolved.is_inherited,
                )
            )
        return result


class BackupService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def export_snapshot(self) -> BudgetSnapshot:
        return BudgetSnapshot(
            payday=SettingsService(self.session).payday(),
            buckets=BucketService(self.session).list(),
            budget_groups=BudgetGroupService(self.session).list(),
            sub_categories=SubCategoryService(self.session).list(),
            budget_templates=load_templates(self.session),
            month_configs=load_month_configs(self.session),
            transactions=load_transactions(self.session),
        )

    def import_snapshot(self, snapshot: BudgetSnapshot) -> None:
        """Replace every collection with the snapshot's contents."""
        for record_cls in (
            MonthConfigRecord,
            BudgetTemplateRecord,
            TransactionRecord,
            BucketRecord,
            SubCategoryRecord,
            BudgetGroupRecord,
            AppSettingsRecord,
        ):
            self.session.execute(delete(record_cls))
        self.session.flush()

        self.session.add(AppSettingsRecord(id=SETTINGS_ROW_ID, payday=snapshot.payday))
        collections = (
            (BudgetGroupRecord, snapshot.budget_groups),
            (SubCategoryRecord, snapshot.sub_categories),
            (BucketRecord, snapshot.buckets),
            (TransactionRecord, snapshot.transactions),
            (BudgetTemplateRecord, snapshot.budget_templates),
        )
        for record_cls, models in collections:
            self.session.add_all(record_cls(**model.model_dump()) for model in models)
        self.session.flush()
        self.session.add_all(
            MonthConfigRecord(**config.model_dump()) for config in snapshot.month_configs
        )
        self.session.commit()
        logger.info(
            f"backup_imported: buckets={len(snapshot.buckets)} "
            f"templates={len(snapshot.budget_templates)} "
            f"transactions={len(snapshot.transactions)}"
        )
