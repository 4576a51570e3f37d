import logging
from dataclasses import asdict
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from sqlalchemy.orm import Session

from database import SessionLocal, session_scope
from models import DeletionScope
from periods import BudgetInterval, resolve_interval
from resolution import Resolution
from schemas import (
    Bucket,
    BucketData,
    BucketIn,
    BudgetGroup,
    BudgetGroupIn,
    BudgetLimitIn,
    BudgetOverrideClearIn,
    BudgetSnapshot,
    BudgetTemplate,
    MonthConfig,
    PaydayIn,
    SubCategory,
    SubCategoryIn,
    TemplateIn,
    TemplateRenameIn,
    Transaction,
    TransactionIn,
)
from services import (
    BackupService,
    BucketService,
    BudgetGroupService,
    BudgetPlanService,
    MonthOverviewService,
    SettingsService,
    SubCategoryService,
    TransactionService,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Household Budget")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    with session_scope() as session:
        template = BudgetPlanService(session).ensure_default_template()
    logger.info(f"startup: default_template={template.id}")


def _status_for(exc: ValueError) -> int:
    return 404 if "not found" in str(exc) else 400


def _interval_payload(interval: BudgetInterval) -> dict:
    return {
        "month": interval.month_key,
        "start": interval.start_str,
        "end": interval.end_str,
        "month_label": interval.month_label,
        "label": interval.interval_label,
        "days": (interval.end - interval.start).days + 1,
    }


def _resolution_payload(resolution: Resolution) -> dict:
    value = resolution.value
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    return {
        "value": value,
        "is_inherited": resolution.is_inherited,
        "source": resolution.source.value,
        "stopped": resolution.stopped,
        "template_id": resolution.template_id,
    }


@app.get("/api/interval/{month}")
def api_interval(month: str, payday: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        if payday is None:
            payday = SettingsService(db).payday()
        interval = resolve_interval(month, payday)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return _interval_payload(interval)


@app.get("/api/months/{month}/overview")
def api_month_overview(month: str, db: Session = Depends(get_db)):
    try:
        overview = MonthOverviewService(db).overview(month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return {
        "interval": _interval_payload(overview.interval),
        "payday": overview.payday,
        "template_id": overview.template_id,
        "is_locked": overview.is_locked,
        "total_cents": overview.total_cents,
        "buckets": [asdict(row) for row in overview.buckets],
        "groups": [asdict(row) for row in overview.groups],
    }


# --- buckets ---


@app.get("/api/buckets", response_model=list[Bucket])
def api_list_buckets(db: Session = Depends(get_db)):
    return BucketService(db).list()


@app.post("/api/buckets", response_model=Bucket, status_code=201)
def api_create_bucket(payload: BucketIn, db: Session = Depends(get_db)):
    try:
        return BucketService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.get("/api/buckets/{bucket_id}/months/{month}")
def api_bucket_month(bucket_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return _resolution_payload(BucketService(db).resolve(bucket_id, month))
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.put("/api/buckets/{bucket_id}/months/{month}", response_model=Bucket)
def api_set_bucket_month(
    bucket_id: str, month: str, payload: BucketData, db: Session = Depends(get_db)
):
    try:
        return BucketService(db).set_month(bucket_id, month, payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/buckets/{bucket_id}/months/{month}/confirm", response_model=Bucket)
def api_confirm_bucket(bucket_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return BucketService(db).confirm(bucket_id, month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/buckets/{bucket_id}/months/{month}/delete")
def api_delete_bucket(
    bucket_id: str, month: str, scope: DeletionScope, db: Session = Depends(get_db)
):
    try:
        bucket = BucketService(db).delete(bucket_id, month, scope)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    if bucket is None:
        return Response(status_code=204)
    return bucket


@app.post("/api/buckets/{bucket_id}/archive/{month}", response_model=Bucket)
def api_archive_bucket(bucket_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return BucketService(db).archive(bucket_id, month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/buckets/{bucket_id}/payout", response_model=Bucket)
def api_pay_out_goal(bucket_id: str, db: Session = Depends(get_db)):
    try:
        return BucketService(db).pay_out_goal(bucket_id)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/months/{month}/copy-from-next")
def api_copy_from_next(month: str, db: Session = Depends(get_db)):
    try:
        count = BucketService(db).copy_from_next_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return {"copied": count}


# --- budget groups and sub-categories ---


@app.get("/api/groups", response_model=list[BudgetGroup])
def api_list_groups(db: Session = Depends(get_db)):
    return BudgetGroupService(db).list()


@app.post("/api/groups", response_model=BudgetGroup, status_code=201)
def api_create_group(payload: BudgetGroupIn, db: Session = Depends(get_db)):
    try:
        return BudgetGroupService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.get("/api/groups/{group_id}/months/{month}")
def api_group_month(group_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return _resolution_payload(BudgetGroupService(db).resolve(group_id, month))
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/groups/{group_id}/months/{month}/confirm", response_model=BudgetGroup)
def api_confirm_group(group_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return BudgetGroupService(db).confirm(group_id, month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/groups/{group_id}/months/{month}/delete")
def api_delete_group(
    group_id: str, month: str, scope: DeletionScope, db: Session = Depends(get_db)
):
    try:
        group = BudgetGroupService(db).delete(group_id, month, scope)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    if group is None:
        return Response(status_code=204)
    return group


@app.get("/api/sub-categories", response_model=list[SubCategory])
def api_list_sub_categories(db: Session = Depends(get_db)):
    return SubCategoryService(db).list()


@app.post("/api/sub-categories", response_model=SubCategory, status_code=201)
def api_create_sub_category(payload: SubCategoryIn, db: Session = Depends(get_db)):
    try:
        return SubCategoryService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.get("/api/sub-categories/{sub_id}/months/{month}")
def api_sub_category_month(sub_id: str, month: str, db: Session = Depends(get_db)):
    try:
        return _resolution_payload(SubCategoryService(db).resolve(sub_id, month))
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


# --- templates and month configuration ---


@app.get("/api/templates", response_model=list[BudgetTemplate])
def api_list_templates(db: Session = Depends(get_db)):
    return BudgetPlanService(db).list_templates()


@app.post("/api/templates", response_model=BudgetTemplate, status_code=201)
def api_add_template(payload: TemplateIn, db: Session = Depends(get_db)):
    try:
        return BudgetPlanService(db).add_template(payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/templates/{template_id}/default", response_model=BudgetTemplate)
def api_set_default_template(template_id: str, db: Session = Depends(get_db)):
    try:
        return BudgetPlanService(db).set_default(template_id)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/templates/{template_id}/rename", response_model=BudgetTemplate)
def api_rename_template(
    template_id: str, payload: TemplateRenameIn, db: Session = Depends(get_db)
):
    try:
        return BudgetPlanService(db).rename_template(template_id, payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/templates/{template_id}/delete", status_code=204)
def api_delete_template(template_id: str, db: Session = Depends(get_db)):
    try:
        BudgetPlanService(db).delete_template(template_id)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/months", response_model=list[MonthConfig])
def api_list_month_configs(db: Session = Depends(get_db)):
    return BudgetPlanService(db).list_month_configs()


@app.post("/api/months/{month}/template/{template_id}", response_model=MonthConfig)
def api_assign_template(month: str, template_id: str, db: Session = Depends(get_db)):
    try:
        return BudgetPlanService(db).assign_template(month, template_id)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/months/{month}/reset")
def api_reset_month(month: str, db: Session = Depends(get_db)):
    try:
        config = BudgetPlanService(db).reset_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    if config is None:
        return Response(status_code=204)
    return config


@app.post("/api/months/{month}/lock", response_model=MonthConfig)
def api_toggle_lock(month: str, db: Session = Depends(get_db)):
    try:
        return BudgetPlanService(db).toggle_lock(month)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.post("/api/months/{month}/limits", status_code=204)
def api_set_budget_limit(month: str, payload: BudgetLimitIn, db: Session = Depends(get_db)):
    try:
        BudgetPlanService(db).set_budget_limit(month, payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return Response(status_code=204)


@app.post("/api/months/{month}/limits/clear", status_code=204)
def api_clear_override(
    month: str, payload: BudgetOverrideClearIn, db: Session = Depends(get_db)
):
    try:
        BudgetPlanService(db).clear_override(month, payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return Response(status_code=204)


# --- transactions, settings and backup ---


@app.get("/api/transactions", response_model=list[Transaction])
def api_list_transactions(bucket_id: Optional[str] = None, db: Session = Depends(get_db)):
    return TransactionService(db).list(bucket_id=bucket_id)


@app.post("/api/transactions", response_model=Transaction, status_code=201)
def api_create_transaction(payload: TransactionIn, db: Session = Depends(get_db)):
    try:
        return TransactionService(db).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


@app.get("/api/settings/payday")
def api_get_payday(db: Session = Depends(get_db)):
    return {"payday": SettingsService(db).payday()}


@app.put("/api/settings/payday")
def api_set_payday(payload: PaydayIn, db: Session = Depends(get_db)):
    try:
        payday = SettingsService(db).set_payday(payload.payday)
    except ValueError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return {"payday": payday}


@app.get("/api/backup", response_model=BudgetSnapshot)
def api_export_backup(db: Session = Depends(get_db)):
    return BackupService(db).export_snapshot()


@app.post("/api/backup", status_code=204)
def api_import_backup(payload: BudgetSnapshot, db: Session = Depends(get_db)):
    BackupService(db).import_snapshot(payload)
    return Response(status_code=204)
