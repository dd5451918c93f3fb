from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.custom_field import CustomField
from app.schemas.fields import FieldDefinition, ResolvedFields, Section
from app.schemas.forms import (
    FormAnswersIn,
    FormContext,
    FormValidationOut,
    LookupSelectIn,
    RequestAnswersOut,
    ResolvedFormOut,
    TableColumnsOut,
    TableRowsOut,
)
from app.services.field_conditions import visibility_map
from app.services.field_repository import (
    DatabaseLookupFetcher,
    field_row_to_definition,
    list_fields_by_scope,
    list_lookup_rows,
    list_sections,
    sub_process_names,
    uuid_or_none,
)
from app.services.field_scopes import resolve_fields
from app.services.form_sections import organize_sections
from app.services.form_session import FormSession
from app.services.lookup_cache import LookupCache
from app.services.repeatable_table import RepeatableTableEngine, serialize_rows
from app.services.request_answers import load_request_answers, save_request_answers


def _uuid_text_or_400(raw: str | None, field_name: str) -> str:
    value = uuid_or_none(raw)
    if value is None:
        raise HTTPException(status_code=400, detail=f'Invalid identifier in "{field_name}"')
    return str(value)


def _sub_process_ids_or_400(raw_ids: list[str]) -> list[str]:
    out: list[str] = []
    for raw in raw_ids:
        value = _uuid_text_or_400(raw, "sub_process_ids")
        if value not in out:
            out.append(value)
    return out


def load_form_context(db: Session, ctx: FormContext) -> tuple[ResolvedFields, list[Section]]:
    process_id = _uuid_text_or_400(ctx.process_id, "process_id") if ctx.process_id else None
    sub_ids = _sub_process_ids_or_400(ctx.sub_process_ids)

    common = list_fields_by_scope(db, "common") if ctx.include_common else []
    process = list_fields_by_scope(db, "process", process_id) if process_id else []
    sub_fields = {sub_id: list_fields_by_scope(db, "sub_process", sub_id) for sub_id in sub_ids}
    resolved = resolve_fields(common, process, sub_fields, sub_ids, sub_process_names(db, sub_ids))
    sections = list_sections(db, process_id, sub_ids, ctx.include_common)
    return resolved, sections


def resolve_form_service(ctx: FormContext, db: Session) -> ResolvedFormOut:
    resolved, sections = load_form_context(db, ctx)
    return ResolvedFormOut(fields=resolved, sections=organize_sections(resolved.all_fields(), sections))


def form_visibility_service(payload: FormAnswersIn, db: Session) -> dict[str, bool]:
    resolved, sections = load_form_context(db, payload)
    return visibility_map(resolved.all_fields(), payload.answers, sections)


def _session_for(payload: FormAnswersIn, db: Session) -> FormSession:
    resolved, sections = load_form_context(db, payload)
    return FormSession(
        resolved.all_fields(),
        payload.answers,
        sections=sections,
        validate_on_change=False,
        apply_defaults=False,
        lookup_fetcher=DatabaseLookupFetcher(db),
    )


def validate_form_service(payload: FormAnswersIn, db: Session) -> FormValidationOut:
    summary = _session_for(payload, db).validate_all()
    return FormValidationOut(**summary.model_dump())


def _field_or_404(db: Session, field_id: str) -> FieldDefinition:
    field_uuid = uuid_or_none(field_id)
    row = db.get(CustomField, field_uuid) if field_uuid is not None else None
    if row is None or not row.enabled:
        raise HTTPException(status_code=404, detail="Field not found")
    definition = field_row_to_definition(row)
    if definition is None:
        raise HTTPException(status_code=404, detail="Field not found")
    return definition


def _table_field_or_400(db: Session, field_id: str) -> FieldDefinition:
    field = _field_or_404(db, field_id)
    if field.field_type != "repeatable_table":
        raise HTTPException(status_code=400, detail="Field is not a repeatable table")
    return field


def table_columns_service(field_id: str, db: Session) -> TableColumnsOut:
    field = _table_field_or_400(db, field_id)
    engine = RepeatableTableEngine(field)
    return TableColumnsOut(
        field_id=field.id,
        columns=engine.effective_columns(),
        editable=[column.key for column in engine.editable_columns()],
    )


def lookup_select_service(field_id: str, payload: LookupSelectIn, db: Session) -> TableRowsOut:
    field = _table_field_or_400(db, field_id)
    engine = RepeatableTableEngine(
        field,
        payload.rows,
        lookup_cache=LookupCache(DatabaseLookupFetcher(db)),
    )
    if engine.column(payload.column_key) is None:
        raise HTTPException(status_code=400, detail=f'Unknown column "{payload.column_key}"')
    rows = engine.on_lookup_select(payload.row_id, payload.column_key, payload.label)
    return TableRowsOut(field_id=field.id, rows=serialize_rows(rows))


def lookup_rows_service(
    table: str,
    db: Session,
    *,
    value_column: str,
    label_column: str,
    display_columns: str | None = None,
    filter_column: str | None = None,
    filter_value: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    columns = [c.strip() for c in str(display_columns or "").split(",") if c.strip()]
    return list_lookup_rows(
        db,
        table,
        value_column,
        label_column,
        columns,
        filter_column,
        filter_value,
        limit=limit,
    )


def get_request_answers_service(request_id: str, db: Session) -> RequestAnswersOut:
    key = str(request_id or "").strip()
    if not key:
        raise HTTPException(status_code=400, detail='Field "request_id" is required')
    return RequestAnswersOut(request_id=key, answers=load_request_answers(db, key))


def save_request_answers_service(request_id: str, payload: FormAnswersIn, db: Session) -> RequestAnswersOut:
    key = str(request_id or "").strip()
    if not key:
        raise HTTPException(status_code=400, detail='Field "request_id" is required')
    session = _session_for(payload, db)
    summary = session.validate_all()
    if not summary.valid:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Some fields are invalid",
                "errors": summary.errors,
                "first_invalid_field_id": summary.first_invalid_field_id,
            },
        )
    save_request_answers(db, key, session.submission_payload())
    return RequestAnswersOut(request_id=key, answers=load_request_answers(db, key))
