from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Sequence

from pydantic import ValidationError
from sqlalchemy import MetaData, Table, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.custom_field import CustomField
from app.models.form_section import FormSection
from app.models.process_template import SubProcessTemplate
from app.models.table_lookup_config import TableLookupConfig
from app.schemas.fields import FieldDefinition, Section

_LOG = logging.getLogger("app.lookup")

SCOPE_KINDS = {"common", "process", "sub_process"}


def uuid_or_none(raw: Any) -> uuid.UUID | None:
    if raw is None:
        return None
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def field_row_to_definition(row: CustomField) -> FieldDefinition | None:
    payload: dict[str, Any] = {
        "id": str(row.id),
        "name": row.name,
        "label": row.label,
        "field_type": row.field_type,
        "required": bool(row.required),
        "placeholder": row.placeholder,
        "default_value": row.default_value,
        "order_index": int(row.order_index or 0),
        "description": row.description,
        "is_common": bool(row.is_common),
        "process_template_id": _str_or_none(row.process_template_id),
        "sub_process_template_id": _str_or_none(row.sub_process_template_id),
        "section_id": _str_or_none(row.section_id),
        "condition_field_id": _str_or_none(row.condition_field_id),
        "condition_operator": row.condition_operator,
        "condition_value": row.condition_value,
        "conditions_logic": row.conditions_logic,
        "additional_conditions": row.additional_conditions,
        "lookup_table": row.lookup_table,
        "lookup_value_column": row.lookup_value_column,
        "lookup_label_column": row.lookup_label_column,
        "validation_type": row.validation_type,
        "validation_params": row.validation_params,
        "validation_regex": row.validation_regex,
        "validation_message": row.validation_message,
        "min_value": row.min_value,
        "max_value": row.max_value,
    }
    # Repeatable tables keep their column definitions in the options column.
    if row.field_type == "repeatable_table":
        payload["columns"] = row.options or []
    else:
        payload["options"] = row.options or []
    try:
        return FieldDefinition.model_validate(payload)
    except ValidationError:
        _LOG.warning("skipping malformed field definition id=%s type=%s", row.id, row.field_type)
        return None


def section_row_to_definition(row: FormSection) -> Section:
    return Section(
        id=str(row.id),
        name=row.name,
        label=row.label,
        order_index=int(row.order_index or 0),
        is_common=bool(row.is_common),
        process_template_id=_str_or_none(row.process_template_id),
        sub_process_template_id=_str_or_none(row.sub_process_template_id),
        condition_field_id=_str_or_none(row.condition_field_id),
        condition_operator=row.condition_operator,
        condition_value=row.condition_value,
    )


def _definitions(rows: Iterable[CustomField]) -> list[FieldDefinition]:
    out: list[FieldDefinition] = []
    for row in rows:
        definition = field_row_to_definition(row)
        if definition is not None:
            out.append(definition)
    return out


def list_fields_by_scope(db: Session, scope_kind: str, scope_id: str | None = None) -> list[FieldDefinition]:
    kind = str(scope_kind or "").strip().lower()
    if kind not in SCOPE_KINDS:
        return []
    query = db.query(CustomField).filter(CustomField.enabled.is_(True))
    if kind == "common":
        query = query.filter(CustomField.is_common.is_(True))
    else:
        scope_uuid = uuid_or_none(scope_id)
        if scope_uuid is None:
            return []
        column = CustomField.process_template_id if kind == "process" else CustomField.sub_process_template_id
        query = query.filter(column == scope_uuid)
    rows = query.order_by(CustomField.order_index.asc(), CustomField.created_at.asc()).all()
    return _definitions(rows)


def list_sections(
    db: Session,
    process_id: str | None = None,
    sub_process_ids: Sequence[str] = (),
    include_common: bool = True,
) -> list[Section]:
    clauses = []
    if include_common:
        clauses.append(FormSection.is_common.is_(True))
    process_uuid = uuid_or_none(process_id)
    if process_uuid is not None:
        clauses.append(FormSection.process_template_id == process_uuid)
    sub_uuids = [u for u in (uuid_or_none(raw) for raw in sub_process_ids) if u is not None]
    if sub_uuids:
        clauses.append(FormSection.sub_process_template_id.in_(sub_uuids))
    if not clauses:
        return []
    rows = (
        db.query(FormSection)
        .filter(or_(*clauses))
        .order_by(FormSection.order_index.asc(), FormSection.created_at.asc())
        .all()
    )
    return [section_row_to_definition(row) for row in rows]


def sub_process_names(db: Session, sub_process_ids: Sequence[str]) -> dict[str, str]:
    sub_uuids = [u for u in (uuid_or_none(raw) for raw in sub_process_ids) if u is not None]
    if not sub_uuids:
        return {}
    rows = db.query(SubProcessTemplate.id, SubProcessTemplate.name).filter(SubProcessTemplate.id.in_(sub_uuids)).all()
    return {str(row_id): name for row_id, name in rows}


def _lookup_table_allowed(db: Session, table: str) -> bool:
    exists = (
        db.query(TableLookupConfig.id)
        .filter(TableLookupConfig.table_name == table, TableLookupConfig.is_active.is_(True))
        .first()
    )
    return exists is not None


def list_lookup_rows(
    db: Session,
    table: str,
    value_column: str,
    label_column: str,
    display_columns: Sequence[str] = (),
    filter_column: str | None = None,
    filter_value: str | None = None,
    *,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Rows of a reference table, ordered by label; any failure yields []."""
    table_name = str(table or "").strip()
    if not table_name:
        return []
    row_limit = settings.LOOKUP_ROW_LIMIT if limit is None else min(int(limit), settings.LOOKUP_ROW_LIMIT)
    try:
        if not _lookup_table_allowed(db, table_name):
            _LOG.warning("lookup table not configured table=%s", table_name)
            return []
        reflected = Table(table_name, MetaData(), autoload_with=db.connection())
        wanted: list[str] = []
        for name in [value_column, label_column, *display_columns]:
            name = str(name or "").strip()
            if name and name not in wanted:
                wanted.append(name)
        missing = [name for name in wanted if name not in reflected.c]
        if missing:
            _LOG.warning("lookup columns missing table=%s columns=%s", table_name, ",".join(missing))
            return []
        stmt = select(*[reflected.c[name] for name in wanted])
        if filter_column and filter_value is not None and filter_column in reflected.c:
            stmt = stmt.where(reflected.c[filter_column] == filter_value)
        stmt = stmt.order_by(reflected.c[str(label_column).strip()].asc()).limit(row_limit)
        return [dict(row._mapping) for row in db.execute(stmt)]
    except SQLAlchemyError:
        db.rollback()
        _LOG.warning("lookup query failed table=%s", table_name, exc_info=True)
        return []


class DatabaseLookupFetcher:
    """LookupCache fetcher bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    def __call__(
        self,
        table: str,
        value_column: str,
        label_column: str,
        display_columns: list[str],
        filter_column: str | None = None,
        filter_value: str | None = None,
    ) -> list[dict[str, Any]]:
        return list_lookup_rows(
            self.db,
            table,
            value_column,
            label_column,
            display_columns,
            filter_column,
            filter_value,
        )
