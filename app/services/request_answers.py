from __future__ import annotations

import uuid
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.models.common import utcnow
from app.models.request_field_value import RequestFieldValue
from app.schemas.fields import FieldDefinition, RepeatableTableRow
from app.services.repeatable_table import coerce_rows, serialize_rows


def split_multiselect(value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value or "").split(",")
    out: list[str] = []
    for item in items:
        text = str(item or "").strip()
        if text and text not in out:
            out.append(text)
    return out


def answer_to_payload(field: FieldDefinition, value: Any) -> Any:
    if value is None:
        return None
    if field.field_type == "multiselect":
        return ",".join(split_multiselect(value))
    if field.field_type == "repeatable_table":
        return serialize_rows(coerce_rows(value))
    if isinstance(value, RepeatableTableRow):
        return {"id": value.id, "values": dict(value.values)}
    return value


def build_submission_payload(fields: Iterable[FieldDefinition], answers: dict[str, Any]) -> dict[str, Any]:
    """Answers keyed by field id, in the shape the storage layer persists."""
    payload: dict[str, Any] = {}
    for field in fields:
        if field.id not in answers:
            continue
        payload[field.id] = answer_to_payload(field, answers[field.id])
    return payload


def _field_uuid(raw: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        return None


def load_request_answers(db: Session, request_id: str) -> dict[str, Any]:
    rows = (
        db.query(RequestFieldValue)
        .filter(RequestFieldValue.request_id == str(request_id))
        .order_by(RequestFieldValue.created_at.asc())
        .all()
    )
    return {str(row.field_id): row.value for row in rows}


def save_request_answers(db: Session, request_id: str, payload: dict[str, Any]) -> int:
    existing = {
        str(row.field_id): row
        for row in db.query(RequestFieldValue).filter(RequestFieldValue.request_id == str(request_id)).all()
    }
    saved = 0
    for field_id, value in payload.items():
        field_uuid = _field_uuid(field_id)
        if field_uuid is None:
            continue
        row = existing.get(str(field_uuid))
        if row is None:
            row = RequestFieldValue(request_id=str(request_id), field_id=field_uuid, value=value)
        else:
            row.value = value
            row.updated_at = utcnow()
        db.add(row)
        saved += 1
    db.commit()
    return saved
