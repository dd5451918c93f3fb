from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.forms import FormAnswersIn, FormContext, LookupSelectIn

from .service import (
    form_visibility_service,
    get_request_answers_service,
    lookup_rows_service,
    lookup_select_service,
    resolve_form_service,
    save_request_answers_service,
    table_columns_service,
    validate_form_service,
)

router = APIRouter()


@router.post("/resolve")
def resolve_form(payload: FormContext, db: Session = Depends(get_db)):
    return resolve_form_service(payload, db)


@router.post("/visibility")
def form_visibility(payload: FormAnswersIn, db: Session = Depends(get_db)):
    return form_visibility_service(payload, db)


@router.post("/validate")
def validate_form(payload: FormAnswersIn, db: Session = Depends(get_db)):
    return validate_form_service(payload, db)


@router.get("/lookup/{table}")
def lookup_rows(
    table: str,
    db: Session = Depends(get_db),
    value_column: str = Query(default="id"),
    label_column: str = Query(default="name"),
    display_columns: str | None = Query(default=None),
    filter_column: str | None = Query(default=None),
    filter_value: str | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=500),
):
    return lookup_rows_service(
        table,
        db,
        value_column=value_column,
        label_column=label_column,
        display_columns=display_columns,
        filter_column=filter_column,
        filter_value=filter_value,
        limit=limit,
    )


@router.get("/tables/{field_id}/columns")
def table_columns(field_id: str, db: Session = Depends(get_db)):
    return table_columns_service(field_id, db)


@router.post("/tables/{field_id}/lookup-select")
def table_lookup_select(field_id: str, payload: LookupSelectIn, db: Session = Depends(get_db)):
    return lookup_select_service(field_id, payload, db)


@router.get("/requests/{request_id}/answers")
def get_request_answers(request_id: str, db: Session = Depends(get_db)):
    return get_request_answers_service(request_id, db)


@router.put("/requests/{request_id}/answers")
def save_request_answers(request_id: str, payload: FormAnswersIn, db: Session = Depends(get_db)):
    return save_request_answers_service(request_id, payload, db)
