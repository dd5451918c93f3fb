from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from app.schemas.fields import FormSection, ResolvedFields, TableColumn


class FormContext(BaseModel):
    process_id: Optional[str] = None
    sub_process_ids: List[str] = Field(default_factory=list)
    include_common: bool = True


class FormAnswersIn(FormContext):
    answers: Dict[str, Any] = Field(default_factory=dict)


class ResolvedFormOut(BaseModel):
    fields: ResolvedFields
    sections: List[FormSection] = Field(default_factory=list)


class FormValidationOut(BaseModel):
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    first_invalid_field_id: Optional[str] = None


class TableColumnsOut(BaseModel):
    field_id: str
    columns: List[TableColumn] = Field(default_factory=list)
    editable: List[str] = Field(default_factory=list)


class LookupSelectIn(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_id: str
    column_key: str
    label: str


class TableRowsOut(BaseModel):
    field_id: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class RequestAnswersOut(BaseModel):
    request_id: str
    answers: Dict[str, Any] = Field(default_factory=dict)
