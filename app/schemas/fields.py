from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

FieldType = Literal[
    "text",
    "textarea",
    "number",
    "date",
    "datetime",
    "email",
    "phone",
    "url",
    "checkbox",
    "select",
    "multiselect",
    "user_search",
    "department_search",
    "file",
    "table_lookup",
    "repeatable_table",
]
FieldScope = Literal["common", "process", "sub_process"]
ConditionOperator = Literal["equals", "not_equals", "contains", "not_empty"]
ConditionsLogic = Literal["AND", "OR"]
ColumnType = Literal["text", "number", "select", "table_lookup"]

FIELD_TYPE_LABELS: Dict[str, str] = {
    "text": "Short text",
    "textarea": "Long text",
    "number": "Number",
    "date": "Date",
    "datetime": "Date and time",
    "email": "Email",
    "phone": "Phone",
    "url": "URL",
    "checkbox": "Checkbox",
    "select": "Drop-down list",
    "multiselect": "Multiple choice",
    "user_search": "Person",
    "department_search": "Department",
    "file": "File",
    "table_lookup": "List from table",
    "repeatable_table": "Repeatable table",
}


def normalize_options(value: Any) -> List[Dict[str, str]]:
    """Turn `["A", {"value": "b", "label": "B"}, ...]` into value/label pairs."""
    if not isinstance(value, (list, tuple)):
        return []
    out: List[Dict[str, str]] = []
    for item in value:
        if isinstance(item, FieldOption):
            out.append({"value": item.value, "label": item.label})
            continue
        if isinstance(item, dict):
            raw_value = item.get("value")
            if raw_value is None:
                raw_value = item.get("label")
            if raw_value is None:
                continue
            raw_label = item.get("label")
            out.append({"value": str(raw_value), "label": str(raw_label if raw_label is not None else raw_value)})
            continue
        if item is None:
            continue
        text = str(item)
        out.append({"value": text, "label": text})
    return out


class FieldOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class FieldCondition(BaseModel):
    field_id: str
    operator: Optional[str] = None
    value: Optional[str] = None


class ColumnDefinition(BaseModel):
    """Column of a repeatable-table field, free or bound to a lookup table."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(validation_alias=AliasChoices("key", "value"))
    label: str = ""
    column_type: ColumnType = Field(default="text", validation_alias=AliasChoices("column_type", "columnType"))
    options: List[FieldOption] = Field(default_factory=list, validation_alias=AliasChoices("options", "selectOptions"))
    lookup_table: Optional[str] = Field(default=None, validation_alias=AliasChoices("lookup_table", "lookupTable"))
    lookup_value_column: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("lookup_value_column", "lookupValueColumn")
    )
    lookup_label_column: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("lookup_label_column", "lookupLabelColumn")
    )
    lookup_filter_column: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("lookup_filter_column", "lookupFilterColumn")
    )
    lookup_filter_value: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("lookup_filter_value", "lookupFilterValue")
    )
    lookup_display_columns: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lookup_display_columns", "lookupDisplayColumns", "displayColumns"),
    )

    @field_validator("options", mode="before")
    @classmethod
    def _normalize_options(cls, value: Any) -> List[Dict[str, str]]:
        return normalize_options(value)

    @field_validator("lookup_display_columns", mode="before")
    @classmethod
    def _normalize_display_columns(cls, value: Any) -> List[str]:
        if not isinstance(value, (list, tuple)):
            return []
        out: List[str] = []
        for item in value:
            text = str(item or "").strip()
            if text and text not in out:
                out.append(text)
        return out

    @model_validator(mode="before")
    @classmethod
    def _default_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("label"):
            data = dict(data)
            data["label"] = data.get("key") or data.get("value") or ""
        return data

    @property
    def is_table_bound(self) -> bool:
        return self.column_type == "table_lookup" and bool(self.lookup_table)

    @property
    def value_column(self) -> str:
        return self.lookup_value_column or "id"

    @property
    def label_column(self) -> str:
        return self.lookup_label_column or "name"

    @property
    def display_columns(self) -> List[str]:
        # The label column is always displayed, merged into the searchable cell.
        if not self.is_table_bound:
            return []
        label_column = self.label_column
        return [label_column] + [c for c in self.lookup_display_columns if c != label_column]

    @property
    def extra_display_columns(self) -> List[str]:
        return self.display_columns[1:]

    def synthetic_key(self, display_column: str) -> str:
        return f"{self.key}__{display_column}"


class FieldDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    label: str = ""
    field_type: FieldType = Field(default="text", validation_alias=AliasChoices("field_type", "type"))
    required: bool = Field(default=False, validation_alias=AliasChoices("required", "is_required"))
    placeholder: Optional[str] = None
    default_value: Optional[Any] = None
    order_index: int = 0
    description: Optional[str] = None

    is_common: bool = False
    process_template_id: Optional[str] = None
    sub_process_template_id: Optional[str] = None
    section_id: Optional[str] = None

    condition_field_id: Optional[str] = None
    condition_operator: Optional[str] = None
    condition_value: Optional[str] = None
    conditions_logic: ConditionsLogic = "AND"
    additional_conditions: List[FieldCondition] = Field(default_factory=list)

    options: List[FieldOption] = Field(default_factory=list)
    lookup_table: Optional[str] = None
    lookup_value_column: Optional[str] = None
    lookup_label_column: Optional[str] = None
    columns: List[ColumnDefinition] = Field(default_factory=list)

    validation_type: Optional[str] = None
    validation_params: Dict[str, Any] = Field(default_factory=dict)
    validation_regex: Optional[str] = None
    validation_message: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @field_validator("id", "process_template_id", "sub_process_template_id", "section_id", "condition_field_id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("options", mode="before")
    @classmethod
    def _normalize_options(cls, value: Any) -> List[Dict[str, str]]:
        return normalize_options(value)

    @field_validator("additional_conditions", "columns", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("validation_params", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("conditions_logic", mode="before")
    @classmethod
    def _normalize_logic(cls, value: Any) -> str:
        return "OR" if str(value or "").strip().upper() == "OR" else "AND"

    @model_validator(mode="after")
    def _single_scope(self) -> "FieldDefinition":
        if self.is_common:
            self.process_template_id = None
            self.sub_process_template_id = None
        elif self.sub_process_template_id:
            self.process_template_id = None
        if not self.label:
            self.label = self.name or self.id
        return self

    @property
    def scope(self) -> FieldScope:
        if self.is_common:
            return "common"
        if self.sub_process_template_id:
            return "sub_process"
        return "process"

    @property
    def option_values(self) -> List[str]:
        return [option.value for option in self.options]


class Section(BaseModel):
    id: str
    name: str = ""
    label: str = ""
    order_index: int = 0
    is_common: bool = False
    process_template_id: Optional[str] = None
    sub_process_template_id: Optional[str] = None
    condition_field_id: Optional[str] = None
    condition_operator: Optional[str] = None
    condition_value: Optional[str] = None

    @field_validator("id", "process_template_id", "sub_process_template_id", "condition_field_id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @model_validator(mode="after")
    def _single_scope(self) -> "Section":
        if self.is_common:
            self.process_template_id = None
            self.sub_process_template_id = None
        elif self.sub_process_template_id:
            self.process_template_id = None
        if not self.label:
            self.label = self.name or self.id
        return self


class ValidationResult(BaseModel):
    valid: bool
    message: Optional[str] = None
    field_id: Optional[str] = None


class FormValidationSummary(BaseModel):
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    first_invalid_field_id: Optional[str] = None


class RepeatableTableRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    values: Dict[str, str] = Field(default_factory=dict)

    @field_validator("values", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> Dict[str, str]:
        if not isinstance(value, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in value.items()}


class TableColumn(BaseModel):
    """One displayed column of a repeatable table."""

    key: str
    label: str
    kind: Literal["free", "lookup", "display"]
    read_only: bool = False
    source_column: Optional[str] = None


class SubProcessFieldGroup(BaseModel):
    sub_process_id: str
    sub_process_name: str
    fields: List[FieldDefinition] = Field(default_factory=list)


class ResolvedFields(BaseModel):
    common_fields: List[FieldDefinition] = Field(default_factory=list)
    process_fields: List[FieldDefinition] = Field(default_factory=list)
    sub_process_groups: List[SubProcessFieldGroup] = Field(default_factory=list)

    def all_fields(self) -> List[FieldDefinition]:
        out = list(self.common_fields) + list(self.process_fields)
        for group in self.sub_process_groups:
            out.extend(group.fields)
        return out


class FormSection(BaseModel):
    id: str
    label: str
    fields: List[FieldDefinition] = Field(default_factory=list)
    is_default: bool = False
