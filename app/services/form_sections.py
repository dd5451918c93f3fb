from __future__ import annotations

from typing import Sequence

from app.core.config import settings
from app.schemas.fields import FieldDefinition, FormSection, Section
from app.services.field_scopes import sort_by_order_index

DEFAULT_SECTION_ID = "default"


def organize_sections(fields: Sequence[FieldDefinition], sections: Sequence[Section]) -> list[FormSection]:
    result: list[FormSection] = []
    placed: set[str] = set()

    for section in sorted(sections, key=lambda item: item.order_index):
        section_fields = [field for field in fields if field.section_id == section.id and field.id not in placed]
        if not section_fields:
            continue
        placed.update(field.id for field in section_fields)
        result.append(FormSection(id=section.id, label=section.label, fields=sort_by_order_index(section_fields)))

    unassigned = [field for field in fields if field.id not in placed]
    if not unassigned:
        return result

    if not result:
        label = settings.FORM_SINGLE_SECTION_LABEL
    else:
        label = settings.FORM_DEFAULT_SECTION_LABEL
    default = FormSection(
        id=DEFAULT_SECTION_ID,
        label=label,
        fields=sort_by_order_index(unassigned),
        is_default=True,
    )
    return [default] + result
