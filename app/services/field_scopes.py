from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from app.schemas.fields import FieldDefinition, ResolvedFields, SubProcessFieldGroup


def sort_by_order_index(fields: Iterable[FieldDefinition]) -> list[FieldDefinition]:
    # sorted() is stable, ties keep source order.
    return sorted(fields, key=lambda field: field.order_index)


def resolve_fields(
    common_fields: Sequence[FieldDefinition],
    process_fields: Sequence[FieldDefinition],
    sub_process_fields: Mapping[str, Sequence[FieldDefinition]],
    active_sub_process_ids: Sequence[str],
    sub_process_names: Mapping[str, str] | None = None,
) -> ResolvedFields:
    """Merge the per-scope field lists of a request context.

    Common fields from any source are collected once into the shared common
    bucket (first occurrence wins). Process-specific fields form one bucket
    and each active sub-process contributes a named group of its specific
    fields. A field id never appears twice in the result.
    """
    names = sub_process_names or {}
    seen: set[str] = set()
    common: list[FieldDefinition] = []
    process: list[FieldDefinition] = []

    def _take(field: FieldDefinition, bucket: list[FieldDefinition]) -> None:
        if field.id in seen:
            return
        seen.add(field.id)
        if field.is_common:
            common.append(field)
        else:
            bucket.append(field)

    for field in common_fields:
        _take(field, common)
    for field in process_fields:
        _take(field, process)

    groups: list[SubProcessFieldGroup] = []
    for raw_id in active_sub_process_ids:
        sub_process_id = str(raw_id or "").strip()
        if not sub_process_id or any(group.sub_process_id == sub_process_id for group in groups):
            continue
        specific: list[FieldDefinition] = []
        for field in sub_process_fields.get(sub_process_id, ()):
            _take(field, specific)
        if not specific:
            continue
        groups.append(
            SubProcessFieldGroup(
                sub_process_id=sub_process_id,
                sub_process_name=names.get(sub_process_id) or sub_process_id,
                fields=sort_by_order_index(specific),
            )
        )

    return ResolvedFields(
        common_fields=sort_by_order_index(common),
        process_fields=sort_by_order_index(process),
        sub_process_groups=groups,
    )
