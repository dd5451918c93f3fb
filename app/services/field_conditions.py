from __future__ import annotations

from typing import Any, Collection, Iterable, Mapping

from app.schemas.fields import FieldDefinition, Section

CONDITION_OPERATORS = ("equals", "not_equals", "contains", "not_empty")


def _has_value(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def evaluate_condition(
    condition_field_id: str | None,
    operator: str | None,
    expected: str | None,
    answers: Mapping[str, Any],
    known_field_ids: Collection[str],
) -> bool:
    if not condition_field_id:
        return True
    # A condition on a field outside the form never hides anything.
    if condition_field_id not in known_field_ids:
        return True

    actual = answers.get(condition_field_id)
    op = str(operator or "").strip().lower()
    if op == "equals":
        return isinstance(actual, str) and actual == (expected or "")
    if op == "not_equals":
        return not (isinstance(actual, str) and actual == (expected or ""))
    if op == "contains":
        return isinstance(actual, str) and (expected or "").lower() in actual.lower()
    if op == "not_empty":
        return _has_value(actual)
    return True


def is_field_visible(
    field: FieldDefinition,
    answers: Mapping[str, Any],
    known_field_ids: Collection[str],
) -> bool:
    main = evaluate_condition(
        field.condition_field_id,
        field.condition_operator,
        field.condition_value,
        answers,
        known_field_ids,
    )
    if not field.condition_field_id or not field.additional_conditions:
        return main

    results = [main]
    for condition in field.additional_conditions:
        results.append(
            evaluate_condition(condition.field_id, condition.operator, condition.value, answers, known_field_ids)
        )
    if field.conditions_logic == "OR":
        return any(results)
    return all(results)


def is_section_visible(
    section: Section,
    answers: Mapping[str, Any],
    known_field_ids: Collection[str],
) -> bool:
    return evaluate_condition(
        section.condition_field_id,
        section.condition_operator,
        section.condition_value,
        answers,
        known_field_ids,
    )


def visibility_map(
    fields: Iterable[FieldDefinition],
    answers: Mapping[str, Any],
    sections: Iterable[Section] = (),
) -> dict[str, bool]:
    fields = list(fields)
    known = {field.id for field in fields}
    hidden_sections = {section.id for section in sections if not is_section_visible(section, answers, known)}
    out: dict[str, bool] = {}
    for field in fields:
        if field.section_id and field.section_id in hidden_sections:
            out[field.id] = False
            continue
        out[field.id] = is_field_visible(field, answers, known)
    return out
