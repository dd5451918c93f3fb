from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Sequence

from app.core.config import settings
from app.schemas.fields import FieldDefinition, FormValidationSummary, Section, ValidationResult
from app.services.field_conditions import visibility_map
from app.services.field_validation import validate_field
from app.services.lookup_cache import LookupCache, LookupFetcher
from app.services.repeatable_table import RepeatableTableEngine
from app.services.request_answers import build_submission_payload

_LOG = logging.getLogger("app.forms")

EVENT_ANSWER_CHANGED = "answer_changed"
EVENT_VISIBILITY_CHANGED = "visibility_changed"
EVENT_FIRST_INVALID = "first_invalid"

SessionListener = Callable[[str, dict[str, Any]], None]


class FormSession:
    """Answer state of one open form.

    Visibility is recomputed for every field after each answer change.
    Hidden fields keep their answer but are never validated. Messages are
    surfaced only for touched fields; a field becomes touched on blur or on
    validate_all().
    """

    def __init__(
        self,
        fields: Sequence[FieldDefinition],
        answers: dict[str, Any] | None = None,
        *,
        sections: Iterable[Section] = (),
        validate_on_change: bool | None = None,
        lookup_cache: LookupCache | None = None,
        lookup_fetcher: LookupFetcher | None = None,
        apply_defaults: bool = True,
    ):
        self.fields: list[FieldDefinition] = list(fields)
        self.sections: list[Section] = list(sections)
        self.validate_on_change = (
            settings.FORM_VALIDATE_ON_CHANGE if validate_on_change is None else bool(validate_on_change)
        )
        self.lookup_cache = lookup_cache if lookup_cache is not None else LookupCache(lookup_fetcher)
        self._by_id = {field.id: field for field in self.fields}
        self._answers: dict[str, Any] = dict(answers or {})
        if apply_defaults:
            for field in self.fields:
                if field.id not in self._answers and field.default_value not in (None, ""):
                    self._answers[field.id] = field.default_value
        self._touched: set[str] = set()
        self._results: dict[str, ValidationResult] = {}
        self._listeners: list[SessionListener] = []
        self._visible = visibility_map(self.fields, self._answers, self.sections)

    # observers

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            listener(event, payload)

    # state

    @property
    def answers(self) -> dict[str, Any]:
        return dict(self._answers)

    def field(self, field_id: str) -> FieldDefinition | None:
        return self._by_id.get(field_id)

    def get_answer(self, field_id: str) -> Any:
        return self._answers.get(field_id)

    def is_visible(self, field_id: str) -> bool:
        return self._visible.get(field_id, False)

    def visible_fields(self) -> list[FieldDefinition]:
        return [field for field in self.fields if self._visible.get(field.id)]

    def is_touched(self, field_id: str) -> bool:
        return field_id in self._touched

    def set_answer(self, field_id: str, value: Any) -> None:
        if field_id not in self._by_id:
            _LOG.debug("ignoring answer for unknown field=%s", field_id)
            return
        self._answers[field_id] = value

        previous = self._visible
        self._visible = visibility_map(self.fields, self._answers, self.sections)
        changed = {fid: shown for fid, shown in self._visible.items() if previous.get(fid) != shown}
        for fid, shown in changed.items():
            if not shown:
                self._results.pop(fid, None)

        if self.validate_on_change:
            self.validate_field(field_id)

        self._emit(EVENT_ANSWER_CHANGED, {"field_id": field_id, "value": value})
        if changed:
            self._emit(EVENT_VISIBILITY_CHANGED, {"changes": changed})

    def blur(self, field_id: str) -> ValidationResult | None:
        if field_id not in self._by_id:
            return None
        self._touched.add(field_id)
        return self.validate_field(field_id)

    def validate_field(self, field_id: str) -> ValidationResult | None:
        field = self._by_id.get(field_id)
        if field is None:
            return None
        if not self.is_visible(field_id):
            self._results.pop(field_id, None)
            return ValidationResult(valid=True, field_id=field_id)
        result = validate_field(self._answers.get(field_id), field)
        self._results[field_id] = result
        return result

    def error_for(self, field_id: str) -> str | None:
        if field_id not in self._touched:
            return None
        result = self._results.get(field_id)
        if result is None or result.valid:
            return None
        return result.message

    def errors(self) -> dict[str, str]:
        return {fid: msg for fid in self._by_id if (msg := self.error_for(fid))}

    def validate_all(self) -> FormValidationSummary:
        errors: dict[str, str] = {}
        first_invalid: str | None = None
        self._results = {}
        for field in self.fields:
            self._touched.add(field.id)
            if not self.is_visible(field.id):
                continue
            result = validate_field(self._answers.get(field.id), field)
            self._results[field.id] = result
            if result.valid:
                continue
            errors[field.id] = result.message or "Validation error"
            if first_invalid is None:
                first_invalid = field.id

        if first_invalid is not None:
            self._emit(EVENT_FIRST_INVALID, {"field_id": first_invalid})
        return FormValidationSummary(valid=not errors, errors=errors, first_invalid_field_id=first_invalid)

    def table(self, field_id: str) -> RepeatableTableEngine | None:
        field = self._by_id.get(field_id)
        if field is None or field.field_type != "repeatable_table":
            return None
        return RepeatableTableEngine(
            field,
            self._answers.get(field_id),
            lookup_cache=self.lookup_cache,
            on_change=self.set_answer,
        )

    def submission_payload(self) -> dict[str, Any]:
        return build_submission_payload(self.fields, self._answers)


def validate_all(
    fields: Sequence[FieldDefinition],
    answers: dict[str, Any],
    sections: Iterable[Section] = (),
) -> FormValidationSummary:
    session = FormSession(fields, answers, sections=sections, validate_on_change=False, apply_defaults=False)
    return session.validate_all()
