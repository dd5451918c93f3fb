from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Iterable

from app.schemas.fields import FieldDefinition, ValidationResult

_LOG = logging.getLogger("app.forms")

REQUIRED_MESSAGE = "This field is required"

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_RE = re.compile(r"^[0-9\s+\-().]+$")

VALIDATION_PATTERNS = {
    "phone_fr": re.compile(r"^(?:(?:\+|00)33|0)\s*[1-9](?:[\s.-]*\d{2}){4}$"),
    "phone_intl": re.compile(r"^\+?[1-9]\d{1,14}$"),
    "siret": re.compile(r"^\d{14}$"),
    "siren": re.compile(r"^\d{9}$"),
    "email": EMAIL_RE,
    "url": re.compile(r"^https?://[^\s/$.?#].[^\s]*$"),
    "iban": re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{4,30}$"),
    "postal_code_fr": re.compile(r"^\d{5}$"),
}

VALIDATION_MESSAGES = {
    "phone_fr": "Invalid French phone number (e.g. 06 12 34 56 78)",
    "phone_intl": "Invalid international phone number (e.g. +33612345678)",
    "siret": "Invalid SIRET number (14 digits)",
    "siren": "Invalid SIREN number (9 digits)",
    "email": "Invalid email address",
    "url": "Invalid URL (must start with http:// or https://)",
    "iban": "Invalid IBAN",
    "postal_code_fr": "Invalid postal code (5 digits)",
    "phone": "Phone number may only contain digits, spaces and + - ( ) .",
    "number": "Please enter a valid number",
    "date": "Invalid date",
    "regex": "Invalid format",
}


def is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def value_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value if item is not None).strip()
    return str(value).strip()


def parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value or "").strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    text = str(value or "").strip()
    if not text:
        return None
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
        return datetime.combine(date.fromisoformat(text), datetime.min.time())
    except ValueError:
        return None


def luhn_is_valid(digits: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def iban_is_valid(iban: str) -> bool:
    if len(iban) < 5:
        return False
    rearranged = iban[4:] + iban[:4]
    numeric = "".join(str(ord(ch) - 55) if "A" <= ch <= "Z" else ch for ch in rearranged)
    remainder = 0
    for ch in numeric:
        remainder = (remainder * 10 + int(ch)) % 97
    return remainder == 1


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _invalid(field: FieldDefinition, message: str) -> ValidationResult:
    return ValidationResult(valid=False, message=message, field_id=field.id)


def _type_rule(text: str, field: FieldDefinition) -> str | None:
    field_type = field.field_type
    params = field.validation_params

    if field_type == "email":
        if not EMAIL_RE.match(text):
            return VALIDATION_MESSAGES["email"]
        return None

    if field_type == "url":
        if not text.startswith(("http://", "https://")):
            return VALIDATION_MESSAGES["url"]
        return None

    if field_type == "number":
        number = parse_number(text)
        if number is None:
            return VALIDATION_MESSAGES["number"]
        if field.min_value is not None and number < field.min_value:
            return field.validation_message or f"Value must be greater than or equal to {_format_bound(field.min_value)}"
        if field.max_value is not None and number > field.max_value:
            return field.validation_message or f"Value must be less than or equal to {_format_bound(field.max_value)}"
        return None

    if field_type == "phone":
        if not PHONE_RE.match(text):
            return VALIDATION_MESSAGES["phone"]
        return None

    if field_type in {"date", "datetime"}:
        parsed = parse_date(text)
        if parsed is None:
            return VALIDATION_MESSAGES["date"]
        min_date = parse_date(params.get("min_date"))
        if min_date is not None and parsed < min_date:
            return field.validation_message or f"Date must be on or after {min_date.date().isoformat()}"
        max_date = parse_date(params.get("max_date"))
        if max_date is not None and parsed > max_date:
            return field.validation_message or f"Date must be on or before {max_date.date().isoformat()}"
        return None

    if field_type in {"text", "textarea"}:
        min_length = parse_number(params.get("min_length"))
        if min_length and len(text) < min_length:
            return field.validation_message or f"At least {int(min_length)} characters required"
        max_length = parse_number(params.get("max_length"))
        if max_length and len(text) > max_length:
            return field.validation_message or f"At most {int(max_length)} characters allowed"
        return None

    return None


def _preset_rule(text: str, field: FieldDefinition) -> str | None:
    preset = str(field.validation_type or "").strip()
    pattern = VALIDATION_PATTERNS.get(preset)
    if pattern is None:
        return None
    compact = re.sub(r"\s", "", text)
    if preset == "iban":
        compact = compact.upper()
    message = field.validation_message or VALIDATION_MESSAGES.get(preset) or VALIDATION_MESSAGES["regex"]
    if not pattern.match(compact):
        return message
    if preset in {"siret", "siren"} and not luhn_is_valid(compact):
        return field.validation_message or f"Invalid {preset.upper()} number (check digit)"
    if preset == "iban" and not iban_is_valid(compact):
        return message
    return None


def _custom_rule(text: str, field: FieldDefinition) -> str | None:
    raw = field.validation_regex
    if not raw:
        return None
    try:
        pattern = re.compile(raw)
    except re.error:
        _LOG.debug("ignoring invalid validation pattern field=%s pattern=%r", field.id, raw)
        return None
    if pattern.search(text) is None:
        return field.validation_message or VALIDATION_MESSAGES["regex"]
    return None


def validate_field(value: Any, field: FieldDefinition) -> ValidationResult:
    """Check one answer against its field definition.

    Returns at most one message. A required-but-empty answer short-circuits
    every other rule; an empty optional answer is always valid. Broken
    administrator configuration (bad regex, unknown preset) never fails the
    answer.
    """
    if is_empty_value(value):
        if field.required:
            return _invalid(field, REQUIRED_MESSAGE)
        return ValidationResult(valid=True, field_id=field.id)

    # Rows and file descriptors carry no scalar rules.
    if field.field_type in {"repeatable_table", "file"} or isinstance(value, dict):
        return ValidationResult(valid=True, field_id=field.id)

    text = value_to_text(value)
    for rule in (_type_rule, _preset_rule, _custom_rule):
        message = rule(text, field)
        if message:
            return _invalid(field, message)
    return ValidationResult(valid=True, field_id=field.id)


def validate_fields(fields: Iterable[FieldDefinition], answers: dict[str, Any]) -> dict[str, ValidationResult]:
    return {field.id: validate_field(answers.get(field.id), field) for field in fields}
