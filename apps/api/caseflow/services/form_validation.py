"""Response validation against form template question definitions."""

import re
from datetime import date, datetime
from typing import Any, Iterable

from pydantic import TypeAdapter

from caseflow.db.enums import QuestionType
from caseflow.schemas.forms import QuestionDefinition, ValidationRuleDefinition

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9()\-.\s]{7,20}$")

SKIPPED_TYPES = {QuestionType.SECTION_HEADER}

_QUESTION_LIST = TypeAdapter(list[QuestionDefinition])


def parse_questions(raw_questions: Iterable[dict[str, Any]] | None) -> list[QuestionDefinition]:
    """Parse stored template questions (raises pydantic.ValidationError on bad definitions)."""
    return _QUESTION_LIST.validate_python(list(raw_questions or []))


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _is_required(question: QuestionDefinition) -> bool:
    return question.required or any(rule.type == "required" for rule in question.validation)


def _option_values(question: QuestionDefinition) -> set[str] | None:
    if not question.options:
        return None
    return {option.value for option in question.options}


def _check_type(question: QuestionDefinition, value: Any) -> str | None:
    """Return an error message when the value has the wrong shape for the question type."""
    qtype = question.type

    if qtype == QuestionType.TEXT_INPUT:
        if not isinstance(value, str):
            return "Must be text"
        return None

    if qtype == QuestionType.NUMERIC_INPUT:
        if _as_number(value) is None:
            return "Must be a number"
        return None

    if qtype == QuestionType.DATE:
        if isinstance(value, str):
            try:
                date.fromisoformat(value)
                return None
            except ValueError:
                pass
        return "Must be a date (YYYY-MM-DD)"

    if qtype == QuestionType.DATETIME:
        if isinstance(value, str):
            try:
                datetime.fromisoformat(value)
                return None
            except ValueError:
                pass
        return "Must be a date and time"

    if qtype == QuestionType.SINGLE_SELECT:
        if not isinstance(value, str):
            return "Must be a single option"
        allowed = _option_values(question)
        if allowed is not None and value not in allowed:
            return "Invalid option"
        return None

    if qtype == QuestionType.MULTI_SELECT:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return "Must be a list of options"
        allowed = _option_values(question)
        if allowed is not None and any(v not in allowed for v in value):
            return "Invalid option"
        return None

    if qtype == QuestionType.YES_NO:
        if isinstance(value, bool):
            return None
        if isinstance(value, str) and value.strip().lower() in {"yes", "no"}:
            return None
        return "Must be yes or no"

    # FILE_UPLOAD: content is stored elsewhere; only presence is checked
    return None


def _check_rule(rule: ValidationRuleDefinition, value: Any) -> str | None:
    """Return the default message for a failed rule, or None when it passes."""
    if rule.type == "required":
        return None

    if rule.type in {"minLength", "maxLength"}:
        if not isinstance(value, (str, list)):
            return None
        limit = rule.value
        if rule.type == "minLength" and len(value) < limit:
            return f"Must be at least {limit} characters"
        if rule.type == "maxLength" and len(value) > limit:
            return f"Must be at most {limit} characters"
        return None

    if rule.type == "pattern":
        if not isinstance(value, str):
            return None
        if re.fullmatch(rule.value, value) is None:
            return "Does not match required pattern"
        return None

    if rule.type in {"min", "max"}:
        number = _as_number(value)
        limit = _as_number(rule.value)
        if number is None or limit is None:
            return None
        if rule.type == "min" and number < limit:
            return f"Must be at least {rule.value}"
        if rule.type == "max" and number > limit:
            return f"Must be at most {rule.value}"
        return None

    if rule.type == "email":
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
            return "Must be a valid email address"
        return None

    if rule.type == "phone":
        if not isinstance(value, str) or not PHONE_PATTERN.match(value):
            return "Must be a valid phone number"
        return None

    return None


def validate_responses(
    questions: Iterable[QuestionDefinition],
    responses: dict[str, Any] | None,
) -> dict[str, str]:
    """
    Validate a response set.

    Returns a mapping of question id -> message for every missing or invalid
    answer (first failure per question). An empty mapping means valid.
    """
    responses = responses or {}
    errors: dict[str, str] = {}

    for question in questions:
        if question.type in SKIPPED_TYPES:
            continue

        value = responses.get(question.id)
        if _is_empty(value):
            if _is_required(question):
                required_rule = next((r for r in question.validation if r.type == "required"), None)
                errors[question.id] = (
                    required_rule.message if required_rule and required_rule.message else "Required"
                )
            continue

        type_error = _check_type(question, value)
        if type_error:
            errors[question.id] = type_error
            continue

        for rule in question.validation:
            message = _check_rule(rule, value)
            if message:
                errors[question.id] = rule.message or message
                break

    return errors
