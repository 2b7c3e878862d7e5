"""Schemas for form templates and form instances."""

import re
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from caseflow.db.enums import FormInstanceStatus, QuestionType


ValidationRuleType = Literal[
    "required",
    "minLength",
    "maxLength",
    "pattern",
    "min",
    "max",
    "email",
    "phone",
]


class ValidationRuleDefinition(BaseModel):
    type: ValidationRuleType
    value: Any = None
    message: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def validate_value(self) -> "ValidationRuleDefinition":
        """Length rules need a non-negative int, bounds a number, pattern a valid regex."""
        if self.type in {"minLength", "maxLength"}:
            if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
                raise ValueError(f"{self.type} requires a non-negative integer value")
        elif self.type in {"min", "max"}:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValueError(f"{self.type} requires a numeric value")
        elif self.type == "pattern":
            if not isinstance(self.value, str) or not self.value:
                raise ValueError("pattern requires a regular expression")
            try:
                re.compile(self.value)
            except re.error as exc:
                raise ValueError(f"Invalid pattern: {exc}") from exc
        return self


class QuestionOption(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)
    value: str = Field(..., min_length=1, max_length=255)
    order: int = 0


class QuestionDefinition(BaseModel):
    """One question of a form template, as stored in FormTemplate.questions."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, max_length=100)
    type: QuestionType
    text: str = Field(..., min_length=1, max_length=1000)
    required: bool = False
    validation: list[ValidationRuleDefinition] = Field(default_factory=list)
    options: list[QuestionOption] | None = None
    help_text: str | None = Field(None, alias="helpText", max_length=500)
    order: int = 0


# =============================================================================
# Form instances
# =============================================================================


class FormInstanceCreate(BaseModel):
    template_id: UUID
    case_id: UUID
    owner_coordinator_id: UUID | None = None
    responses: dict[str, Any] | None = None


class ResponsesUpdate(BaseModel):
    responses: dict[str, Any]
    expected_version: int = Field(..., ge=1)


class TransitionRequest(BaseModel):
    target_status: FormInstanceStatus
    expected_version: int = Field(..., ge=1)
    reason: str | None = Field(None, max_length=1000)


class FormInstanceRead(BaseModel):
    id: UUID
    template_id: UUID
    member_id: UUID
    owner_coordinator_id: UUID | None
    status: FormInstanceStatus
    responses: dict[str, Any]
    submitted_at: datetime | None
    reviewed_by: UUID | None
    reviewed_at: datetime | None
    rejection_reason: str | None
    approved_at: datetime | None
    rejected_at: datetime | None
    completed_at: datetime | None
    version: int

    model_config = {"from_attributes": True}