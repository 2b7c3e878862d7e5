"""Schemas for case routing."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from caseflow.db.enums import Zone


class CaseAttributes(BaseModel):
    """
    Routing attributes for a case.

    Anything left unset falls back to what the member record carries.
    """
    survey_type: str | None = Field(None, max_length=100)
    zone: Zone | None = None
    plan_type: str | None = Field(None, max_length=50)
    panels: list[str] | None = None
    specializations: list[str] | None = None
    provider_networks: list[str] | None = None
    pics_score: Decimal | None = None

    model_config = {"use_enum_values": True}

    def as_routing_attributes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AssignCaseRequest(BaseModel):
    attributes: CaseAttributes = Field(default_factory=CaseAttributes)


class ReassignCaseRequest(BaseModel):
    coordinator_id: UUID = Field(..., description="Coordinator taking over the case")


class AssignmentRead(BaseModel):
    status: Literal["assigned", "unassigned"]
    case_id: UUID
    coordinator_id: UUID | None = None
    scid: str | None = None
    previous_coordinator_id: UUID | None = None
    rule_id: UUID | None = None
    assigned_at: datetime | None = None
    changed: bool = False
    reason: str | None = None


class CaseRead(BaseModel):
    id: UUID
    member_id: str
    member_zone: Zone | None
    service_coordinator_id: UUID | None
    assigned_scid: str | None
    assigned_at: datetime | None

    model_config = {"from_attributes": True}
