"""Schemas for audit events."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AuditEventRead(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    action: str
    actor_id: UUID | None
    before_state: dict | None
    after_state: dict | None
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditChainStatus(BaseModel):
    valid: bool
