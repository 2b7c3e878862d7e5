"""Schemas for service coordinators and the supervisory hierarchy."""

from uuid import UUID

from pydantic import BaseModel

from caseflow.db.enums import Zone


class HierarchyUpdate(BaseModel):
    """
    Partial hierarchy update.

    Omitted fields are left unchanged; an explicit null clears the edge.
    """
    supervisor_id: UUID | None = None
    manager_id: UUID | None = None
    director_id: UUID | None = None


class CoordinatorRead(BaseModel):
    id: UUID
    scid: str
    first_name: str
    last_name: str
    zone: Zone
    role: str
    supervisor_id: UUID | None
    manager_id: UUID | None
    director_id: UUID | None
    max_caseload: int | None
    current_caseload: int
    is_active: bool

    model_config = {"from_attributes": True}


class ChainEntry(BaseModel):
    id: UUID
    scid: str
    role: str

    model_config = {"from_attributes": True}
