"""Service coordinator hierarchy endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from caseflow.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from caseflow.core.errors import translate_persistence_errors
from caseflow.db.enums import ROLES_CAN_MANAGE_HIERARCHY, CoordinatorRole, Zone
from caseflow.schemas.auth import UserSession
from caseflow.schemas.coordinator import ChainEntry, CoordinatorRead, HierarchyUpdate
from caseflow.services import hierarchy_service

router = APIRouter()


@router.get("", response_model=list[CoordinatorRead])
def list_coordinators(
    zone: Zone | None = None,
    role: CoordinatorRole | None = None,
    include_inactive: bool = False,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List coordinators, optionally within one zone or role."""
    return hierarchy_service.list_coordinators(
        db,
        session.tenant_id,
        zone=zone,
        role=role,
        active_only=not include_inactive,
    )


@router.get("/{coordinator_id}", response_model=CoordinatorRead)
def get_coordinator(
    coordinator_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    coordinator = hierarchy_service.get_coordinator(db, session.tenant_id, coordinator_id)
    if not coordinator:
        raise HTTPException(status_code=404, detail="Coordinator not found")
    return coordinator


@router.get("/{coordinator_id}/chain", response_model=list[ChainEntry])
def get_supervisor_chain(
    coordinator_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Coordinators above this one, nearest first."""
    if not hierarchy_service.get_coordinator(db, session.tenant_id, coordinator_id):
        raise HTTPException(status_code=404, detail="Coordinator not found")
    return hierarchy_service.get_supervisor_chain(db, coordinator_id)


@router.patch(
    "/{coordinator_id}/hierarchy",
    response_model=CoordinatorRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_hierarchy(
    coordinator_id: UUID,
    data: HierarchyUpdate,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_HIERARCHY)),
    db: Session = Depends(get_db),
):
    """Change supervisor/manager/director references (omitted fields are kept)."""
    coordinator = hierarchy_service.update_hierarchy(
        db,
        session.tenant_id,
        coordinator_id,
        actor_id=session.user_id,
        **data.model_dump(exclude_unset=True),
    )
    with translate_persistence_errors("update_hierarchy", coordinator_id):
        db.commit()
    return coordinator
