"""Case routing endpoints: assign, reassign, close."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from caseflow.core.deps import get_current_session, get_db, require_csrf_header, require_roles
from caseflow.core.errors import translate_persistence_errors
from caseflow.db.enums import ROLES_CAN_ASSIGN
from caseflow.schemas.assignment import (
    AssignCaseRequest,
    AssignmentRead,
    CaseRead,
    ReassignCaseRequest,
)
from caseflow.schemas.auth import UserSession
from caseflow.services import assignment_service
from caseflow.services.assignment_service import AssignmentResult, UnassignedResult

router = APIRouter()


def _to_read(result: AssignmentResult | UnassignedResult) -> AssignmentRead:
    if isinstance(result, UnassignedResult):
        return AssignmentRead(status="unassigned", case_id=result.case_id, reason=result.reason)
    return AssignmentRead(
        status="assigned",
        case_id=result.case_id,
        coordinator_id=result.coordinator_id,
        scid=result.scid,
        previous_coordinator_id=result.previous_coordinator_id,
        rule_id=result.rule_id,
        assigned_at=result.assigned_at,
        changed=result.changed,
    )


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get a case and its current owner."""
    member = assignment_service.get_case(db, session.tenant_id, case_id)
    if not member:
        raise HTTPException(status_code=404, detail="Case not found")
    return member


@router.post(
    "/{case_id}/assign",
    response_model=AssignmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_case(
    case_id: UUID,
    data: AssignCaseRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_ASSIGN)),
    db: Session = Depends(get_db),
):
    """Route a case through the tenant's assignment rules."""
    result = assignment_service.assign_case(
        db,
        session.tenant_id,
        case_id,
        actor_id=session.user_id,
        case_attributes=data.attributes.as_routing_attributes(),
    )
    with translate_persistence_errors("assign_case", case_id):
        db.commit()
    return _to_read(result)


@router.post(
    "/{case_id}/reassign",
    response_model=AssignmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def reassign_case(
    case_id: UUID,
    data: ReassignCaseRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_ASSIGN)),
    db: Session = Depends(get_db),
):
    """Manually move a case to a specific coordinator."""
    result = assignment_service.reassign_case(
        db, session.tenant_id, case_id, data.coordinator_id, actor_id=session.user_id
    )
    with translate_persistence_errors("reassign_case", case_id):
        db.commit()
    return _to_read(result)


@router.post(
    "/{case_id}/close",
    response_model=CaseRead,
    dependencies=[Depends(require_csrf_header)],
)
def close_case(
    case_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_ASSIGN)),
    db: Session = Depends(get_db),
):
    """Close a case and release the owner's caseload slot."""
    member = assignment_service.close_case(db, session.tenant_id, case_id, actor_id=session.user_id)
    with translate_persistence_errors("close_case", case_id):
        db.commit()
    return member
