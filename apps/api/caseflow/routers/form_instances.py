"""Form instance lifecycle endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from caseflow.core.deps import get_current_session, get_db, require_csrf_header
from caseflow.core.errors import translate_persistence_errors
from caseflow.db.enums import FormInstanceStatus
from caseflow.schemas.auth import UserSession
from caseflow.schemas.forms import (
    FormInstanceCreate,
    FormInstanceRead,
    ResponsesUpdate,
    TransitionRequest,
)
from caseflow.services import form_instance_service

router = APIRouter()


@router.get("", response_model=list[FormInstanceRead])
def list_form_instances(
    status_filter: FormInstanceStatus | None = Query(None, alias="status"),
    owner_coordinator_id: UUID | None = None,
    case_id: UUID | None = None,
    limit: int = Query(100, ge=1, le=500),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List form instances; status=pending is the approval queue."""
    return form_instance_service.list_instances(
        db,
        session.tenant_id,
        status=status_filter,
        owner_coordinator_id=owner_coordinator_id,
        case_id=case_id,
        limit=limit,
    )


@router.post(
    "",
    response_model=FormInstanceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_form_instance(
    data: FormInstanceCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Start a draft form instance for a case."""
    instance = form_instance_service.create_instance(
        db,
        session.tenant_id,
        data.template_id,
        data.case_id,
        actor_id=session.user_id,
        owner_coordinator_id=data.owner_coordinator_id,
        responses=data.responses,
    )
    with translate_persistence_errors("create_form_instance", instance.id):
        db.commit()
    return instance


@router.get("/{instance_id}", response_model=FormInstanceRead)
def get_form_instance(
    instance_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return form_instance_service.get_instance(db, session.tenant_id, instance_id)


@router.patch(
    "/{instance_id}/responses",
    response_model=FormInstanceRead,
    dependencies=[Depends(require_csrf_header)],
)
def save_responses(
    instance_id: UUID,
    data: ResponsesUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Merge answers into a draft."""
    instance = form_instance_service.save_responses(
        db,
        session.tenant_id,
        instance_id,
        data.responses,
        actor_id=session.user_id,
        expected_version=data.expected_version,
    )
    with translate_persistence_errors("save_responses", instance_id):
        db.commit()
    return instance


@router.post(
    "/{instance_id}/transition",
    response_model=FormInstanceRead,
    dependencies=[Depends(require_csrf_header)],
)
def transition_form_instance(
    instance_id: UUID,
    data: TransitionRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Submit, approve, reject, revise or finalize."""
    instance = form_instance_service.transition(
        db,
        session.tenant_id,
        instance_id,
        data.target_status,
        actor_id=session.user_id,
        expected_version=data.expected_version,
        reason=data.reason,
    )
    with translate_persistence_errors("transition_form_instance", instance_id):
        db.commit()
    return instance
