"""Audit router - read access to the audit trail."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from caseflow.core.deps import get_db, require_roles
from caseflow.db.enums import ROLES_CAN_VIEW_AUDIT, AuditEntityType
from caseflow.schemas.audit import AuditChainStatus, AuditEventRead
from caseflow.schemas.auth import UserSession
from caseflow.services import audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/events", response_model=list[AuditEventRead])
def list_audit_events(
    entity_type: AuditEntityType | None = Query(None, description="Filter by entity type"),
    entity_id: UUID | None = Query(None, description="Filter by entity"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_AUDIT)),
):
    """
    List audit events for the tenant, oldest first.

    Requires: Administrator or Manager role
    """
    return audit_service.list_events(
        db, session.tenant_id, entity_type=entity_type, entity_id=entity_id, limit=limit
    )


@router.get("/verify", response_model=AuditChainStatus)
def verify_audit_chain(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_AUDIT)),
):
    """Recompute the tenant's hash chain."""
    return AuditChainStatus(valid=audit_service.verify_chain(db, session.tenant_id))
