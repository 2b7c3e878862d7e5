"""Service coordinator hierarchy and caseload bookkeeping.

The supervisory tree is stored as parent-id references and validated on
write. Caseload counters are row-locked and adjusted one audited step at a
time; assignment_service is the only caller that changes them.
"""

import logging
from collections import deque
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from caseflow.core.errors import (
    CapacityExceededError,
    CoordinatorNotFoundError,
    CrossTenantError,
    CycleError,
)
from caseflow.core.structured_logging import build_log_context
from caseflow.db.enums import AuditAction, AuditEntityType, CoordinatorRole, Zone
from caseflow.db.models import ServiceCoordinator
from caseflow.services import audit_service

logger = logging.getLogger(__name__)

HIERARCHY_FIELDS = ("supervisor_id", "manager_id", "director_id")

# Sentinel for "leave this hierarchy edge unchanged"
UNSET = object()


# =============================================================================
# Lookups
# =============================================================================


def get_coordinator(db: Session, tenant_id: UUID, coordinator_id: UUID) -> ServiceCoordinator | None:
    """Get a coordinator scoped to a tenant."""
    return db.execute(
        select(ServiceCoordinator).where(
            and_(
                ServiceCoordinator.id == coordinator_id,
                ServiceCoordinator.tenant_id == tenant_id,
            )
        )
    ).scalar_one_or_none()


def list_coordinators(
    db: Session,
    tenant_id: UUID,
    zone: Zone | None = None,
    role: CoordinatorRole | None = None,
    active_only: bool = True,
) -> list[ServiceCoordinator]:
    """List a tenant's coordinators, lightest caseload first."""
    query = select(ServiceCoordinator).where(ServiceCoordinator.tenant_id == tenant_id)
    if zone is not None:
        query = query.where(ServiceCoordinator.zone == Zone(zone).value)
    if role is not None:
        query = query.where(ServiceCoordinator.role == CoordinatorRole(role).value)
    if active_only:
        query = query.where(ServiceCoordinator.is_active.is_(True))
    query = query.order_by(ServiceCoordinator.current_caseload.asc(), ServiceCoordinator.scid.asc())
    return list(db.execute(query).scalars().all())


def get_coordinator_for_user(db: Session, tenant_id: UUID, user_id: UUID) -> ServiceCoordinator | None:
    """Get the active coordinator record linked to a staff user."""
    return db.execute(
        select(ServiceCoordinator).where(
            and_(
                ServiceCoordinator.tenant_id == tenant_id,
                ServiceCoordinator.user_id == user_id,
                ServiceCoordinator.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()


def _require_coordinator(db: Session, coordinator_id: UUID) -> ServiceCoordinator:
    coordinator = db.get(ServiceCoordinator, coordinator_id)
    if not coordinator:
        raise CoordinatorNotFoundError(f"Service coordinator {coordinator_id} not found")
    return coordinator


def _lock_coordinator(db: Session, coordinator_id: UUID) -> ServiceCoordinator:
    coordinator = db.execute(
        select(ServiceCoordinator)
        .where(ServiceCoordinator.id == coordinator_id)
        .with_for_update(key_share=True)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not coordinator:
        raise CoordinatorNotFoundError(f"Service coordinator {coordinator_id} not found")
    return coordinator


def lock_coordinators(
    db: Session,
    tenant_id: UUID,
    coordinator_ids,
) -> dict[UUID, ServiceCoordinator]:
    """Take the chain lock, then lock each coordinator in ascending id order."""
    audit_service.lock_chain(db, tenant_id)
    return {
        coordinator_id: _lock_coordinator(db, coordinator_id)
        for coordinator_id in sorted(set(coordinator_ids))
    }


def _parent_ids(db: Session, coordinator_id: UUID) -> list[UUID]:
    row = db.execute(
        select(
            ServiceCoordinator.supervisor_id,
            ServiceCoordinator.manager_id,
            ServiceCoordinator.director_id,
        ).where(ServiceCoordinator.id == coordinator_id)
    ).one_or_none()
    if row is None:
        return []
    return [parent_id for parent_id in row if parent_id is not None]


# =============================================================================
# Hierarchy
# =============================================================================


def get_supervisor_chain(db: Session, coordinator_id: UUID) -> list[ServiceCoordinator]:
    """
    Return every coordinator above `coordinator_id`, nearest first.

    Breadth-first over supervisor, manager and director edges. Each id is
    visited once, so corrupted data containing a cycle still terminates.
    """
    start = _require_coordinator(db, coordinator_id)
    visited: set[UUID] = {start.id}
    chain: list[ServiceCoordinator] = []
    queue: deque[UUID] = deque(start.upward_ids)

    while queue:
        parent_id = queue.popleft()
        if parent_id in visited:
            continue
        visited.add(parent_id)
        parent = db.get(ServiceCoordinator, parent_id)
        if parent is None:
            continue
        chain.append(parent)
        queue.extend(parent.upward_ids)
    return chain


def validate_hierarchy_edge(
    db: Session,
    coordinator_id: UUID,
    proposed_supervisor_id: UUID,
) -> None:
    """
    Check that `proposed_supervisor_id` may sit above `coordinator_id`.

    Raises:
        CoordinatorNotFoundError: either id is unknown
        CrossTenantError: the two coordinators belong to different tenants
        CycleError: the proposed supervisor is the coordinator itself, or
            its upward chain already reaches the coordinator
    """
    coordinator = _require_coordinator(db, coordinator_id)
    proposed = _require_coordinator(db, proposed_supervisor_id)

    if coordinator.tenant_id != proposed.tenant_id:
        raise CrossTenantError(coordinator_id, proposed_supervisor_id)

    if proposed.id == coordinator.id:
        raise CycleError(coordinator_id, proposed_supervisor_id)

    visited: set[UUID] = set()
    queue: deque[UUID] = deque([proposed.id])
    while queue:
        current_id = queue.popleft()
        if current_id == coordinator.id:
            raise CycleError(coordinator_id, proposed_supervisor_id)
        if current_id in visited:
            continue
        visited.add(current_id)
        queue.extend(_parent_ids(db, current_id))


def update_hierarchy(
    db: Session,
    tenant_id: UUID,
    coordinator_id: UUID,
    actor_id: UUID | None,
    supervisor_id=UNSET,
    manager_id=UNSET,
    director_id=UNSET,
) -> ServiceCoordinator:
    """
    Change a coordinator's supervisor/manager/director references.

    Pass None to clear an edge; omit an argument to leave it unchanged.
    Every new edge is validated before anything is written.
    """
    coordinator = get_coordinator(db, tenant_id, coordinator_id)
    if not coordinator:
        raise CoordinatorNotFoundError(f"Service coordinator {coordinator_id} not found")

    requested = {
        "supervisor_id": supervisor_id,
        "manager_id": manager_id,
        "director_id": director_id,
    }
    changes = {
        field: value
        for field, value in requested.items()
        if value is not UNSET and value != getattr(coordinator, field)
    }
    if not changes:
        return coordinator

    for value in changes.values():
        if value is not None:
            validate_hierarchy_edge(db, coordinator.id, value)

    before = {field: getattr(coordinator, field) for field in HIERARCHY_FIELDS}
    with db.begin_nested():
        lock_coordinators(db, tenant_id, [coordinator.id])
        for field, value in changes.items():
            setattr(coordinator, field, value)
        db.flush()
        audit_service.record_event(
            db=db,
            tenant_id=tenant_id,
            entity_type=AuditEntityType.SERVICE_COORDINATOR,
            entity_id=coordinator.id,
            action=AuditAction.HIERARCHY_UPDATED,
            actor_id=actor_id,
            before_state=before,
            after_state={field: getattr(coordinator, field) for field in HIERARCHY_FIELDS},
        )

    logger.info(
        "Coordinator hierarchy updated",
        extra=build_log_context(tenant_id=tenant_id, coordinator_id=coordinator_id, actor_id=actor_id),
    )
    return coordinator


# =============================================================================
# Capacity
# =============================================================================


def coordinator_has_capacity(coordinator: ServiceCoordinator) -> bool:
    """Active and below max_caseload (no max means unlimited)."""
    if not coordinator.is_active:
        return False
    if coordinator.max_caseload is None:
        return True
    return coordinator.current_caseload < coordinator.max_caseload


def has_capacity(db: Session, coordinator_id: UUID) -> bool:
    """Check whether a coordinator can take another case."""
    return coordinator_has_capacity(_require_coordinator(db, coordinator_id))


def adjust_caseload(
    db: Session,
    coordinator_id: UUID,
    delta: int,
    actor_id: UUID | None = None,
    reason: str | None = None,
) -> ServiceCoordinator:
    """
    Apply `delta` to a coordinator's caseload under a row lock.

    - Positive delta past max_caseload raises CapacityExceededError, nothing changes
    - Negative delta below zero clamps at 0 and logs an inconsistency warning
    - Each successful call writes exactly one audit event (before/after caseload)
    """
    if delta == 0:
        raise ValueError("Caseload delta must be non-zero")

    tenant_id = _require_coordinator(db, coordinator_id).tenant_id
    coordinator = lock_coordinators(db, tenant_id, [coordinator_id])[coordinator_id]
    before = coordinator.current_caseload
    after = before + delta
    clamped = False

    if delta > 0 and coordinator.max_caseload is not None and after > coordinator.max_caseload:
        raise CapacityExceededError(
            f"Coordinator {coordinator.scid} is at capacity "
            f"({before}/{coordinator.max_caseload})",
            coordinator_id=coordinator.id,
        )
    if after < 0:
        logger.warning(
            "Caseload would go negative (%s%+d); clamping to 0",
            before,
            delta,
            extra=build_log_context(tenant_id=coordinator.tenant_id, coordinator_id=coordinator.id),
        )
        after = 0
        clamped = True

    coordinator.current_caseload = after
    db.flush()

    audit_service.record_event(
        db=db,
        tenant_id=coordinator.tenant_id,
        entity_type=AuditEntityType.SERVICE_COORDINATOR,
        entity_id=coordinator.id,
        action=AuditAction.CASELOAD_ADJUSTED,
        actor_id=actor_id,
        before_state={"current_caseload": before},
        after_state={"current_caseload": after},
        details={"delta": delta, "clamped": clamped, "reason": reason},
    )
    return coordinator
