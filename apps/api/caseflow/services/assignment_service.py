"""Assignment engine - binds cases (members) to service coordinators.

Combines rule matcher output with capacity checks and commits the binding in
one savepoint: caseload counters, the member's ownership fields, open form
instances and the audit event move together or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from caseflow.core.config import settings
from caseflow.core.errors import (
    CapacityExceededError,
    CaseNotAssignedError,
    CaseNotFoundError,
    CoordinatorNotFoundError,
    NoRuleMatchedError,
    translate_persistence_errors,
)
from caseflow.core.structured_logging import build_log_context
from caseflow.db.enums import AuditAction, AuditEntityType, FormInstanceStatus
from caseflow.db.models import FormInstance, Member, ServiceCoordinator
from caseflow.services import audit_service, hierarchy_service, rule_matcher
from caseflow.services.rule_matcher import AssignmentCandidate
from caseflow.utils.normalization import normalize_token
from caseflow.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

# Instances that follow the case when it changes hands
OPEN_FORM_STATUSES = (
    FormInstanceStatus.DRAFT.value,
    FormInstanceStatus.PENDING.value,
    FormInstanceStatus.APPROVED.value,
    FormInstanceStatus.REJECTED.value,
)

NO_RULE_REASON = "no_rule"


@dataclass(frozen=True)
class AssignmentResult:
    """Outcome of a binding assignment."""

    case_id: UUID
    coordinator_id: UUID
    scid: str
    previous_coordinator_id: UUID | None
    rule_id: UUID | None
    assigned_at: datetime | None
    changed: bool = True


@dataclass(frozen=True)
class UnassignedResult:
    """No rule matched; the case is left for manual triage."""

    case_id: UUID
    reason: str = NO_RULE_REASON


# =============================================================================
# Lookups
# =============================================================================


def get_case(db: Session, tenant_id: UUID, case_id: UUID) -> Member | None:
    """Get a case (member) scoped to a tenant."""
    return db.execute(
        select(Member).where(and_(Member.id == case_id, Member.tenant_id == tenant_id))
    ).scalar_one_or_none()


def _lock_case(db: Session, tenant_id: UUID, case_id: UUID) -> Member:
    member = db.execute(
        select(Member)
        .where(and_(Member.id == case_id, Member.tenant_id == tenant_id))
        .with_for_update(key_share=True)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not member:
        raise CaseNotFoundError(f"Case {case_id} not found")
    return member


def _role_candidates(
    db: Session,
    tenant_id: UUID,
    role: str,
    zone: str | None,
) -> list[ServiceCoordinator]:
    """Coordinators eligible for a role rule, least loaded first (id breaks ties)."""
    coordinators = db.execute(
        select(ServiceCoordinator).where(
            and_(
                ServiceCoordinator.tenant_id == tenant_id,
                ServiceCoordinator.is_active.is_(True),
            )
        )
    ).scalars().all()

    wanted_role = normalize_token(role)
    wanted_zone = normalize_token(zone) if zone else None
    eligible = [
        c
        for c in coordinators
        if normalize_token(c.role) == wanted_role
        and (wanted_zone is None or normalize_token(c.zone) == wanted_zone)
        and hierarchy_service.coordinator_has_capacity(c)
    ]
    return sorted(eligible, key=lambda c: (c.current_caseload, str(c.id)))


def _user_candidate(db: Session, tenant_id: UUID, user_id: UUID) -> ServiceCoordinator:
    coordinator = db.execute(
        select(ServiceCoordinator).where(
            and_(
                ServiceCoordinator.tenant_id == tenant_id,
                ServiceCoordinator.user_id == user_id,
            )
        )
    ).scalars().first()
    if not coordinator:
        raise CoordinatorNotFoundError(f"No service coordinator linked to user {user_id}")
    return coordinator


# =============================================================================
# Commit
# =============================================================================


def _ownership_state(member: Member) -> dict[str, Any]:
    return {
        "service_coordinator_id": member.service_coordinator_id,
        "assigned_scid": member.assigned_scid,
    }


def _reown_open_instances(
    db: Session,
    member: Member,
    coordinator_id: UUID,
    actor_id: UUID | None,
) -> None:
    instances = db.execute(
        select(FormInstance).where(
            and_(
                FormInstance.tenant_id == member.tenant_id,
                FormInstance.member_id == member.id,
                FormInstance.status.in_(OPEN_FORM_STATUSES),
            )
        )
    ).scalars().all()
    for instance in instances:
        if instance.owner_coordinator_id == coordinator_id:
            continue
        previous_owner = instance.owner_coordinator_id
        instance.owner_coordinator_id = coordinator_id
        db.flush()
        audit_service.record_event(
            db=db,
            tenant_id=member.tenant_id,
            entity_type=AuditEntityType.FORM_INSTANCE,
            entity_id=instance.id,
            action=AuditAction.FORM_OWNER_CHANGED,
            actor_id=actor_id,
            before_state={"owner_coordinator_id": previous_owner},
            after_state={"owner_coordinator_id": coordinator_id},
        )


def _commit_assignment(
    db: Session,
    member: Member,
    coordinator: ServiceCoordinator,
    actor_id: UUID | None,
    action: AuditAction,
    rule_id: UUID | None = None,
) -> AssignmentResult:
    """Move the case to `coordinator`; every write happens or none does."""
    previous_id = member.service_coordinator_id
    before = _ownership_state(member)

    with db.begin_nested():
        touched = [coordinator.id] if previous_id is None else [coordinator.id, previous_id]
        hierarchy_service.lock_coordinators(db, member.tenant_id, touched)
        hierarchy_service.adjust_caseload(db, coordinator.id, 1, actor_id, reason=action.value)
        if previous_id is not None:
            hierarchy_service.adjust_caseload(db, previous_id, -1, actor_id, reason=action.value)

        member.service_coordinator_id = coordinator.id
        member.assigned_scid = coordinator.scid
        member.assigned_at = utcnow()
        db.flush()

        _reown_open_instances(db, member, coordinator.id, actor_id)

        audit_service.record_event(
            db=db,
            tenant_id=member.tenant_id,
            entity_type=AuditEntityType.MEMBER,
            entity_id=member.id,
            action=action,
            actor_id=actor_id,
            before_state=before,
            after_state=_ownership_state(member),
            details={"rule_id": rule_id} if rule_id else None,
        )

    logger.info(
        "Case %s",
        action.value,
        extra=build_log_context(
            tenant_id=member.tenant_id,
            case_id=member.id,
            coordinator_id=coordinator.id,
            rule_id=rule_id,
            actor_id=actor_id,
        ),
    )
    return AssignmentResult(
        case_id=member.id,
        coordinator_id=coordinator.id,
        scid=coordinator.scid,
        previous_coordinator_id=previous_id,
        rule_id=rule_id,
        assigned_at=member.assigned_at,
    )


def _unchanged(member: Member, rule_id: UUID | None = None) -> AssignmentResult:
    return AssignmentResult(
        case_id=member.id,
        coordinator_id=member.service_coordinator_id,
        scid=member.assigned_scid,
        previous_coordinator_id=member.service_coordinator_id,
        rule_id=rule_id,
        assigned_at=member.assigned_at,
        changed=False,
    )


def _assign_to_candidate(
    db: Session,
    member: Member,
    candidate: AssignmentCandidate,
    case_attributes: Mapping[str, Any],
    actor_id: UUID | None,
) -> AssignmentResult:
    if candidate.is_user_target:
        coordinator = _user_candidate(db, member.tenant_id, candidate.candidate_user_id)
        if coordinator.id == member.service_coordinator_id:
            return _unchanged(member, candidate.rule_id)
        if not hierarchy_service.coordinator_has_capacity(coordinator):
            raise CapacityExceededError(
                f"Coordinator {coordinator.scid} is at capacity or inactive",
                coordinator_id=coordinator.id,
            )
        coordinators = [coordinator]
    else:
        coordinators = _role_candidates(
            db, member.tenant_id, candidate.candidate_role, case_attributes.get("zone")
        )
        if not coordinators:
            raise CapacityExceededError(
                f"No active '{candidate.candidate_role}' coordinator has capacity"
            )

    for coordinator in coordinators:
        if coordinator.id == member.service_coordinator_id:
            return _unchanged(member, candidate.rule_id)
        try:
            return _commit_assignment(
                db, member, coordinator, actor_id, AuditAction.CASE_ASSIGNED, candidate.rule_id
            )
        except CapacityExceededError:
            # Filled up since it was listed; try the next least-loaded coordinator
            logger.info(
                "Coordinator filled concurrently, trying next candidate",
                extra=build_log_context(
                    tenant_id=member.tenant_id, case_id=member.id, coordinator_id=coordinator.id
                ),
            )
            if candidate.is_user_target:
                raise

    raise CapacityExceededError(
        f"Every '{candidate.candidate_role}' coordinator filled up during assignment"
    )


def _leave_unassigned(
    db: Session,
    member: Member,
    actor_id: UUID | None,
) -> UnassignedResult:
    audit_service.record_event(
        db=db,
        tenant_id=member.tenant_id,
        entity_type=AuditEntityType.MEMBER,
        entity_id=member.id,
        action=AuditAction.CASE_UNASSIGNED,
        actor_id=actor_id,
        before_state=_ownership_state(member),
        after_state=_ownership_state(member),
        details={"reason": NO_RULE_REASON},
    )
    logger.info(
        "No assignment rule matched; case left for triage",
        extra=build_log_context(tenant_id=member.tenant_id, case_id=member.id, actor_id=actor_id),
    )
    return UnassignedResult(case_id=member.id)


# =============================================================================
# Public API
# =============================================================================


def assign_case(
    db: Session,
    tenant_id: UUID,
    case_id: UUID,
    actor_id: UUID | None = None,
    case_attributes: Mapping[str, Any] | None = None,
) -> AssignmentResult | UnassignedResult:
    """
    Route a case through the tenant's rules and bind it to a coordinator.

    case_attributes supplements (and overrides) what the member record
    carries, e.g. the survey type of the request being routed.

    Returns:
        AssignmentResult, or UnassignedResult when no rule matches

    Raises:
        CaseNotFoundError, CoordinatorNotFoundError
        CapacityExceededError: the matched target is full (or, with
            ASSIGNMENT_FALLTHROUGH_ON_CAPACITY, every matched target is)
    """
    with translate_persistence_errors("assign_case", case_id):
        member = _lock_case(db, tenant_id, case_id)
        attributes = rule_matcher.attributes_from_member(member)
        if case_attributes:
            attributes.update({k: v for k, v in case_attributes.items() if v is not None})

        try:
            candidate = rule_matcher.find_assignment_candidate(db, tenant_id, attributes)
        except NoRuleMatchedError:
            return _leave_unassigned(db, member, actor_id)

        if not settings.ASSIGNMENT_FALLTHROUGH_ON_CAPACITY:
            return _assign_to_candidate(db, member, candidate, attributes, actor_id)

        capacity_error: CapacityExceededError | None = None
        for candidate in rule_matcher.iter_assignment_candidates(db, tenant_id, attributes):
            try:
                return _assign_to_candidate(db, member, candidate, attributes, actor_id)
            except CapacityExceededError as exc:
                logger.info(
                    "Rule target at capacity, falling through to next rule",
                    extra=build_log_context(
                        tenant_id=tenant_id, case_id=case_id, rule_id=candidate.rule_id
                    ),
                )
                capacity_error = exc
        raise capacity_error or NoRuleMatchedError(tenant_id)


def reassign_case(
    db: Session,
    tenant_id: UUID,
    case_id: UUID,
    new_coordinator_id: UUID,
    actor_id: UUID | None = None,
) -> AssignmentResult:
    """
    Manually move a case to a specific coordinator, bypassing the rules.

    Same capacity, transaction and audit guarantees as assign_case.
    """
    with translate_persistence_errors("reassign_case", case_id):
        member = _lock_case(db, tenant_id, case_id)
        coordinator = hierarchy_service.get_coordinator(db, tenant_id, new_coordinator_id)
        if not coordinator:
            raise CoordinatorNotFoundError(f"Service coordinator {new_coordinator_id} not found")

        if coordinator.id == member.service_coordinator_id:
            return _unchanged(member)

        if not hierarchy_service.coordinator_has_capacity(coordinator):
            raise CapacityExceededError(
                f"Coordinator {coordinator.scid} is at capacity or inactive",
                coordinator_id=coordinator.id,
            )
        return _commit_assignment(db, member, coordinator, actor_id, AuditAction.CASE_REASSIGNED)


def close_case(
    db: Session,
    tenant_id: UUID,
    case_id: UUID,
    actor_id: UUID | None = None,
) -> Member:
    """Release a case: decrement the owner's caseload and clear the assignment."""
    with translate_persistence_errors("close_case", case_id):
        member = _lock_case(db, tenant_id, case_id)
        if member.service_coordinator_id is None:
            raise CaseNotAssignedError(case_id)

        previous_id = member.service_coordinator_id
        before = _ownership_state(member)
        with db.begin_nested():
            hierarchy_service.adjust_caseload(
                db, previous_id, -1, actor_id, reason=AuditAction.CASE_CLOSED.value
            )
            member.service_coordinator_id = None
            member.assigned_scid = None
            member.assigned_at = None
            db.flush()
            audit_service.record_event(
                db=db,
                tenant_id=tenant_id,
                entity_type=AuditEntityType.MEMBER,
                entity_id=member.id,
                action=AuditAction.CASE_CLOSED,
                actor_id=actor_id,
                before_state=before,
                after_state=_ownership_state(member),
            )

        logger.info(
            "Case closed",
            extra=build_log_context(
                tenant_id=tenant_id, case_id=case_id, coordinator_id=previous_id, actor_id=actor_id
            ),
        )
        return member
