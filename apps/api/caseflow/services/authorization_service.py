"""Authorization provider - who may act on work owned by a coordinator.

An actor is a user with an active membership in the tenant, optionally linked
to a service coordinator record. Review authority comes from either a tenant
role (ROLES_WITH_REVIEW_AUTHORITY) or sitting above the owner in the
supervisory chain.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from caseflow.core.errors import AuthorizationError
from caseflow.db.enums import ROLES_WITH_REVIEW_AUTHORITY, Role
from caseflow.db.models import Membership
from caseflow.services import hierarchy_service


@dataclass(frozen=True)
class ActorContext:
    """Resolved identity of the user performing an action."""

    user_id: UUID
    tenant_id: UUID
    role: Role
    coordinator_id: UUID | None = None


def get_actor_context(db: Session, tenant_id: UUID, actor_id: UUID) -> ActorContext:
    """
    Resolve an actor's role and coordinator identity inside a tenant.

    Raises:
        AuthorizationError: no active membership, or an unknown role
    """
    membership = db.execute(
        select(Membership).where(
            and_(
                Membership.user_id == actor_id,
                Membership.tenant_id == tenant_id,
                Membership.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    if not membership:
        raise AuthorizationError("Actor has no membership in this tenant", actor_id=actor_id)
    if not Role.has_value(membership.role):
        raise AuthorizationError(f"Unknown role '{membership.role}'", actor_id=actor_id)

    coordinator = hierarchy_service.get_coordinator_for_user(db, tenant_id, actor_id)
    return ActorContext(
        user_id=actor_id,
        tenant_id=tenant_id,
        role=Role(membership.role),
        coordinator_id=coordinator.id if coordinator else None,
    )


def is_owner(actor: ActorContext, owner_coordinator_id: UUID | None) -> bool:
    return owner_coordinator_id is not None and actor.coordinator_id == owner_coordinator_id


def has_review_authority(
    db: Session,
    actor: ActorContext,
    owner_coordinator_id: UUID | None,
) -> bool:
    """Role-based authority, or the actor supervises the owner (directly or transitively)."""
    if actor.role in ROLES_WITH_REVIEW_AUTHORITY:
        return True
    if actor.coordinator_id is None or owner_coordinator_id is None:
        return False
    if actor.coordinator_id == owner_coordinator_id:
        return False
    chain = hierarchy_service.get_supervisor_chain(db, owner_coordinator_id)
    return any(ancestor.id == actor.coordinator_id for ancestor in chain)


def require_owner_or_reviewer(
    db: Session,
    actor: ActorContext,
    owner_coordinator_id: UUID | None,
) -> None:
    """Raise AuthorizationError unless the actor owns the work or may review it."""
    if is_owner(actor, owner_coordinator_id):
        return
    if has_review_authority(db, actor, owner_coordinator_id):
        return
    raise AuthorizationError("Only the owner or a reviewer may change this form", actor_id=actor.user_id)


def require_reviewer(
    db: Session,
    actor: ActorContext,
    owner_coordinator_id: UUID | None,
) -> None:
    """Raise AuthorizationError unless the actor has review authority over the owner."""
    if not has_review_authority(db, actor, owner_coordinator_id):
        raise AuthorizationError(
            "Only the owner's supervisory chain or a reviewer role may review this form",
            actor_id=actor.user_id,
        )
