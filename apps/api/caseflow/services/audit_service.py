"""Audit recorder - append-only, hash-chained trail of routing and lifecycle events.

Every assignment decision, caseload adjustment, and form transition writes one
AuditEvent inside the caller's transaction. Audit is not best-effort: if the
insert fails, the error propagates and the enclosing operation rolls back.

Security guidelines:
- NEVER store form responses, names, or contact data in states/details
- Use ids and status snapshots only
"""

import hashlib
import json
import uuid
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from caseflow.db.enums import AuditAction, AuditEntityType
from caseflow.db.models import AuditEvent, Tenant
from caseflow.utils.timestamps import ensure_utc, utcnow

GENESIS_HASH = "0" * 64


def canonical_json(obj: dict | None) -> str:
    """
    Serialize object to canonical JSON for consistent hashing.

    Uses sorted keys, compact separators, and str() for non-JSON types.
    This MUST be used consistently everywhere hashes are computed.
    """
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def _normalize_state(state: dict[str, Any] | None) -> dict[str, Any] | None:
    """Round-trip through canonical JSON so stored and hashed values are identical."""
    if state is None:
        return None
    return json.loads(canonical_json(state))


def compute_event_hash(
    prev_hash: str,
    event_id: str,
    tenant_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: str,
    created_at: str,
    before_json: str,
    after_json: str,
    details_json: str,
) -> str:
    """
    Compute hash for an audit event.

    Hash = SHA256(all immutable fields joined with |)
    """
    data = "|".join([
        prev_hash,
        event_id,
        tenant_id,
        entity_type,
        entity_id,
        action,
        actor_id,
        created_at,
        before_json,
        after_json,
        details_json,
    ])
    return hashlib.sha256(data.encode()).hexdigest()


def _hash_for(event: AuditEvent) -> str:
    created_at = ensure_utc(event.created_at)
    return compute_event_hash(
        prev_hash=event.prev_hash,
        event_id=str(event.id),
        tenant_id=str(event.tenant_id),
        entity_type=event.entity_type,
        entity_id=str(event.entity_id),
        action=event.action,
        actor_id=str(event.actor_id) if event.actor_id else "",
        created_at=created_at.isoformat() if created_at else "",
        before_json=canonical_json(event.before_state),
        after_json=canonical_json(event.after_state),
        details_json=canonical_json(event.details),
    )


def _chain_head(db: Session, tenant_id: UUID) -> tuple[str, datetime | None]:
    row = db.execute(
        select(AuditEvent.entry_hash, AuditEvent.created_at)
        .where(AuditEvent.tenant_id == tenant_id)
        .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
        .limit(1)
    ).first()
    if row is None:
        return GENESIS_HASH, None
    return row.entry_hash, ensure_utc(row.created_at)


def lock_chain(db: Session, tenant_id: UUID) -> None:
    """
    Take the tenant's audit-chain lock.

    Lock order for every writer: case row, then this lock, then coordinator
    rows in ascending id order, then form instances.
    """
    db.execute(select(Tenant.id).where(Tenant.id == tenant_id).with_for_update(key_share=True))


def get_last_event_hash(db: Session, tenant_id: UUID) -> str:
    """Get the hash of the most recent audit event for a tenant.

    Uses created_at + id for deterministic ordering.
    """
    return _chain_head(db, tenant_id)[0]


def record_event(
    db: Session,
    tenant_id: UUID,
    entity_type: AuditEntityType,
    entity_id: UUID,
    action: AuditAction,
    actor_id: UUID | None = None,
    before_state: dict[str, Any] | None = None,
    after_state: dict[str, Any] | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Append an audit event with hash chain.

    Args:
        db: Database session (the caller's transaction)
        tenant_id: Tenant scope
        entity_type: Kind of entity affected
        entity_id: ID of the affected entity
        action: What happened
        actor_id: User who performed the action (None for system)
        before_state: Snapshot before the change (ids/status only)
        after_state: Snapshot after the change (ids/status only)
        details: Additional context (rule id, reason, delta...)

    Returns:
        The flushed audit event
    """
    # No-op when the caller already holds it
    lock_chain(db, tenant_id)
    prev_hash, last_created_at = _chain_head(db, tenant_id)
    created_at = utcnow()
    if last_created_at is not None and created_at <= last_created_at:
        # created_at must strictly increase along the chain
        created_at = last_created_at + timedelta(microseconds=1)

    event = AuditEvent(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        actor_id=actor_id,
        before_state=_normalize_state(before_state),
        after_state=_normalize_state(after_state),
        details=_normalize_state(details),
        prev_hash=prev_hash,
        created_at=created_at,
    )
    # Hash is computed before insert; rows are never updated afterwards.
    event.entry_hash = _hash_for(event)
    db.add(event)
    db.flush()
    return event


def list_events(
    db: Session,
    tenant_id: UUID,
    entity_type: AuditEntityType | None = None,
    entity_id: UUID | None = None,
    limit: int = 100,
) -> list[AuditEvent]:
    """List audit events for a tenant, oldest first."""
    query = select(AuditEvent).where(AuditEvent.tenant_id == tenant_id)
    if entity_type is not None:
        query = query.where(AuditEvent.entity_type == entity_type.value)
    if entity_id is not None:
        query = query.where(AuditEvent.entity_id == entity_id)
    query = query.order_by(AuditEvent.created_at, AuditEvent.id).limit(limit)
    return list(db.execute(query).scalars().all())


def verify_chain(db: Session, tenant_id: UUID) -> bool:
    """
    Verify the tenant's audit chain.

    Walks prev_hash links from the genesis hash and recomputes every entry.
    Returns False on a recomputation mismatch, a fork, or an orphaned entry.
    """
    events = list(
        db.execute(select(AuditEvent).where(AuditEvent.tenant_id == tenant_id)).scalars().all()
    )
    by_prev: dict[str, AuditEvent] = {}
    for event in events:
        if event.prev_hash in by_prev:
            return False
        by_prev[event.prev_hash] = event

    current = GENESIS_HASH
    visited = 0
    while current in by_prev:
        event = by_prev[current]
        if _hash_for(event) != event.entry_hash:
            return False
        current = event.entry_hash
        visited += 1
    return visited == len(events)
