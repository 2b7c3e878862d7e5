"""Tests for the audit recorder and its hash chain."""

import uuid

import pytest
from sqlalchemy import update

from caseflow.db.enums import AuditAction, AuditEntityType
from caseflow.db.models import AuditEvent, Tenant
from caseflow.db.models.audit import AuditEventImmutableError
from caseflow.services import audit_service


def _record(db, tenant_id, action=AuditAction.CASE_ASSIGNED, **kwargs):
    return audit_service.record_event(
        db=db,
        tenant_id=tenant_id,
        entity_type=AuditEntityType.MEMBER,
        entity_id=kwargs.pop("entity_id", uuid.uuid4()),
        action=action,
        **kwargs,
    )


# =============================================================================
# Unit Tests (no DB required)
# =============================================================================

def test_compute_event_hash_deterministic():
    args = dict(
        prev_hash=audit_service.GENESIS_HASH,
        event_id="event-1",
        tenant_id="tenant-1",
        entity_type="member",
        entity_id="case-1",
        action="case_assigned",
        actor_id="",
        created_at="2025-01-01T00:00:00+00:00",
        before_json="{}",
        after_json='{"assigned_scid":"SC-1"}',
        details_json="{}",
    )
    first = audit_service.compute_event_hash(**args)
    assert first == audit_service.compute_event_hash(**args)
    assert len(first) == 64  # SHA256 hex

    args["action"] = "case_reassigned"
    assert audit_service.compute_event_hash(**args) != first


def test_canonical_json_sorted():
    assert audit_service.canonical_json({"b": 2, "a": 1}) == '{"a":1,"b":2}'


def test_canonical_json_stringifies_uuids():
    value = uuid.UUID(int=7)
    assert audit_service.canonical_json({"id": value}) == f'{{"id":"{value}"}}'


def test_canonical_json_none_is_empty_object():
    assert audit_service.canonical_json(None) == "{}"


# =============================================================================
# Recording
# =============================================================================

def test_first_event_links_to_genesis(db, tenant):
    event = _record(db, tenant.id)
    assert event.prev_hash == audit_service.GENESIS_HASH
    assert audit_service.get_last_event_hash(db, tenant.id) == event.entry_hash


def test_events_chain_in_order(db, tenant):
    first = _record(db, tenant.id)
    second = _record(db, tenant.id, action=AuditAction.CASE_CLOSED)
    third = _record(db, tenant.id, action=AuditAction.CASE_UNASSIGNED)

    assert second.prev_hash == first.entry_hash
    assert third.prev_hash == second.entry_hash
    assert first.created_at < second.created_at < third.created_at


def test_states_stored_as_json_values(db, tenant):
    coordinator_id = uuid.uuid4()
    event = _record(
        db,
        tenant.id,
        before_state={"service_coordinator_id": None},
        after_state={"service_coordinator_id": coordinator_id},
        details={"delta": 1},
    )
    assert event.after_state == {"service_coordinator_id": str(coordinator_id)}
    assert event.before_state == {"service_coordinator_id": None}
    assert event.details == {"delta": 1}


def test_chains_are_per_tenant(db, tenant):
    other = Tenant(id=uuid.uuid4(), name="Other", slug=f"other-{uuid.uuid4().hex[:8]}")
    db.add(other)
    db.flush()

    _record(db, tenant.id)
    other_event = _record(db, other.id)

    assert other_event.prev_hash == audit_service.GENESIS_HASH


def test_list_events_filters(db, tenant):
    case_id = uuid.uuid4()
    _record(db, tenant.id, entity_id=case_id)
    _record(db, tenant.id)
    _record(db, tenant.id, entity_id=case_id, action=AuditAction.CASE_CLOSED)

    events = audit_service.list_events(db, tenant.id, entity_id=case_id)
    assert [e.action for e in events] == ["case_assigned", "case_closed"]
    assert len(audit_service.list_events(db, tenant.id, limit=2)) == 2
    assert audit_service.list_events(
        db, tenant.id, entity_type=AuditEntityType.FORM_INSTANCE
    ) == []


# =============================================================================
# Verification and immutability
# =============================================================================

def test_verify_chain_valid(db, tenant):
    assert audit_service.verify_chain(db, tenant.id)
    for _ in range(3):
        _record(db, tenant.id, after_state={"status": "draft"})
    assert audit_service.verify_chain(db, tenant.id)


def test_verify_chain_detects_tampering(db, tenant):
    _record(db, tenant.id, after_state={"status": "draft"})
    target = _record(db, tenant.id, after_state={"status": "pending"})
    _record(db, tenant.id, after_state={"status": "approved"})

    # Core UPDATE bypasses the ORM guard, as a direct database edit would
    db.execute(
        update(AuditEvent.__table__)
        .where(AuditEvent.__table__.c.id == target.id)
        .values(after_state={"status": "completed"})
    )
    db.expire_all()

    assert audit_service.verify_chain(db, tenant.id) is False


def test_audit_events_cannot_be_updated_through_orm(db, tenant):
    event = _record(db, tenant.id)
    event.action = AuditAction.CASE_CLOSED.value
    with pytest.raises(AuditEventImmutableError):
        db.flush()


def test_audit_events_cannot_be_deleted_through_orm(db, tenant):
    event = _record(db, tenant.id)
    db.delete(event)
    with pytest.raises(AuditEventImmutableError):
        db.flush()
