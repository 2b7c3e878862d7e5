"""Tests for the assignment engine."""

import uuid

import pytest

from caseflow.core.config import settings
from caseflow.core.errors import (
    CapacityExceededError,
    CaseNotAssignedError,
    CaseNotFoundError,
    CoordinatorNotFoundError,
)
from caseflow.db.enums import AuditAction, AuditEntityType, CoordinatorRole
from caseflow.db.models import FormInstance
from caseflow.services import assignment_service, audit_service, hierarchy_service
from caseflow.services.assignment_service import AssignmentResult, UnassignedResult


def _member_actions(db, tenant_id, member_id):
    return [
        e.action
        for e in audit_service.list_events(
            db, tenant_id, entity_type=AuditEntityType.MEMBER, entity_id=member_id
        )
    ]


def _fixed_id(n: int) -> uuid.UUID:
    return uuid.UUID(int=n)


# =============================================================================
# Candidate selection
# =============================================================================

def test_selects_minimum_caseload_with_id_tie_break(db, tenant, make_coordinator, make_member, make_rule):
    busy = make_coordinator(coordinator_id=_fixed_id(1), current_caseload=4)
    high_id = make_coordinator(coordinator_id=_fixed_id(3), current_caseload=1)
    low_id = make_coordinator(coordinator_id=_fixed_id(2), current_caseload=1)
    make_rule(assigned_role=CoordinatorRole.COORDINATOR.value)

    picks = [
        assignment_service.assign_case(db, tenant.id, make_member().id).coordinator_id
        for _ in range(3)
    ]

    assert picks == [low_id.id, high_id.id, low_id.id]
    assert busy.current_caseload == 4


def test_selection_is_deterministic(db, tenant, make_coordinator, make_member, make_rule):
    a = make_coordinator(coordinator_id=_fixed_id(20), current_caseload=0)
    b = make_coordinator(coordinator_id=_fixed_id(10), current_caseload=0)
    make_rule(assigned_role="coordinator")

    first = assignment_service.assign_case(db, tenant.id, make_member().id)
    assert first.coordinator_id == b.id
    # b now has 1, a has 0
    second = assignment_service.assign_case(db, tenant.id, make_member().id)
    assert second.coordinator_id == a.id


def test_role_rule_respects_case_zone(db, tenant, make_coordinator, make_member, make_rule):
    make_coordinator(zone="NE", current_caseload=0)
    sw = make_coordinator(zone="SW", current_caseload=3)
    make_rule(assigned_role="coordinator")

    result = assignment_service.assign_case(db, tenant.id, make_member(zone="SW").id)
    assert result.coordinator_id == sw.id


def test_full_and_inactive_coordinators_skipped(db, tenant, make_coordinator, make_member, make_rule):
    make_coordinator(max_caseload=2, current_caseload=2)
    make_coordinator(is_active=False)
    open_slot = make_coordinator(max_caseload=5, current_caseload=4)
    make_rule(assigned_role="coordinator")

    result = assignment_service.assign_case(db, tenant.id, make_member().id)
    assert result.coordinator_id == open_slot.id
    assert open_slot.current_caseload == 5


# =============================================================================
# Rule scenarios
# =============================================================================

def test_priority_scenario_r1_before_r2(db, tenant, make_coordinator, make_member, make_rule):
    """R1 (priority 1, zone SW) wins for SW even though created after R2; NE falls to R2."""
    sw_coordinator = make_coordinator(zone="SW", role=CoordinatorRole.COORDINATOR)
    supervisor = make_coordinator(zone="NE", role=CoordinatorRole.SUPERVISOR)
    r2 = make_rule(priority=2, assigned_role="supervisor")
    r1 = make_rule(priority=1, criteria={"zone": "SW"}, assigned_role="coordinator")

    sw_result = assignment_service.assign_case(db, tenant.id, make_member(zone="SW").id)
    assert sw_result.rule_id == r1.id
    assert sw_result.coordinator_id == sw_coordinator.id

    ne_result = assignment_service.assign_case(db, tenant.id, make_member(zone="NE").id)
    assert ne_result.rule_id == r2.id
    assert ne_result.coordinator_id == supervisor.id


def test_user_rule_at_capacity_scenario(db, tenant, make_user, make_coordinator, make_member, make_rule):
    """C1 at 5/5 targeted by a specific-user rule: CapacityExceededError, caseload stays 5."""
    c1_user = make_user()
    c1 = make_coordinator(user=c1_user, max_caseload=5, current_caseload=5)
    make_rule(assigned_user_id=c1_user.id)
    member = make_member()

    with pytest.raises(CapacityExceededError) as exc_info:
        assignment_service.assign_case(db, tenant.id, member.id)

    assert exc_info.value.coordinator_id == c1.id
    db.refresh(c1)
    db.refresh(member)
    assert c1.current_caseload == 5
    assert member.service_coordinator_id is None
    assert AuditAction.CASE_ASSIGNED.value not in _member_actions(db, tenant.id, member.id)


def test_user_rule_assigns_linked_coordinator(db, tenant, make_user, make_coordinator, make_member, make_rule):
    lead_user = make_user()
    lead = make_coordinator(user=lead_user, current_caseload=7, max_caseload=None)
    make_coordinator(current_caseload=0)
    make_rule(assigned_user_id=lead_user.id)

    result = assignment_service.assign_case(db, tenant.id, make_member().id)
    assert result.coordinator_id == lead.id


def test_no_rule_leaves_case_unassigned(db, tenant, make_member, make_rule):
    make_rule(criteria={"zone": "NE"}, assigned_role="coordinator")
    member = make_member(zone="SW")

    result = assignment_service.assign_case(db, tenant.id, member.id)

    assert isinstance(result, UnassignedResult)
    assert result.reason == "no_rule"
    assert member.service_coordinator_id is None
    events = audit_service.list_events(db, tenant.id, entity_id=member.id)
    assert [e.action for e in events] == [AuditAction.CASE_UNASSIGNED.value]
    assert events[0].details == {"reason": "no_rule"}


def test_request_attributes_override_member_record(db, tenant, make_coordinator, make_member, make_rule):
    make_coordinator()
    rule = make_rule(survey_type="annual", assigned_role="coordinator")
    member = make_member()

    assert isinstance(assignment_service.assign_case(db, tenant.id, member.id), UnassignedResult)

    result = assignment_service.assign_case(
        db, tenant.id, member.id, case_attributes={"survey_type": "annual"}
    )
    assert result.rule_id == rule.id


def test_capacity_fallthrough_when_enabled(db, tenant, make_user, make_coordinator, make_member, make_rule, monkeypatch):
    full_user = make_user()
    make_coordinator(user=full_user, max_caseload=1, current_caseload=1)
    backup = make_coordinator(role=CoordinatorRole.SUPERVISOR)
    make_rule(priority=1, assigned_user_id=full_user.id)
    fallback_rule = make_rule(priority=2, assigned_role="supervisor")
    member = make_member()

    with pytest.raises(CapacityExceededError):
        assignment_service.assign_case(db, tenant.id, member.id)

    monkeypatch.setattr(settings, "ASSIGNMENT_FALLTHROUGH_ON_CAPACITY", True)
    result = assignment_service.assign_case(db, tenant.id, member.id)
    assert result.coordinator_id == backup.id
    assert result.rule_id == fallback_rule.id


# =============================================================================
# Binding, reassignment, close
# =============================================================================

def test_assignment_updates_member_and_audits(db, tenant, make_coordinator, make_member, make_rule, admin_user):
    sc = make_coordinator()
    make_rule(assigned_role="coordinator")
    member = make_member()

    result = assignment_service.assign_case(db, tenant.id, member.id, actor_id=admin_user.id)

    assert result.changed
    assert member.service_coordinator_id == sc.id
    assert member.assigned_scid == sc.scid
    assert member.assigned_at is not None
    assert sc.current_caseload == 1
    events = audit_service.list_events(db, tenant.id, entity_id=member.id)
    assert len(events) == 1
    assert events[0].action == AuditAction.CASE_ASSIGNED.value
    assert events[0].actor_id == admin_user.id
    assert events[0].after_state["assigned_scid"] == sc.scid


def test_assign_to_current_owner_is_noop(db, tenant, make_coordinator, make_member, make_rule):
    sc = make_coordinator()
    make_rule(assigned_role="coordinator")
    member = make_member()
    assignment_service.assign_case(db, tenant.id, member.id)

    again = assignment_service.assign_case(db, tenant.id, member.id)

    assert again.changed is False
    assert sc.current_caseload == 1
    assert _member_actions(db, tenant.id, member.id) == [AuditAction.CASE_ASSIGNED.value]


def test_reassign_round_trip_restores_caseload(db, tenant, make_coordinator, make_member, make_rule):
    original = make_coordinator(current_caseload=2)
    other = make_coordinator(current_caseload=3)
    make_rule(assigned_role="coordinator")
    member = make_member()

    assignment_service.assign_case(db, tenant.id, member.id)
    assert original.current_caseload == 3

    moved = assignment_service.reassign_case(db, tenant.id, member.id, other.id)
    assert moved.previous_coordinator_id == original.id
    assert original.current_caseload == 2
    assert other.current_caseload == 4

    assignment_service.reassign_case(db, tenant.id, member.id, original.id)
    assert original.current_caseload == 3
    assert other.current_caseload == 3
    assert _member_actions(db, tenant.id, member.id) == [
        AuditAction.CASE_ASSIGNED.value,
        AuditAction.CASE_REASSIGNED.value,
        AuditAction.CASE_REASSIGNED.value,
    ]


def test_reassign_to_full_coordinator_changes_nothing(db, tenant, make_coordinator, make_member):
    owner = make_coordinator(current_caseload=0)
    full = make_coordinator(max_caseload=1, current_caseload=1)
    member = make_member()
    assignment_service.reassign_case(db, tenant.id, member.id, owner.id)

    with pytest.raises(CapacityExceededError):
        assignment_service.reassign_case(db, tenant.id, member.id, full.id)

    assert member.service_coordinator_id == owner.id
    assert owner.current_caseload == 1
    assert full.current_caseload == 1


def test_reassign_locks_in_one_global_order(db, tenant, make_coordinator, make_member, monkeypatch):
    """Both directions lock case, then chain, then coordinators by ascending id."""
    low = make_coordinator(coordinator_id=_fixed_id(1))
    high = make_coordinator(coordinator_id=_fixed_id(2))
    member = make_member()
    assignment_service.reassign_case(db, tenant.id, member.id, low.id)

    calls = []
    lock_case = assignment_service._lock_case
    lock_chain = audit_service.lock_chain
    lock_coordinator = hierarchy_service._lock_coordinator

    def record_case(db, tenant_id, case_id):
        calls.append(("case", case_id))
        return lock_case(db, tenant_id, case_id)

    def record_chain(db, tenant_id):
        calls.append(("chain", tenant_id))
        lock_chain(db, tenant_id)

    def record_coordinator(db, coordinator_id):
        calls.append(("coordinator", coordinator_id))
        return lock_coordinator(db, coordinator_id)

    monkeypatch.setattr(assignment_service, "_lock_case", record_case)
    monkeypatch.setattr(audit_service, "lock_chain", record_chain)
    monkeypatch.setattr(hierarchy_service, "_lock_coordinator", record_coordinator)

    expected = [
        ("case", member.id),
        ("chain", tenant.id),
        ("coordinator", low.id),
        ("coordinator", high.id),
    ]
    assignment_service.reassign_case(db, tenant.id, member.id, high.id)
    assert calls[:4] == expected

    calls.clear()
    assignment_service.reassign_case(db, tenant.id, member.id, low.id)
    assert calls[:4] == expected
    assert low.current_caseload == 1
    assert high.current_caseload == 0


def test_caseload_stays_within_bounds(db, tenant, make_coordinator, make_member, make_rule):
    coordinators = [make_coordinator(max_caseload=2) for _ in range(2)]
    make_rule(assigned_role="coordinator")

    outcomes = []
    for _ in range(5):
        try:
            outcomes.append(assignment_service.assign_case(db, tenant.id, make_member().id))
        except CapacityExceededError:
            outcomes.append(None)

    assert sum(1 for o in outcomes if o is not None) == 4
    assert outcomes[-1] is None
    for c in coordinators:
        db.refresh(c)
        assert 0 <= c.current_caseload <= c.max_caseload


def test_reassign_moves_open_form_instances(db, tenant, make_coordinator, make_member, form_template):
    first = make_coordinator()
    second = make_coordinator()
    member = make_member()
    assignment_service.reassign_case(db, tenant.id, member.id, first.id)

    instance = FormInstance(
        tenant_id=tenant.id,
        template_id=form_template.id,
        member_id=member.id,
        owner_coordinator_id=first.id,
    )
    db.add(instance)
    db.flush()

    assignment_service.reassign_case(db, tenant.id, member.id, second.id)

    assert instance.owner_coordinator_id == second.id
    owner_events = audit_service.list_events(
        db, tenant.id, entity_type=AuditEntityType.FORM_INSTANCE, entity_id=instance.id
    )
    assert [e.action for e in owner_events] == [AuditAction.FORM_OWNER_CHANGED.value]


def test_close_case_releases_caseload(db, tenant, make_coordinator, make_member):
    sc = make_coordinator()
    member = make_member()
    assignment_service.reassign_case(db, tenant.id, member.id, sc.id)

    assignment_service.close_case(db, tenant.id, member.id)

    assert sc.current_caseload == 0
    assert member.service_coordinator_id is None
    assert member.assigned_scid is None
    assert _member_actions(db, tenant.id, member.id)[-1] == AuditAction.CASE_CLOSED.value

    with pytest.raises(CaseNotAssignedError):
        assignment_service.close_case(db, tenant.id, member.id)


def test_unknown_case_and_coordinator(db, tenant, make_member):
    with pytest.raises(CaseNotFoundError):
        assignment_service.assign_case(db, tenant.id, uuid.uuid4())
    with pytest.raises(CoordinatorNotFoundError):
        assignment_service.reassign_case(db, tenant.id, make_member().id, uuid.uuid4())
