"""Tests for rule matching - pure evaluation and store-backed lookup."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from caseflow.core.errors import NoRuleMatchedError
from caseflow.db.models import AssignmentRule
from caseflow.services import rule_matcher
from caseflow.services.rule_matcher import evaluate_criteria, select_rule

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _rule(priority=1, criteria=None, survey_type=None, age_offset=0, rule_id=None, is_active=True):
    return AssignmentRule(
        id=rule_id or uuid.uuid4(),
        tenant_id=uuid.uuid4(),
        rule_name="r",
        survey_type=survey_type,
        criteria=criteria or {},
        assigned_role="coordinator",
        priority=priority,
        is_active=is_active,
        created_at=BASE_TIME + timedelta(seconds=age_offset),
    )


# =============================================================================
# evaluate_criteria
# =============================================================================

def test_empty_criteria_matches_everything():
    assert evaluate_criteria({}, {"zone": "SW"})
    assert evaluate_criteria(None, {})


def test_scalar_equality_is_case_insensitive():
    assert evaluate_criteria({"zone": "sw"}, {"zone": "SW"})
    assert not evaluate_criteria({"zone": "SE"}, {"zone": "SW"})


def test_list_value_means_any_of():
    assert evaluate_criteria({"plan_type": ["NFCE", "NFI"]}, {"plan_type": "nfi"})
    assert not evaluate_criteria({"plan_type": ["NFCE", "NFI"]}, {"plan_type": "MMP"})


def test_tag_criteria_match_on_intersection():
    attrs = {"panels": ["dementia", "cardiac"]}
    assert evaluate_criteria({"panel": "Cardiac"}, attrs)
    assert evaluate_criteria({"panels": ["renal", "dementia"]}, attrs)
    assert not evaluate_criteria({"panel": ["renal"]}, attrs)


def test_pics_score_bounds_are_inclusive():
    criteria = {"pics_score_min": 40, "pics_score_max": "60"}
    assert evaluate_criteria(criteria, {"pics_score": Decimal("40")})
    assert evaluate_criteria(criteria, {"pics_score": 60})
    assert not evaluate_criteria(criteria, {"pics_score": Decimal("39.99")})
    assert not evaluate_criteria(criteria, {"pics_score": 61})


def test_absent_null_and_unknown_criteria_are_permissive():
    """Documented default: fields the rule does not constrain always match."""
    attrs = {"zone": "SW"}
    assert evaluate_criteria({"zone": "SW", "plan_type": None}, attrs)
    assert evaluate_criteria({"zone": "SW", "favourite_colour": "blue"}, attrs)


def test_recognized_criterion_missing_from_case_does_not_match():
    assert not evaluate_criteria({"zone": "SW"}, {})
    assert not evaluate_criteria({"specialization": "peds"}, {"specializations": []})
    assert not evaluate_criteria({"pics_score_min": 10}, {"pics_score": None})


def test_non_numeric_threshold_never_matches():
    assert not evaluate_criteria({"pics_score_min": "high"}, {"pics_score": 90})


# =============================================================================
# select_rule
# =============================================================================

def test_lowest_priority_wins():
    """R1 (priority 1) beats R2 (priority 2) when both match."""
    r2 = _rule(priority=2, criteria={"zone": "SW"})
    r1 = _rule(priority=1, criteria={"zone": "SW", "plan_type": "NFCE"})

    assert select_rule([r2, r1], {"zone": "SW", "plan_type": "NFCE"}) is r1


def test_equal_priority_older_rule_wins_regardless_of_input_order():
    older = _rule(age_offset=0)
    newer = _rule(age_offset=10)

    assert select_rule([newer, older], {}) is older
    assert select_rule([older, newer], {}) is older


def test_equal_priority_and_age_falls_back_to_id():
    low = _rule(rule_id=uuid.UUID("00000000-0000-0000-0000-000000000001"))
    high = _rule(rule_id=uuid.UUID("ffffffff-0000-0000-0000-000000000000"))

    assert select_rule([high, low], {}) is low


def test_naive_and_aware_created_at_compare():
    aware = _rule(age_offset=5)
    naive = _rule(age_offset=0)
    naive.created_at = naive.created_at.replace(tzinfo=None)

    assert select_rule([aware, naive], {}) is naive


def test_inactive_rules_skipped():
    inactive = _rule(priority=1, is_active=False)
    active = _rule(priority=5)
    assert select_rule([inactive, active], {}) is active


def test_survey_type_filtering():
    annual = _rule(priority=1, survey_type="Annual")
    any_survey = _rule(priority=2)

    assert select_rule([annual, any_survey], {"survey_type": "annual"}) is annual
    assert select_rule([annual, any_survey], {"survey_type": "intake"}) is any_survey
    assert select_rule([annual, any_survey], {}) is any_survey


def test_no_match_returns_none():
    assert select_rule([_rule(criteria={"zone": "NE"})], {"zone": "SW"}) is None


# =============================================================================
# Store-backed lookup
# =============================================================================

def test_find_assignment_candidate_returns_first_match(db, tenant, make_rule, make_user):
    lead = make_user()
    make_rule(priority=2, criteria={"zone": "SW"}, assigned_role="coordinator")
    best = make_rule(priority=1, criteria={"zone": "SW"}, assigned_user_id=lead.id)

    candidate = rule_matcher.find_assignment_candidate(db, tenant.id, {"zone": "SW"})

    assert candidate.rule_id == best.id
    assert candidate.candidate_user_id == lead.id
    assert candidate.candidate_role is None
    assert candidate.is_user_target


def test_iter_assignment_candidates_in_order(db, tenant, make_rule):
    third = make_rule(priority=3, assigned_role="coordinator")
    first = make_rule(priority=1, assigned_role="supervisor")
    second = make_rule(priority=2, assigned_role="manager")
    make_rule(priority=0, assigned_role="director", is_active=False)

    ids = [c.rule_id for c in rule_matcher.iter_assignment_candidates(db, tenant.id, {})]
    assert ids == [first.id, second.id, third.id]


def test_find_assignment_candidate_no_rule(db, tenant, make_rule):
    make_rule(criteria={"zone": "NE"}, assigned_role="coordinator")

    with pytest.raises(NoRuleMatchedError) as exc_info:
        rule_matcher.find_assignment_candidate(db, tenant.id, {"zone": "SW"})
    assert exc_info.value.tenant_id == tenant.id


def test_attributes_from_member(make_member):
    member = make_member(zone="SE", plan_type="NFI", panels=["cardiac"], specializations_needed=["peds"])
    attrs = rule_matcher.attributes_from_member(member)

    assert attrs["zone"] == "SE"
    assert attrs["plan_type"] == "NFI"
    assert attrs["panels"] == ["cardiac"]
    assert attrs["specializations"] == ["peds"]
    assert attrs["survey_type"] is None
