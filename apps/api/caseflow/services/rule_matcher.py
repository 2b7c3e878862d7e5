"""Rule matcher - evaluates case attributes against a tenant's assignment rules.

Rules are tried in (priority, created_at, id) order and the first active rule
whose survey type and criteria match wins. Matching is pure: the store is only
read to load rules, and the result does not depend on the order rows come back.

Criteria are sparse. A key missing from `criteria`, set to null, or not in
the list below is treated as always true:

    zone, plan_type                      scalar equality (strings case-insensitive),
                                         a list value means any-of
    panel(s), specialization(s),         case attribute is a tag list; matches when
    provider_network(s)                  the criterion and the case share a tag
    pics_score_min / pics_score_max      inclusive numeric bounds on pics_score

A recognized criterion whose attribute the case does not carry never matches.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator, Mapping
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from caseflow.core.errors import NoRuleMatchedError
from caseflow.db.models import AssignmentRule, Member
from caseflow.utils.normalization import normalize_tags, normalize_token
from caseflow.utils.timestamps import ensure_utc

logger = logging.getLogger(__name__)

# criteria key -> case attribute
SCALAR_CRITERIA = {
    "zone": "zone",
    "plan_type": "plan_type",
}

TAG_CRITERIA = {
    "panel": "panels",
    "panels": "panels",
    "specialization": "specializations",
    "specializations": "specializations",
    "provider_network": "provider_networks",
    "provider_networks": "provider_networks",
}

RANGE_CRITERIA = {
    "pics_score_min": ("pics_score", operator.ge),
    "pics_score_max": ("pics_score", operator.le),
}


@dataclass(frozen=True)
class AssignmentCandidate:
    """Routing target produced by a matching rule."""

    rule_id: UUID
    rule_name: str
    priority: int
    candidate_role: str | None = None
    candidate_user_id: UUID | None = None

    @property
    def is_user_target(self) -> bool:
        return self.candidate_user_id is not None


# =============================================================================
# Pure evaluation
# =============================================================================


def rule_sort_key(rule: AssignmentRule) -> tuple:
    """Total order used for evaluation: priority, then age, then id."""
    return (rule.priority, ensure_utc(rule.created_at), str(rule.id))


def _to_number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == ()


def _match_scalar(expected: Any, actual: Any) -> bool:
    if isinstance(expected, (list, tuple, set)):
        return normalize_token(actual) in normalize_tags(expected)
    return normalize_token(expected) == normalize_token(actual)


def _match_tags(expected: Any, actual: Any) -> bool:
    return bool(normalize_tags(expected) & normalize_tags(actual))


def _match_range(key: str, expected: Any, actual: Any, compare) -> bool:
    threshold = _to_number(expected)
    if threshold is None:
        logger.warning("Ignoring rule criterion %s with non-numeric value", key)
        return False
    score = _to_number(actual)
    if score is None:
        return False
    return compare(score, threshold)


def evaluate_criteria(criteria: Mapping[str, Any] | None, case_attributes: Mapping[str, Any]) -> bool:
    """Return True when every recognized, non-null criterion holds for the case."""
    if not criteria:
        return True
    if not isinstance(criteria, Mapping):
        logger.warning("Rule criteria is not an object; rule cannot match")
        return False

    for key, expected in criteria.items():
        if expected is None:
            continue

        if key in SCALAR_CRITERIA:
            actual = case_attributes.get(SCALAR_CRITERIA[key])
            if _is_missing(actual) or not _match_scalar(expected, actual):
                return False
        elif key in TAG_CRITERIA:
            actual = case_attributes.get(TAG_CRITERIA[key])
            if _is_missing(actual) or not _match_tags(expected, actual):
                return False
        elif key in RANGE_CRITERIA:
            attribute, compare = RANGE_CRITERIA[key]
            actual = case_attributes.get(attribute)
            if _is_missing(actual) or not _match_range(key, expected, actual, compare):
                return False
        # Unknown keys are permissive
    return True


def survey_type_matches(rule_survey_type: str | None, case_survey_type: str | None) -> bool:
    """A rule without a survey type matches any case."""
    if rule_survey_type is None:
        return True
    if case_survey_type is None:
        return False
    return normalize_token(rule_survey_type) == normalize_token(case_survey_type)


def rule_matches(rule: AssignmentRule, case_attributes: Mapping[str, Any]) -> bool:
    if not rule.is_active:
        return False
    if not survey_type_matches(rule.survey_type, case_attributes.get("survey_type")):
        return False
    return evaluate_criteria(rule.criteria, case_attributes)


def iter_matching_rules(
    rules: Iterable[AssignmentRule],
    case_attributes: Mapping[str, Any],
) -> Iterator[AssignmentRule]:
    """Yield matching rules in evaluation order."""
    for rule in sorted(rules, key=rule_sort_key):
        if rule_matches(rule, case_attributes):
            yield rule


def select_rule(
    rules: Iterable[AssignmentRule],
    case_attributes: Mapping[str, Any],
) -> AssignmentRule | None:
    """First matching rule in evaluation order, or None."""
    return next(iter_matching_rules(rules, case_attributes), None)


def candidate_from_rule(rule: AssignmentRule) -> AssignmentCandidate:
    return AssignmentCandidate(
        rule_id=rule.id,
        rule_name=rule.rule_name,
        priority=rule.priority,
        candidate_role=rule.assigned_role,
        candidate_user_id=rule.assigned_user_id,
    )


def attributes_from_member(member: Member) -> dict[str, Any]:
    """Routing attributes carried on the member record."""
    return {
        "survey_type": None,
        "zone": member.member_zone,
        "plan_type": member.plan_type,
        "panels": list(member.panels or []),
        "specializations": list(member.specializations_needed or []),
        "provider_networks": [],
        "pics_score": member.pics_score,
    }


# =============================================================================
# Store-backed lookups
# =============================================================================


def load_active_rules(db: Session, tenant_id: UUID) -> list[AssignmentRule]:
    """Active rules for a tenant (unordered; callers sort with rule_sort_key)."""
    return list(
        db.execute(
            select(AssignmentRule).where(
                and_(
                    AssignmentRule.tenant_id == tenant_id,
                    AssignmentRule.is_active.is_(True),
                )
            )
        )
        .scalars()
        .all()
    )


def iter_assignment_candidates(
    db: Session,
    tenant_id: UUID,
    case_attributes: Mapping[str, Any],
) -> Iterator[AssignmentCandidate]:
    """Every matching rule as a candidate, best first."""
    rules = load_active_rules(db, tenant_id)
    for rule in iter_matching_rules(rules, case_attributes):
        yield candidate_from_rule(rule)


def find_assignment_candidate(
    db: Session,
    tenant_id: UUID,
    case_attributes: Mapping[str, Any],
) -> AssignmentCandidate:
    """
    Select the routing target for a case.

    Raises:
        NoRuleMatchedError: no active rule matches
    """
    candidate = next(iter_assignment_candidates(db, tenant_id, case_attributes), None)
    if candidate is None:
        raise NoRuleMatchedError(tenant_id)
    return candidate
