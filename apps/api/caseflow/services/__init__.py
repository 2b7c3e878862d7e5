"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from caseflow.services import audit_service
from caseflow.services import hierarchy_service
from caseflow.services import rule_matcher
from caseflow.services import assignment_service
from caseflow.services import authorization_service
from caseflow.services import form_validation
from caseflow.services import form_instance_service

__all__ = [
    "assignment_service",
    "audit_service",
    "authorization_service",
    "form_instance_service",
    "form_validation",
    "hierarchy_service",
    "rule_matcher",
]
