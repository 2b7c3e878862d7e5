"""Audit enums."""

from enum import Enum


class AuditEntityType(str, Enum):
    """Entity types recorded in the audit trail."""

    MEMBER = "member"
    SERVICE_COORDINATOR = "service_coordinator"
    FORM_INSTANCE = "form_instance"


class AuditAction(str, Enum):
    """
    Audited actions.

    Groups:
    - CASE_*: Assignment engine decisions
    - CASELOAD_* / HIERARCHY_*: Coordinator bookkeeping
    - FORM_*: Form instance lifecycle
    """

    # Assignment
    CASE_ASSIGNED = "case_assigned"
    CASE_REASSIGNED = "case_reassigned"
    CASE_UNASSIGNED = "case_unassigned"
    CASE_CLOSED = "case_closed"

    # Coordinators
    CASELOAD_ADJUSTED = "caseload_adjusted"
    HIERARCHY_UPDATED = "hierarchy_updated"

    # Form instances
    FORM_INSTANCE_CREATED = "form_instance_created"
    FORM_OWNER_CHANGED = "form_owner_changed"
    RESPONSES_SAVED = "responses_saved"
    FORM_SUBMITTED = "form_submitted"
    FORM_APPROVED = "form_approved"
    FORM_REJECTED = "form_rejected"
    FORM_REVISED = "form_revised"
    FORM_FINALIZED = "form_finalized"
    FORM_FINALIZE_NOOP = "form_finalize_noop"
