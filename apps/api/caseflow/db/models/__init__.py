"""SQLAlchemy ORM models."""

from caseflow.db.models.audit import AuditEvent, AuditEventImmutableError
from caseflow.db.models.coordinators import ServiceCoordinator
from caseflow.db.models.forms import FormInstance, FormTemplate
from caseflow.db.models.members import Member
from caseflow.db.models.rules import AssignmentRule
from caseflow.db.models.tenancy import Membership, Tenant, User

__all__ = [
    "AssignmentRule",
    "AuditEvent",
    "AuditEventImmutableError",
    "FormInstance",
    "FormTemplate",
    "Member",
    "Membership",
    "ServiceCoordinator",
    "Tenant",
    "User",
]
