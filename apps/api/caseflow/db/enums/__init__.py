"""Enum definitions for application constants."""

from caseflow.db.enums.audit import AuditAction, AuditEntityType
from caseflow.db.enums.auth import Role
from caseflow.db.enums.coordinators import ZONE_SQL_VALUES, CoordinatorRole, Zone
from caseflow.db.enums.forms import FormInstanceStatus, QuestionType
from caseflow.db.enums.permissions import (
    ROLES_CAN_ASSIGN,
    ROLES_CAN_MANAGE_HIERARCHY,
    ROLES_CAN_VIEW_AUDIT,
    ROLES_WITH_REVIEW_AUTHORITY,
)

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "CoordinatorRole",
    "FormInstanceStatus",
    "QuestionType",
    "ROLES_CAN_ASSIGN",
    "ROLES_CAN_MANAGE_HIERARCHY",
    "ROLES_CAN_VIEW_AUDIT",
    "ROLES_WITH_REVIEW_AUTHORITY",
    "Role",
    "Zone",
    "ZONE_SQL_VALUES",
]
