"""Pydantic schemas for API request/response models."""

from caseflow.schemas.assignment import (
    AssignCaseRequest,
    AssignmentRead,
    CaseAttributes,
    CaseRead,
    ReassignCaseRequest,
)
from caseflow.schemas.audit import AuditChainStatus, AuditEventRead
from caseflow.schemas.auth import TokenPayload, UserSession
from caseflow.schemas.coordinator import ChainEntry, CoordinatorRead, HierarchyUpdate
from caseflow.schemas.forms import (
    FormInstanceCreate,
    FormInstanceRead,
    QuestionDefinition,
    QuestionOption,
    ResponsesUpdate,
    TransitionRequest,
    ValidationRuleDefinition,
)

__all__ = [
    "AssignCaseRequest",
    "AssignmentRead",
    "AuditChainStatus",
    "AuditEventRead",
    "CaseAttributes",
    "CaseRead",
    "ChainEntry",
    "CoordinatorRead",
    "FormInstanceCreate",
    "FormInstanceRead",
    "HierarchyUpdate",
    "QuestionDefinition",
    "QuestionOption",
    "ReassignCaseRequest",
    "ResponsesUpdate",
    "TokenPayload",
    "TransitionRequest",
    "UserSession",
    "ValidationRuleDefinition",
]
