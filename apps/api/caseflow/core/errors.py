"""Typed error taxonomy for the case-routing and form-lifecycle core.

Callers branch on the error class (or its category base), never on message text:

- ConfigurationError: CycleError, CrossTenantError, InvalidTemplateError (administrator fixes, never retried)
- BusinessRuleError: CapacityExceededError, NoRuleMatchedError, CaseNotAssignedError
  (recoverable, trigger fallback / manual triage)
- RequestValidationError: ValidationError, InvalidTransitionError (actionable for the user)
- AuthorizationError (403-equivalent)
- ConcurrencyConflictError (refetch and retry)
- PersistenceError (retry with backoff)
- NotFoundError: CaseNotFoundError, CoordinatorNotFoundError, ...
"""

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class CaseRoutingError(Exception):
    """Base exception for every error raised by the core."""

    retryable: bool = False


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(CaseRoutingError):
    """Invalid administrator-managed configuration."""


class CycleError(ConfigurationError):
    """Proposed supervisor edge would create a cycle in the hierarchy."""

    def __init__(self, coordinator_id: UUID, proposed_supervisor_id: UUID):
        self.coordinator_id = coordinator_id
        self.proposed_supervisor_id = proposed_supervisor_id
        super().__init__(
            f"Coordinator {proposed_supervisor_id} cannot supervise {coordinator_id}: "
            "the supervisory chain would contain a cycle"
        )


class CrossTenantError(ConfigurationError):
    """Two records that must share a tenant belong to different tenants."""

    def __init__(self, coordinator_id: UUID, other_id: UUID):
        self.coordinator_id = coordinator_id
        self.other_id = other_id
        super().__init__(
            f"Coordinators {coordinator_id} and {other_id} belong to different tenants"
        )


class InvalidTemplateError(ConfigurationError):
    """Stored form template has a malformed question or validation rule."""

    def __init__(self, template_id: UUID, problems: list[str]):
        self.template_id = template_id
        self.problems = list(problems)
        super().__init__(f"Form template {template_id} is misconfigured: {'; '.join(self.problems)}")


# =============================================================================
# Business-rule errors
# =============================================================================


class BusinessRuleError(CaseRoutingError):
    """Recoverable business-rule failure; callers fall back or escalate."""


class CapacityExceededError(BusinessRuleError):
    """Coordinator (or every candidate coordinator) is at capacity or inactive."""

    def __init__(self, message: str, coordinator_id: UUID | None = None):
        self.coordinator_id = coordinator_id
        super().__init__(message)


class NoRuleMatchedError(BusinessRuleError):
    """No active assignment rule matched the case attributes."""

    def __init__(self, tenant_id: UUID):
        self.tenant_id = tenant_id
        super().__init__(f"No active assignment rule matched for tenant {tenant_id}")


class CaseNotAssignedError(BusinessRuleError):
    """Operation needs an owning coordinator but the case has none."""

    def __init__(self, case_id: UUID):
        self.case_id = case_id
        super().__init__(f"Case {case_id} is not assigned to a coordinator")


# =============================================================================
# Validation errors
# =============================================================================


class RequestValidationError(CaseRoutingError):
    """Request cannot be applied as given; message is safe to show the user."""


class ValidationError(RequestValidationError):
    """One or more responses are missing or invalid."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Missing or invalid fields: {fields}")


class InvalidTransitionError(RequestValidationError):
    """Requested status change is not in the allowed transition table."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition from '{current}' to '{requested}'")


# =============================================================================
# Authorization / concurrency / persistence
# =============================================================================


class AuthorizationError(CaseRoutingError):
    """Actor lacks authority for the requested action."""

    def __init__(self, message: str, actor_id: UUID | None = None):
        self.actor_id = actor_id
        super().__init__(message)


class ConcurrencyConflictError(CaseRoutingError):
    """Record changed since the caller last read it."""

    retryable = True

    def __init__(
        self,
        entity_id: UUID,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if expected_version is None:
            message = f"Record {entity_id} was modified concurrently"
        else:
            message = (
                f"Version conflict on {entity_id}: expected {expected_version}, "
                f"found {actual_version}"
            )
        super().__init__(message)


class PersistenceError(CaseRoutingError):
    """Backing store failure (timeout, connection loss, constraint violation)."""

    retryable = True


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(CaseRoutingError):
    """Referenced record does not exist in the tenant."""


class CaseNotFoundError(NotFoundError):
    """Case (member) not found."""


class CoordinatorNotFoundError(NotFoundError):
    """Service coordinator not found."""


class FormTemplateNotFoundError(NotFoundError):
    """Form template not found or inactive."""


class FormInstanceNotFoundError(NotFoundError):
    """Form instance not found."""


@contextmanager
def translate_persistence_errors(operation: str, entity_id: UUID | None = None) -> Iterator[None]:
    """
    Map store failures onto the core taxonomy.

    - StaleDataError (optimistic version check failed at flush) -> ConcurrencyConflictError
    - any other SQLAlchemyError -> PersistenceError (logged at error)
    Core errors raised inside the block propagate unchanged.
    """
    try:
        yield
    except StaleDataError as exc:
        raise ConcurrencyConflictError(entity_id) from exc
    except SQLAlchemyError as exc:
        logger.error("Persistence failure during %s: %s", operation, exc.__class__.__name__)
        raise PersistenceError(f"Store failure during {operation}") from exc
