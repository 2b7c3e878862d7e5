"""Form instance lifecycle - draft, pending review, approved/rejected, completed.

Transitions:

    draft    -> pending     submit    owner or reviewer, responses validated
    pending  -> approved    approve   owner's supervisory chain or reviewer role
    pending  -> rejected    reject    owner's supervisory chain or reviewer role
    rejected -> draft       revise    owner or reviewer, review fields cleared
    approved -> completed   finalize  owner or reviewer

Every write takes the caller's expected version. The ORM's version counter
(FormInstance.version) also guards the UPDATE itself, so two writers holding
the same version cannot both succeed.
"""

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from caseflow.core.errors import (
    CaseNotAssignedError,
    CaseNotFoundError,
    ConcurrencyConflictError,
    CoordinatorNotFoundError,
    FormInstanceNotFoundError,
    FormTemplateNotFoundError,
    InvalidTemplateError,
    InvalidTransitionError,
    ValidationError,
    translate_persistence_errors,
)
from caseflow.core.structured_logging import build_log_context
from caseflow.db.enums import AuditAction, AuditEntityType, FormInstanceStatus
from caseflow.db.models import FormInstance, FormTemplate, Member
from caseflow.services import audit_service, authorization_service, form_validation, hierarchy_service
from caseflow.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

DRAFT = FormInstanceStatus.DRAFT
PENDING = FormInstanceStatus.PENDING
APPROVED = FormInstanceStatus.APPROVED
REJECTED = FormInstanceStatus.REJECTED
COMPLETED = FormInstanceStatus.COMPLETED

ALLOWED_TRANSITIONS: dict[FormInstanceStatus, set[FormInstanceStatus]] = {
    DRAFT: {PENDING},
    PENDING: {APPROVED, REJECTED},
    APPROVED: {COMPLETED},
    REJECTED: {DRAFT},
    COMPLETED: set(),
}

TRANSITION_ACTIONS: dict[tuple[FormInstanceStatus, FormInstanceStatus], AuditAction] = {
    (DRAFT, PENDING): AuditAction.FORM_SUBMITTED,
    (PENDING, APPROVED): AuditAction.FORM_APPROVED,
    (PENDING, REJECTED): AuditAction.FORM_REJECTED,
    (REJECTED, DRAFT): AuditAction.FORM_REVISED,
    (APPROVED, COMPLETED): AuditAction.FORM_FINALIZED,
}

REVIEW_TRANSITIONS = {(PENDING, APPROVED), (PENDING, REJECTED)}


# =============================================================================
# Lookups
# =============================================================================


def get_instance(db: Session, tenant_id: UUID, instance_id: UUID) -> FormInstance:
    """Get a form instance scoped to a tenant (raises FormInstanceNotFoundError)."""
    instance = db.execute(
        select(FormInstance).where(
            and_(FormInstance.id == instance_id, FormInstance.tenant_id == tenant_id)
        )
    ).scalar_one_or_none()
    if not instance:
        raise FormInstanceNotFoundError(f"Form instance {instance_id} not found")
    return instance


def list_instances(
    db: Session,
    tenant_id: UUID,
    status: FormInstanceStatus | None = None,
    owner_coordinator_id: UUID | None = None,
    case_id: UUID | None = None,
    limit: int = 100,
) -> list[FormInstance]:
    """
    List a tenant's form instances, oldest first.

    With status=pending this is the approval work queue.
    """
    query = select(FormInstance).where(FormInstance.tenant_id == tenant_id)
    if status is not None:
        query = query.where(FormInstance.status == FormInstanceStatus(status).value)
    if owner_coordinator_id is not None:
        query = query.where(FormInstance.owner_coordinator_id == owner_coordinator_id)
    if case_id is not None:
        query = query.where(FormInstance.member_id == case_id)
    query = query.order_by(FormInstance.created_at.asc(), FormInstance.id.asc()).limit(limit)
    return list(db.execute(query).scalars().all())


def _get_template(db: Session, tenant_id: UUID, template_id: UUID) -> FormTemplate:
    template = db.execute(
        select(FormTemplate).where(
            and_(FormTemplate.id == template_id, FormTemplate.tenant_id == tenant_id)
        )
    ).scalar_one_or_none()
    if not template:
        raise FormTemplateNotFoundError(f"Form template {template_id} not found")
    return template


def _snapshot(instance: FormInstance) -> dict[str, Any]:
    """Audit snapshot: status and ownership only, never responses."""
    return {
        "status": instance.status,
        "owner_coordinator_id": instance.owner_coordinator_id,
        "version": instance.version,
    }


def _check_version(instance: FormInstance, expected_version: int) -> None:
    if instance.version != expected_version:
        raise ConcurrencyConflictError(instance.id, expected_version, instance.version)


# =============================================================================
# Create / save
# =============================================================================


def create_instance(
    db: Session,
    tenant_id: UUID,
    template_id: UUID,
    case_id: UUID,
    actor_id: UUID | None,
    owner_coordinator_id: UUID | None = None,
    responses: dict[str, Any] | None = None,
) -> FormInstance:
    """
    Start a form instance in draft for a case.

    The owner defaults to the case's current coordinator.
    """
    with translate_persistence_errors("create_instance"):
        template = _get_template(db, tenant_id, template_id)
        if not template.is_active:
            raise FormTemplateNotFoundError(f"Form template {template_id} is inactive")

        member = db.execute(
            select(Member).where(and_(Member.id == case_id, Member.tenant_id == tenant_id))
        ).scalar_one_or_none()
        if not member:
            raise CaseNotFoundError(f"Case {case_id} not found")

        owner_id = owner_coordinator_id or member.service_coordinator_id
        if owner_id is None:
            raise CaseNotAssignedError(case_id)
        if not hierarchy_service.get_coordinator(db, tenant_id, owner_id):
            raise CoordinatorNotFoundError(f"Service coordinator {owner_id} not found")

        audit_service.lock_chain(db, tenant_id)
        instance = FormInstance(
            tenant_id=tenant_id,
            template_id=template.id,
            member_id=member.id,
            owner_coordinator_id=owner_id,
            status=DRAFT.value,
            responses=dict(responses or {}),
            created_by=actor_id,
        )
        db.add(instance)
        db.flush()

        audit_service.record_event(
            db=db,
            tenant_id=tenant_id,
            entity_type=AuditEntityType.FORM_INSTANCE,
            entity_id=instance.id,
            action=AuditAction.FORM_INSTANCE_CREATED,
            actor_id=actor_id,
            before_state=None,
            after_state=_snapshot(instance),
            details={"template_id": template.id, "case_id": member.id},
        )

    logger.info(
        "Form instance created",
        extra=build_log_context(
            tenant_id=tenant_id, instance_id=instance.id, case_id=case_id, actor_id=actor_id
        ),
    )
    return instance


def save_responses(
    db: Session,
    tenant_id: UUID,
    instance_id: UUID,
    responses: dict[str, Any],
    actor_id: UUID,
    expected_version: int,
) -> FormInstance:
    """Merge answers into a draft instance."""
    with translate_persistence_errors("save_responses", instance_id):
        instance = get_instance(db, tenant_id, instance_id)
        _check_version(instance, expected_version)
        if instance.status != DRAFT.value:
            raise ValidationError({"status": "Responses can only be edited while in draft"})

        actor = authorization_service.get_actor_context(db, tenant_id, actor_id)
        authorization_service.require_owner_or_reviewer(db, actor, instance.owner_coordinator_id)

        before = _snapshot(instance)
        audit_service.lock_chain(db, tenant_id)
        # New dict so the JSON column registers the change
        instance.responses = {**(instance.responses or {}), **responses}
        db.flush()

        audit_service.record_event(
            db=db,
            tenant_id=tenant_id,
            entity_type=AuditEntityType.FORM_INSTANCE,
            entity_id=instance.id,
            action=AuditAction.RESPONSES_SAVED,
            actor_id=actor_id,
            before_state=before,
            after_state=_snapshot(instance),
            details={"question_ids": sorted(responses)},
        )
    return instance


# =============================================================================
# Transitions
# =============================================================================


def _record_finalize_noop(db: Session, instance: FormInstance, actor_id: UUID | None) -> None:
    audit_service.record_event(
        db=db,
        tenant_id=instance.tenant_id,
        entity_type=AuditEntityType.FORM_INSTANCE,
        entity_id=instance.id,
        action=AuditAction.FORM_FINALIZE_NOOP,
        actor_id=actor_id,
        before_state=_snapshot(instance),
        after_state=_snapshot(instance),
    )


def _validate_for_submit(db: Session, instance: FormInstance) -> None:
    template = _get_template(db, instance.tenant_id, instance.template_id)
    try:
        questions = form_validation.parse_questions(template.questions)
    except SchemaValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.error(
            "Form template has invalid questions",
            extra=build_log_context(tenant_id=instance.tenant_id, instance_id=instance.id),
        )
        raise InvalidTemplateError(template.id, problems) from exc
    errors = form_validation.validate_responses(questions, instance.responses)
    if errors:
        raise ValidationError(errors)


def _apply(
    instance: FormInstance,
    current: FormInstanceStatus,
    target: FormInstanceStatus,
    actor_id: UUID,
    reason: str | None,
) -> None:
    now = utcnow()
    instance.status = target.value

    if target == PENDING:
        instance.submitted_at = now
    elif target == APPROVED:
        instance.approved_at = now
        instance.reviewed_by = actor_id
        instance.reviewed_at = now
    elif target == REJECTED:
        instance.rejected_at = now
        instance.reviewed_by = actor_id
        instance.reviewed_at = now
        instance.rejection_reason = reason
    elif target == DRAFT and current == REJECTED:
        # Responses are kept for editing
        instance.reviewed_by = None
        instance.reviewed_at = None
        instance.rejection_reason = None
        instance.rejected_at = None
    elif target == COMPLETED:
        instance.completed_at = now


def transition(
    db: Session,
    tenant_id: UUID,
    instance_id: UUID,
    target_status: FormInstanceStatus | str,
    actor_id: UUID,
    expected_version: int,
    reason: str | None = None,
) -> FormInstance:
    """
    Move an instance to `target_status`.

    Finalizing an already-completed instance is a no-op that returns the
    current state (no version check; the actor must still be owner or reviewer).

    Raises:
        ConcurrencyConflictError: expected_version is stale
        InvalidTransitionError: transition not allowed from the current status
        InvalidTemplateError: submit against a template with malformed questions
        AuthorizationError: actor may not perform this transition
        ValidationError: submit with missing/invalid responses (status unchanged)
    """
    with translate_persistence_errors("transition", instance_id):
        instance = get_instance(db, tenant_id, instance_id)
        current = FormInstanceStatus(instance.status)

        try:
            target = FormInstanceStatus(target_status)
        except ValueError as exc:
            raise InvalidTransitionError(current.value, str(target_status)) from exc

        if current == COMPLETED and target == COMPLETED:
            actor = authorization_service.get_actor_context(db, tenant_id, actor_id)
            authorization_service.require_owner_or_reviewer(db, actor, instance.owner_coordinator_id)
            _record_finalize_noop(db, instance, actor_id)
            return instance

        _check_version(instance, expected_version)

        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value)

        actor = authorization_service.get_actor_context(db, tenant_id, actor_id)
        if (current, target) in REVIEW_TRANSITIONS:
            authorization_service.require_reviewer(db, actor, instance.owner_coordinator_id)
        else:
            authorization_service.require_owner_or_reviewer(db, actor, instance.owner_coordinator_id)

        if target == PENDING:
            _validate_for_submit(db, instance)

        before = _snapshot(instance)
        with db.begin_nested():
            audit_service.lock_chain(db, tenant_id)
            _apply(instance, current, target, actor_id, reason)
            db.flush()
            audit_service.record_event(
                db=db,
                tenant_id=tenant_id,
                entity_type=AuditEntityType.FORM_INSTANCE,
                entity_id=instance.id,
                action=TRANSITION_ACTIONS[(current, target)],
                actor_id=actor_id,
                before_state=before,
                after_state=_snapshot(instance),
                details={"reason": reason} if reason else None,
            )

    logger.info(
        "Form instance %s -> %s",
        current.value,
        target.value,
        extra=build_log_context(tenant_id=tenant_id, instance_id=instance_id, actor_id=actor_id),
    )
    return instance
