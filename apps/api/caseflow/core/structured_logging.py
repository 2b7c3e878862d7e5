"""Structured logging helpers (PHI-safe)."""

import logging
from typing import Any
from uuid import UUID

from caseflow.core.config import settings


def build_log_context(
    *,
    tenant_id: UUID | str | None = None,
    actor_id: UUID | str | None = None,
    case_id: UUID | str | None = None,
    coordinator_id: UUID | str | None = None,
    instance_id: UUID | str | None = None,
    rule_id: UUID | str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (ids only, never names or responses)."""
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = str(tenant_id)
    if actor_id:
        context["actor_id"] = str(actor_id)
    if case_id:
        context["case_id"] = str(case_id)
    if coordinator_id:
        context["coordinator_id"] = str(coordinator_id)
    if instance_id:
        context["instance_id"] = str(instance_id)
    if rule_id:
        context["rule_id"] = str(rule_id)
    if request_id:
        context["request_id"] = request_id
    return context


def configure_logging() -> None:
    """Configure root logging for the API process."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
