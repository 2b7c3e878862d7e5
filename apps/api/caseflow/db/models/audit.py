"""SQLAlchemy ORM models for the audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Uuid, event, func
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.db.base import Base
from caseflow.db.types import JSONType
from caseflow.utils.timestamps import utcnow


class AuditEvent(Base):
    """
    Append-only record of an assignment decision or state transition.

    Security:
    - Never stores form responses or names, only ids and state snapshots
    - Hash chain (prev_hash -> entry_hash per tenant) makes tampering detectable
    - Rows are never updated or deleted through the ORM
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_tenant_created", "tenant_id", "created_at"),
        Index("idx_audit_events_entity", "tenant_id", "entity_type", "entity_id"),
        Index("idx_audit_events_actor", "tenant_id", "actor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditEntityType
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditAction
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, nullable=True  # System decisions have no actor
    )

    before_state: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    after_state: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Tamper-evident hash chain
    prev_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA256 hex
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA256 hex

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class AuditEventImmutableError(RuntimeError):
    """Raised when code tries to modify or delete an audit event."""


@event.listens_for(AuditEvent, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditEventImmutableError("Audit events are append-only")


@event.listens_for(AuditEvent, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditEventImmutableError("Audit events are append-only")
