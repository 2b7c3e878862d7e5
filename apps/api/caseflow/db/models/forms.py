"""SQLAlchemy ORM models for form templates and instances."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.db.base import Base
from caseflow.db.enums import FormInstanceStatus
from caseflow.db.types import JSONType
from caseflow.utils.timestamps import utcnow


class FormTemplate(Base):
    """
    Versioned survey/assessment template.

    questions is a list of question definitions, validated on submit by
    form_validation (see schemas.forms.QuestionDefinition).
    """

    __tablename__ = "form_templates"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", "version", name="uq_form_template_version"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    survey_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    questions: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class FormInstance(Base):
    """
    One case/assessment in progress.

    Status moves draft -> pending -> approved|rejected -> completed, with
    rejected -> draft for resubmission. `version` is the ORM version counter:
    every UPDATE is issued as `... WHERE version = <loaded version>`, so a
    concurrent writer fails at flush instead of overwriting.
    """

    __tablename__ = "form_instances"
    __table_args__ = (
        Index("idx_form_instances_tenant_status", "tenant_id", "status"),
        Index("idx_form_instances_owner", "owner_coordinator_id"),
        Index("idx_form_instances_member", "member_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("form_templates.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    owner_coordinator_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_coordinators.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=FormInstanceStatus.DRAFT.value,
        server_default=FormInstanceStatus.DRAFT.value,
        nullable=False,
    )
    responses: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    # Lifecycle timestamps
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Review
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}
