"""SQLAlchemy ORM models for assignment rules."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.db.base import Base
from caseflow.db.types import JSONType
from caseflow.utils.timestamps import utcnow


class AssignmentRule(Base):
    """
    Tenant-configured routing rule.

    Evaluated in (priority, created_at, id) order; the first rule whose
    survey_type and criteria match wins. criteria is a sparse JSON object,
    e.g. {"zone": "SW", "plan_type": ["NFCE", "NFI"], "pics_score_min": 40}.
    Exactly one of assigned_role / assigned_user_id is set.
    """

    __tablename__ = "assignment_rules"
    __table_args__ = (
        CheckConstraint(
            "(assigned_role IS NULL) <> (assigned_user_id IS NULL)",
            name="ck_assignment_rule_single_target",
        ),
        Index("idx_assignment_rules_tenant_active_priority", "tenant_id", "is_active", "priority"),
        Index("idx_assignment_rules_survey_type", "survey_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    rule_name: Mapped[str] = mapped_column(String(255), nullable=False)
    survey_type: Mapped[str | None] = mapped_column(String(100), nullable=True)  # None = any
    criteria: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    # Target (role -> least-loaded coordinator; user -> that coordinator)
    assigned_role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    priority: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
