"""SQLAlchemy ORM models for members (case subjects)."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.db.base import Base
from caseflow.db.enums import ZONE_SQL_VALUES
from caseflow.db.types import JSONType
from caseflow.utils.timestamps import utcnow


class Member(Base):
    """
    Case subject. The member id doubles as the case id for routing.

    Ownership fields (service_coordinator_id, assigned_scid, assigned_at)
    are written only by assignment_service.
    """

    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("tenant_id", "member_id", name="uq_member_tenant_external_id"),
        CheckConstraint(
            f"member_zone IS NULL OR member_zone IN {ZONE_SQL_VALUES}",
            name="ck_member_zone_valid",
        ),
        Index("idx_members_tenant_zone", "tenant_id", "member_zone"),
        Index("idx_members_assigned_scid", "assigned_scid"),
        Index("idx_members_coordinator", "service_coordinator_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[str] = mapped_column(String(50), nullable=False)  # External member ID

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Routing attributes
    member_zone: Mapped[str | None] = mapped_column(String(2), nullable=True)
    plan_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    pics_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    panels: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    specializations_needed: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Ownership
    service_coordinator_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_coordinators.id", ondelete="SET NULL"), nullable=True
    )
    assigned_scid: Mapped[str | None] = mapped_column(String(50), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )
