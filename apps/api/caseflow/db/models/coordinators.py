"""SQLAlchemy ORM models for service coordinators."""

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
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from caseflow.db.base import Base
from caseflow.db.enums import ZONE_SQL_VALUES, CoordinatorRole
from caseflow.db.types import JSONType
from caseflow.utils.timestamps import utcnow


class ServiceCoordinator(Base):
    """
    Staff member who owns assigned cases.

    Hierarchy is stored as parent-id references (supervisor -> manager -> director),
    validated on write by hierarchy_service; objects never hold live references
    to each other, so a cycle cannot be built in memory.

    current_caseload is written only through hierarchy_service.adjust_caseload.
    """

    __tablename__ = "service_coordinators"
    __table_args__ = (
        UniqueConstraint("tenant_id", "scid", name="uq_coordinator_tenant_scid"),
        UniqueConstraint("tenant_id", "email", name="uq_coordinator_tenant_email"),
        CheckConstraint("current_caseload >= 0", name="ck_coordinator_caseload_non_negative"),
        CheckConstraint(
            "max_caseload IS NULL OR current_caseload <= max_caseload",
            name="ck_coordinator_caseload_within_max",
        ),
        CheckConstraint(f"zone IN {ZONE_SQL_VALUES}", name="ck_coordinator_zone_valid"),
        Index("idx_coordinators_tenant_zone_active", "tenant_id", "zone", "is_active"),
        Index("idx_coordinators_tenant_role_active", "tenant_id", "role", "is_active"),
        Index("idx_coordinators_zone_caseload", "zone", "current_caseload"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    # Staff login for this coordinator (target of user-specific rules)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Business key
    scid: Mapped[str] = mapped_column(String(50), nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    zone: Mapped[str] = mapped_column(String(2), nullable=False)  # Zone enum value
    role: Mapped[str] = mapped_column(
        String(50),
        default=CoordinatorRole.COORDINATOR.value,
        server_default=CoordinatorRole.COORDINATOR.value,
        nullable=False,
    )

    # Hierarchy (self-references, validated on write)
    supervisor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_coordinators.id", ondelete="SET NULL"), nullable=True
    )
    manager_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_coordinators.id", ondelete="SET NULL"), nullable=True
    )
    director_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_coordinators.id", ondelete="SET NULL"), nullable=True
    )

    # Capacity
    max_caseload: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_caseload: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )

    specializations: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    @property
    def upward_ids(self) -> list[uuid.UUID]:
        """Direct parents in supervisor, manager, director order."""
        return [
            parent_id
            for parent_id in (self.supervisor_id, self.manager_id, self.director_id)
            if parent_id is not None
        ]
