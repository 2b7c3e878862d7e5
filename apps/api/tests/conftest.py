"""
Test configuration and fixtures.

Provides:
- In-memory SQLite schema, one outer transaction per test (rolled back after)
- Tenant / user / coordinator / member / rule / template factories
- JWT session cookie minting and an authenticated HTTPX AsyncClient
"""
import os
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator, Callable, Generator

# Must be set before caseflow.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-length-for-hs256")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from caseflow.core.deps import COOKIE_NAME, get_db
from caseflow.core.security import create_session_token
from caseflow.db.base import Base
from caseflow.db.enums import CoordinatorRole, QuestionType, Role
from caseflow.db.models import (
    AssignmentRule,
    FormTemplate,
    Member,
    Membership,
    ServiceCoordinator,
    Tenant,
    User,
)
from caseflow.db.session import SessionLocal, engine
from caseflow.main import app


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session bound to an outer transaction that is rolled back after the test.

    join_transaction_mode="create_savepoint" turns commit() in app code into
    a savepoint release, so routers can commit without ending the test.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = SessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture(scope="function")
def tenant(db: Session) -> Tenant:
    t = Tenant(
        id=uuid.uuid4(),
        name="Test Tenant",
        slug=f"test-tenant-{uuid.uuid4().hex[:8]}",
    )
    db.add(t)
    db.flush()
    return t


@pytest.fixture(scope="function")
def make_user(db: Session, tenant: Tenant) -> Callable[..., User]:
    def _make(role: Role = Role.SERVICE_COORDINATOR, tenant_id: uuid.UUID | None = None) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"user-{uuid.uuid4().hex[:8]}@test.com",
            display_name="Test User",
        )
        db.add(user)
        db.flush()
        db.add(
            Membership(
                id=uuid.uuid4(),
                user_id=user.id,
                tenant_id=tenant_id or tenant.id,
                role=role.value,
            )
        )
        db.flush()
        return user
    return _make


@pytest.fixture(scope="function")
def make_coordinator(db: Session, tenant: Tenant) -> Callable[..., ServiceCoordinator]:
    def _make(
        *,
        role: CoordinatorRole = CoordinatorRole.COORDINATOR,
        zone: str = "SW",
        max_caseload: int | None = 10,
        current_caseload: int = 0,
        user: User | None = None,
        tenant_id: uuid.UUID | None = None,
        is_active: bool = True,
        coordinator_id: uuid.UUID | None = None,
        **hierarchy,
    ) -> ServiceCoordinator:
        suffix = uuid.uuid4().hex[:8]
        coordinator = ServiceCoordinator(
            id=coordinator_id or uuid.uuid4(),
            tenant_id=tenant_id or tenant.id,
            user_id=user.id if user else None,
            scid=f"SC-{suffix}",
            first_name="Case",
            last_name=f"Coordinator {suffix}",
            email=f"sc-{suffix}@test.com",
            zone=zone,
            role=role.value,
            max_caseload=max_caseload,
            current_caseload=current_caseload,
            is_active=is_active,
            **hierarchy,
        )
        db.add(coordinator)
        db.flush()
        return coordinator
    return _make


@pytest.fixture(scope="function")
def make_member(db: Session, tenant: Tenant) -> Callable[..., Member]:
    def _make(
        *,
        zone: str | None = "SW",
        plan_type: str | None = "NFCE",
        pics_score: Decimal | None = None,
        panels: list[str] | None = None,
        specializations_needed: list[str] | None = None,
    ) -> Member:
        member = Member(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            member_id=f"M-{uuid.uuid4().hex[:8]}",
            first_name="Test",
            last_name="Member",
            member_zone=zone,
            plan_type=plan_type,
            pics_score=pics_score,
            panels=panels or [],
            specializations_needed=specializations_needed or [],
        )
        db.add(member)
        db.flush()
        return member
    return _make


@pytest.fixture(scope="function")
def make_rule(db: Session, tenant: Tenant) -> Callable[..., AssignmentRule]:
    def _make(
        *,
        priority: int = 1,
        criteria: dict | None = None,
        survey_type: str | None = None,
        assigned_role: str | None = None,
        assigned_user_id: uuid.UUID | None = None,
        is_active: bool = True,
        **extra,
    ) -> AssignmentRule:
        rule = AssignmentRule(
            id=uuid.uuid4(),
            tenant_id=tenant.id,
            rule_name=f"rule-{uuid.uuid4().hex[:6]}",
            survey_type=survey_type,
            criteria=criteria or {},
            assigned_role=assigned_role,
            assigned_user_id=assigned_user_id,
            priority=priority,
            is_active=is_active,
            **extra,
        )
        db.add(rule)
        db.flush()
        return rule
    return _make


@pytest.fixture(scope="function")
def form_template(db: Session, tenant: Tenant) -> FormTemplate:
    template = FormTemplate(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        name="Annual Assessment",
        survey_type="annual",
        questions=[
            {
                "id": "q_living",
                "type": QuestionType.SINGLE_SELECT.value,
                "text": "Living situation",
                "required": True,
                "options": [
                    {"label": "Alone", "value": "alone"},
                    {"label": "With family", "value": "family"},
                ],
            },
            {
                "id": "q_notes",
                "type": QuestionType.TEXT_INPUT.value,
                "text": "Notes",
                "validation": [{"type": "maxLength", "value": 50}],
            },
        ],
    )
    db.add(template)
    db.flush()
    return template


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    tenant: Tenant
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def admin_user(make_user) -> User:
    return make_user(Role.ADMINISTRATOR)


@pytest.fixture(scope="function")
def test_auth(admin_user: User, tenant: Tenant) -> TestAuth:
    """Create JWT token for an administrator."""
    token = create_session_token(
        user_id=admin_user.id,
        tenant_id=tenant.id,
        role=Role.ADMINISTRATOR.value,
        token_version=admin_user.token_version,
    )
    return TestAuth(user=admin_user, tenant=tenant, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient with JWT cookie and CSRF header."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()
