"""Tests for actor resolution and review authority."""

import uuid

import pytest

from caseflow.core.errors import AuthorizationError
from caseflow.db.enums import Role
from caseflow.services import authorization_service


def test_actor_context_links_coordinator(db, tenant, make_user, make_coordinator):
    user = make_user(Role.SERVICE_COORDINATOR)
    coordinator = make_coordinator(user=user)

    actor = authorization_service.get_actor_context(db, tenant.id, user.id)

    assert actor.role == Role.SERVICE_COORDINATOR
    assert actor.coordinator_id == coordinator.id


def test_actor_without_membership(db, tenant):
    with pytest.raises(AuthorizationError):
        authorization_service.get_actor_context(db, tenant.id, uuid.uuid4())


def test_review_roles_have_authority(db, tenant, make_user, make_coordinator):
    owner = make_coordinator()
    for role in (Role.ADMINISTRATOR, Role.MANAGER, Role.QM_STAFF):
        actor = authorization_service.get_actor_context(db, tenant.id, make_user(role).id)
        assert authorization_service.has_review_authority(db, actor, owner.id)

    nurse = authorization_service.get_actor_context(db, tenant.id, make_user(Role.UM_NURSE).id)
    assert not authorization_service.has_review_authority(db, nurse, owner.id)


def test_chain_authority_is_transitive_and_one_way(db, tenant, make_user, make_coordinator):
    manager_user = make_user()
    manager = make_coordinator(user=manager_user)
    supervisor_user = make_user()
    supervisor = make_coordinator(user=supervisor_user, supervisor_id=manager.id)
    owner_user = make_user()
    owner = make_coordinator(user=owner_user, supervisor_id=supervisor.id)

    manager_actor = authorization_service.get_actor_context(db, tenant.id, manager_user.id)
    owner_actor = authorization_service.get_actor_context(db, tenant.id, owner_user.id)

    assert authorization_service.has_review_authority(db, manager_actor, owner.id)
    assert not authorization_service.has_review_authority(db, owner_actor, supervisor.id)
    assert not authorization_service.has_review_authority(db, owner_actor, owner.id)


def test_owner_passes_owner_check_but_not_review(db, tenant, make_user, make_coordinator):
    user = make_user()
    owner = make_coordinator(user=user)
    actor = authorization_service.get_actor_context(db, tenant.id, user.id)

    authorization_service.require_owner_or_reviewer(db, actor, owner.id)
    with pytest.raises(AuthorizationError):
        authorization_service.require_reviewer(db, actor, owner.id)
