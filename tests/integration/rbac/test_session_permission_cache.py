from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest

from hirepanel.core.rbac import Action, Resource
from hirepanel.features.rbac import (
    PermissionContext,
    RbacService,
    RolePatch,
    SessionPermissionSnapshot,
)
from hirepanel_db.models import Role, User


@pytest.fixture()
def recruiter(
    rbac: RbacService,
    roles: dict[str, Role],
    make_user: Callable[..., User],
) -> User:
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=roles["HR"].id)
    return user


def test_build_snapshot(rbac: RbacService, recruiter: User, roles: dict[str, Role]) -> None:
    snapshot = rbac.session_cache.build(recruiter.id)

    assert snapshot.user_id == recruiter.id
    assert snapshot.permissions == rbac.resolver.resolve(recruiter.id)
    assert snapshot.primary_role is not None
    assert snapshot.primary_role.id == roles["HR"].id
    assert snapshot.primary_role.color == "green"
    assert snapshot.version == 1
    assert rbac.session_cache.is_stale(snapshot) is False
    assert rbac.session_cache.refresh(snapshot) is snapshot


def test_assignment_change_makes_snapshot_stale(
    rbac: RbacService,
    recruiter: User,
    roles: dict[str, Role],
) -> None:
    snapshot = rbac.session_cache.build(recruiter.id)
    assert "roles:view" not in snapshot.permissions

    rbac.assignments.assign_role(user_id=recruiter.id, role_id=roles["Admin"].id)

    assert rbac.session_cache.is_stale(snapshot)
    # The issued snapshot is never updated in place.
    assert "roles:view" not in snapshot.permissions
    refreshed = rbac.session_cache.refresh(snapshot)
    assert "roles:view" in refreshed.permissions
    assert refreshed.version == snapshot.version + 1
    assert refreshed.primary_role is not None
    assert refreshed.primary_role.name == "HR"


def test_grant_edit_makes_snapshot_stale(
    rbac: RbacService,
    recruiter: User,
    roles: dict[str, Role],
) -> None:
    snapshot = rbac.session_cache.build(recruiter.id)

    rbac.roles.update_role(roles["HR"].id, RolePatch(permission_keys=["jobs:view"]))

    context = rbac.session_cache.context_for(recruiter.id, snapshot)
    assert context.permissions == {"jobs:view"}
    assert context.snapshot is not None
    assert context.snapshot.version > snapshot.version


def test_context_without_snapshot_resolves_live(rbac: RbacService, recruiter: User) -> None:
    context = rbac.session_cache.context_for(recruiter.id)

    assert context.snapshot is None
    assert context.permissions == rbac.resolver.resolve(recruiter.id)


def test_snapshot_for_another_user_is_ignored(
    rbac: RbacService,
    recruiter: User,
    make_user: Callable[..., User],
    roles: dict[str, Role],
) -> None:
    other = make_user()
    rbac.assignments.assign_role(user_id=other.id, role_id=roles["Super Admin"].id)
    foreign = rbac.session_cache.build(other.id)

    context = rbac.session_cache.context_for(recruiter.id, foreign)

    assert context.snapshot is None
    assert "settings:edit_system" not in context.permissions


def test_permissions_changed_at(
    rbac: RbacService,
    roles: dict[str, Role],
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    assert rbac.session_cache.permissions_changed_at(user.id) is None

    rbac.assignments.assign_role(user_id=user.id, role_id=roles["HR"].id)

    changed_at = rbac.session_cache.permissions_changed_at(user.id)
    assert isinstance(changed_at, datetime)
    assert changed_at.tzinfo is not None


def test_snapshot_claims_survive_a_session_token(rbac: RbacService, recruiter: User) -> None:
    snapshot = rbac.session_cache.build(recruiter.id)

    claims = snapshot.to_claims()
    restored = SessionPermissionSnapshot.from_claims(claims)

    assert claims["permissions"] == sorted(snapshot.permissions)
    assert claims["permissions_version"] == snapshot.version
    assert restored == snapshot
    assert rbac.session_cache.is_stale(restored) is False


def test_permission_context_helpers(recruiter: User) -> None:
    context = PermissionContext(
        user_id=recruiter.id,
        permissions=frozenset({"jobs:view", "applications:view"}),
    )

    assert context.has(Resource.JOBS, Action.VIEW)
    assert context.has("applications", "view")
    assert not context.has("jobs", "teleport")
    assert context.missing(
        (Resource.JOBS, Action.VIEW),
        (Resource.ROLES, Action.ASSIGN),
    ) == ["roles:assign"]
