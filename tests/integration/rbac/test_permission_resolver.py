from __future__ import annotations

from collections.abc import Callable
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from hirepanel.core.rbac import Action, Resource, UserNotFoundError
from hirepanel.features.rbac import RbacService, RolePatch
from hirepanel.features.rbac.state import memo_for
from hirepanel_db.models import Role, User


@pytest.fixture()
def pipeline_roles(rbac: RbacService) -> tuple[Role, Role]:
    posting = rbac.roles.create_role(name="Posting", permission_keys=["jobs:create", "jobs:edit"])
    screening = rbac.roles.create_role(name="Screening", permission_keys=["applications:view"])
    return posting, screening


def test_resolve_is_union_of_role_grants(
    rbac: RbacService,
    pipeline_roles: tuple[Role, Role],
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    for role in pipeline_roles:
        rbac.assignments.assign_role(user_id=user.id, role_id=role.id)

    assert rbac.resolver.resolve(user.id) == {"jobs:create", "jobs:edit", "applications:view"}


def test_overlapping_grants_are_deduplicated(
    rbac: RbacService,
    roles: dict[str, Role],
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=roles["HR"].id)
    rbac.assignments.assign_role(user_id=user.id, role_id=roles["User"].id)

    permissions = rbac.resolver.resolve(user.id)

    assert len(permissions) == 14
    assert "jobs:view" in permissions


def test_has_permission(
    rbac: RbacService,
    pipeline_roles: tuple[Role, Role],
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=pipeline_roles[0].id)
    resolver = rbac.resolver

    assert resolver.has_permission(user.id, Resource.JOBS, Action.CREATE)
    assert resolver.has_permission(user.id, "jobs", "edit")
    assert not resolver.has_permission(user.id, Resource.JOBS, Action.DELETE)
    assert not resolver.has_permission(user.id, "jobs", "teleport")
    assert resolver.has_any_permission_for_resource(user.id, Resource.JOBS)
    assert not resolver.has_any_permission_for_resource(user.id, "applications")
    assert not resolver.has_any_permission_for_resource(user.id, "candidates")
    assert resolver.check_permissions(
        user.id,
        [(Resource.JOBS, Action.EDIT), ("applications", "view"), ("jobs", "teleport")],
    ) == {"jobs:edit": True, "applications:view": False, "jobs:teleport": False}


def test_resolution_tracks_assignment_changes(
    rbac: RbacService,
    pipeline_roles: tuple[Role, Role],
    make_user: Callable[..., User],
) -> None:
    posting, screening = pipeline_roles
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=posting.id)
    assert rbac.resolver.resolve(user.id) == {"jobs:create", "jobs:edit"}

    rbac.assignments.assign_role(user_id=user.id, role_id=screening.id)
    assert "applications:view" in rbac.resolver.resolve(user.id)

    rbac.assignments.remove_role(user_id=user.id, role_id=posting.id)
    assert rbac.resolver.resolve(user.id) == {"applications:view"}


def test_resolution_tracks_grant_edits(
    rbac: RbacService,
    pipeline_roles: tuple[Role, Role],
    make_user: Callable[..., User],
) -> None:
    posting, _ = pipeline_roles
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=posting.id)
    rbac.resolver.resolve(user.id)

    rbac.roles.update_role(posting.id, RolePatch(permission_keys=["jobs:publish"]))

    assert rbac.resolver.resolve(user.id) == {"jobs:publish"}


def test_memo_is_scoped_to_the_session(
    rbac: RbacService,
    roles: dict[str, Role],
    make_user: Callable[..., User],
    session: Session,
) -> None:
    user = make_user()
    rbac.assignments.assign_role(user_id=user.id, role_id=roles["User"].id)

    first = rbac.resolver.resolve(user.id)

    assert memo_for(session)[user.id][1] is first
    assert rbac.resolver.resolve(user.id) is first
    rbac.resolver.invalidate(user.id)
    assert user.id not in memo_for(session)


def test_resolve_unknown_user(rbac: RbacService) -> None:
    with pytest.raises(UserNotFoundError):
        rbac.resolver.resolve(uuid4())
