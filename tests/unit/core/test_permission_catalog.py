from __future__ import annotations

import pytest

from hirepanel.core.rbac import (
    BUILTIN_ROLE_BY_NAME,
    BUILTIN_ROLES,
    PERMISSION_REGISTRY,
    PERMISSIONS,
    Action,
    Resource,
    UnknownPermissionError,
    all_permissions,
    is_valid,
    key_of,
    parse_key,
    validate_keys,
)


def test_catalog_lists_every_pair_once() -> None:
    pairs = all_permissions()

    assert len(pairs) == len(PERMISSIONS) == len(PERMISSION_REGISTRY) == 51
    assert (Resource.JOBS, Action.CREATE) in pairs
    assert (Resource.ROLES, Action.ASSIGN) in pairs
    assert (Resource.JOBS, Action.IMPERSONATE) not in pairs


def test_key_of_accepts_enums_and_names() -> None:
    assert key_of(Resource.JOBS, Action.CREATE) == "jobs:create"
    assert key_of("applications", "status_change") == "applications:status_change"


@pytest.mark.parametrize(
    ("resource", "action"),
    [("jobs", "impersonate"), ("candidates", "view"), ("jobs", "fly")],
)
def test_key_of_rejects_pairs_outside_catalog(resource: str, action: str) -> None:
    with pytest.raises(UnknownPermissionError):
        key_of(resource, action)
    assert is_valid(resource, action) is False


def test_is_valid_for_catalog_pair() -> None:
    assert is_valid(Resource.WEEKLY_DIGEST, Action.SEND)
    assert is_valid("audit_logs", "export")


def test_parse_key_normalizes_case_and_whitespace() -> None:
    definition = parse_key("  Roles:Assign ")

    assert definition.resource is Resource.ROLES
    assert definition.action is Action.ASSIGN
    assert definition.key == "roles:assign"
    assert definition.category


def test_parse_key_unknown() -> None:
    with pytest.raises(UnknownPermissionError) as excinfo:
        parse_key("jobs:teleport")

    assert excinfo.value.keys == ["jobs:teleport"]


def test_validate_keys_dedupes_and_reports_all_unknown_keys() -> None:
    assert validate_keys(["jobs:view", "JOBS:VIEW", "jobs:edit"]) == ("jobs:view", "jobs:edit")

    with pytest.raises(UnknownPermissionError) as excinfo:
        validate_keys(["jobs:view", "bogus:one", "jobs:fly"])

    assert excinfo.value.keys == ["bogus:one", "jobs:fly"]
    assert "bogus:one" in excinfo.value.message


def test_builtin_roles_only_grant_catalog_permissions() -> None:
    for role in BUILTIN_ROLES:
        assert role.permissions
        assert set(role.permissions) <= set(PERMISSION_REGISTRY)


def test_builtin_role_shapes() -> None:
    super_admin = BUILTIN_ROLE_BY_NAME["Super Admin"]
    admin = BUILTIN_ROLE_BY_NAME["Admin"]
    fallback = BUILTIN_ROLE_BY_NAME["User"]

    assert super_admin.is_system and admin.is_system
    assert set(super_admin.permissions) == set(PERMISSION_REGISTRY)
    assert set(super_admin.permissions) - set(admin.permissions) == {
        "settings:edit_system",
        "users:impersonate",
        "roles:delete",
    }
    assert fallback.is_system is False
    assert fallback.permissions == ("jobs:view",)
    assert BUILTIN_ROLE_BY_NAME["HR"].is_system is False
