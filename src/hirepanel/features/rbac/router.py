"""HTTP endpoints for roles, assignments and effective permissions."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from hirepanel.core.rbac import Action, Resource

from .dependencies import (
    get_current_user_id,
    get_rbac_service,
    get_rbac_write_service,
    get_session_snapshot,
    require_permission,
)
from .roles import RolePatch
from .schemas import (
    BulkOut,
    BulkRequest,
    PermissionOut,
    PermissionSetOut,
    RemovalOut,
    RoleCreate,
    RoleDeleteOut,
    RoleOut,
    RoleUpdate,
    RoleUsersOut,
    UserOut,
    UserRolesOut,
)
from .service import RbacService
from .session_cache import PermissionContext, SessionPermissionSnapshot

router = APIRouter(tags=["rbac"])

ReadServiceDep = Annotated[RbacService, Depends(get_rbac_service)]
WriteServiceDep = Annotated[RbacService, Depends(get_rbac_write_service)]
RoleIdPath = Annotated[UUID, Path(description="Role identifier")]
UserIdPath = Annotated[UUID, Path(description="User identifier")]

CanViewRoles = Annotated[PermissionContext, require_permission(Resource.ROLES, Action.VIEW)]
CanCreateRoles = Annotated[PermissionContext, require_permission(Resource.ROLES, Action.CREATE)]
CanEditRoles = Annotated[PermissionContext, require_permission(Resource.ROLES, Action.EDIT)]
CanDeleteRoles = Annotated[PermissionContext, require_permission(Resource.ROLES, Action.DELETE)]
CanAssignRoles = Annotated[PermissionContext, require_permission(Resource.ROLES, Action.ASSIGN)]
CanViewUsers = Annotated[PermissionContext, require_permission(Resource.USERS, Action.VIEW)]


# ---------------------------------------------------------------------------
# Permission catalog
# ---------------------------------------------------------------------------


@router.get(
    "/permissions",
    response_model=list[PermissionOut],
    summary="List the permission catalog",
)
def list_permissions(service: ReadServiceDep, _: CanViewRoles) -> list[PermissionOut]:
    return [PermissionOut.from_model(permission) for permission in service.roles.list_permissions()]


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@router.get("/roles", response_model=list[RoleOut], summary="List roles")
def list_roles(service: ReadServiceDep, _: CanViewRoles) -> list[RoleOut]:
    counts = service.roles.assignment_counts()
    return [
        RoleOut.from_model(role, user_count=counts.get(role.id, 0))
        for role in service.roles.list_roles()
    ]


@router.post(
    "/roles",
    response_model=RoleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a custom role",
)
def create_role(payload: RoleCreate, service: WriteServiceDep, ctx: CanCreateRoles) -> RoleOut:
    role = service.roles.create_role(
        name=payload.name,
        description=payload.description,
        color=payload.color,
        permission_keys=payload.permissions,
        actor_id=ctx.user_id,
    )
    return RoleOut.from_model(role, user_count=0)


@router.get("/roles/{role_id}", response_model=RoleOut, summary="Get a role")
def get_role(role_id: RoleIdPath, service: ReadServiceDep, _: CanViewRoles) -> RoleOut:
    role = service.roles.get_role(role_id)
    return RoleOut.from_model(role, user_count=len(service.roles.holder_ids(role.id)))


@router.patch("/roles/{role_id}", response_model=RoleOut, summary="Update a role")
def update_role(
    role_id: RoleIdPath,
    payload: RoleUpdate,
    service: WriteServiceDep,
    ctx: CanEditRoles,
) -> RoleOut:
    patch = RolePatch(
        name=payload.name,
        description=payload.description,
        color=payload.color,
        is_active=payload.is_active,
        permission_keys=payload.permissions,
    )
    role = service.roles.update_role(role_id, patch, actor_id=ctx.user_id)
    return RoleOut.from_model(role, user_count=len(service.roles.holder_ids(role.id)))


@router.delete(
    "/roles/{role_id}",
    response_model=RoleDeleteOut,
    summary="Delete a custom role",
)
def delete_role(
    role_id: RoleIdPath,
    service: WriteServiceDep,
    ctx: CanDeleteRoles,
    cascade: Annotated[
        bool,
        Query(description="Remove the role from its holders first."),
    ] = False,
) -> RoleDeleteOut:
    results = service.roles.delete_role(role_id, cascade=cascade, actor_id=ctx.user_id)
    return RoleDeleteOut(
        role_id=role_id,
        removed=[RemovalOut.from_result(result) for result in results],
    )


@router.get(
    "/roles/{role_id}/users",
    response_model=RoleUsersOut,
    summary="List holders of a role and users that can be given it",
)
def list_role_users(role_id: RoleIdPath, service: ReadServiceDep, _: CanViewRoles) -> RoleUsersOut:
    assignments = service.assignments
    return RoleUsersOut(
        role_id=role_id,
        users=[UserOut.model_validate(user) for user in assignments.list_role_users(role_id)],
        available=[
            UserOut.model_validate(user) for user in assignments.list_available_users(role_id)
        ],
    )


@router.post(
    "/roles/{role_id}/users/bulk",
    response_model=BulkOut,
    summary="Assign a role to many users",
)
def bulk_assign(
    role_id: RoleIdPath,
    payload: BulkRequest,
    service: WriteServiceDep,
    ctx: CanAssignRoles,
) -> BulkOut:
    result = service.assignments.bulk_assign(
        role_id=role_id, user_ids=payload.user_ids, actor_id=ctx.user_id
    )
    return BulkOut.from_result(result)


@router.delete(
    "/roles/{role_id}/users/bulk",
    response_model=BulkOut,
    summary="Remove a role from many users",
)
def bulk_remove(
    role_id: RoleIdPath,
    payload: BulkRequest,
    service: WriteServiceDep,
    ctx: CanAssignRoles,
) -> BulkOut:
    result = service.assignments.bulk_remove(
        role_id=role_id, user_ids=payload.user_ids, actor_id=ctx.user_id
    )
    return BulkOut.from_result(result)


# ---------------------------------------------------------------------------
# User assignments
# ---------------------------------------------------------------------------


def _user_roles_out(service: RbacService, user_id: UUID) -> UserRolesOut:
    roles = service.assignments.list_user_roles(user_id)
    counts = service.roles.assignment_counts()
    return UserRolesOut(
        user_id=user_id,
        roles=[RoleOut.from_model(role, user_count=counts.get(role.id, 0)) for role in roles],
        primary_role_id=roles[0].id if roles else None,
    )


@router.get(
    "/users/{user_id}/roles",
    response_model=UserRolesOut,
    summary="List a user's roles",
)
def list_user_roles(user_id: UserIdPath, service: ReadServiceDep, _: CanViewUsers) -> UserRolesOut:
    return _user_roles_out(service, user_id)


@router.put(
    "/users/{user_id}/roles/{role_id}",
    response_model=UserRolesOut,
    summary="Assign a role to a user",
)
def assign_role(
    user_id: UserIdPath,
    role_id: RoleIdPath,
    service: WriteServiceDep,
    ctx: CanAssignRoles,
) -> UserRolesOut:
    service.assignments.assign_role(user_id=user_id, role_id=role_id, actor_id=ctx.user_id)
    return _user_roles_out(service, user_id)


@router.delete(
    "/users/{user_id}/roles/{role_id}",
    response_model=RemovalOut,
    summary="Remove a role from a user",
)
def remove_role(
    user_id: UserIdPath,
    role_id: RoleIdPath,
    service: WriteServiceDep,
    ctx: CanAssignRoles,
) -> RemovalOut:
    result = service.assignments.remove_role(
        user_id=user_id, role_id=role_id, actor_id=ctx.user_id
    )
    return RemovalOut.from_result(result)


# ---------------------------------------------------------------------------
# Effective permissions
# ---------------------------------------------------------------------------


@router.get(
    "/users/{user_id}/permissions",
    response_model=PermissionSetOut,
    summary="Resolve a user's effective permissions",
)
def get_user_permissions(
    user_id: UserIdPath,
    service: ReadServiceDep,
    _: CanViewUsers,
) -> PermissionSetOut:
    service.assignments.require_user(user_id)
    return PermissionSetOut.from_snapshot(service.session_cache.build(user_id))


@router.get(
    "/me/permissions",
    response_model=PermissionSetOut,
    summary="Refresh the caller's permission snapshot",
)
def get_my_permissions(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    snapshot: Annotated[SessionPermissionSnapshot | None, Depends(get_session_snapshot)],
    service: ReadServiceDep,
) -> PermissionSetOut:
    if snapshot is not None and snapshot.user_id == user_id:
        current = service.session_cache.refresh(snapshot)
    else:
        current = service.session_cache.build(user_id)
    return PermissionSetOut.from_snapshot(current)


__all__ = ["router"]
