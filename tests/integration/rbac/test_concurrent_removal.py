from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from hirepanel.features.audit import InMemoryAuditSink
from hirepanel.features.rbac import RbacService, RemovalResult
from hirepanel.features.rbac.state import current_permission_state
from hirepanel.settings import Settings
from hirepanel_db.models import User


def _seed_user_with_roles(
    session_factory: sessionmaker[Session],
    settings: Settings,
    *role_names: str,
) -> tuple[UUID, list[UUID]]:
    with session_factory() as session, session.begin():
        service = RbacService(session=session, settings=settings, audit=InMemoryAuditSink())
        user = User(email="contended@example.com", display_name="Contended")
        session.add(user)
        session.flush()
        role_ids = []
        for name in role_names:
            role = service.roles.get_role_by_name(name)
            service.assignments.assign_role(user_id=user.id, role_id=role.id)
            role_ids.append(role.id)
        return user.id, role_ids


def test_concurrent_removals_never_leave_user_without_roles(
    session_factory: sessionmaker[Session],
    settings: Settings,
    seeded: None,
) -> None:
    user_id, role_ids = _seed_user_with_roles(session_factory, settings, "Admin", "HR")
    barrier = threading.Barrier(len(role_ids))

    def _remove(role_id: UUID) -> RemovalResult:
        with session_factory() as session:
            service = RbacService(session=session, settings=settings, audit=InMemoryAuditSink())
            barrier.wait(timeout=10)
            with session.begin():
                return service.assignments.remove_role(user_id=user_id, role_id=role_id)

    with ThreadPoolExecutor(max_workers=len(role_ids)) as pool:
        results = list(pool.map(_remove, role_ids))

    assert all(result.success for result in results)
    assert sum(result.fallback_applied for result in results) == 1

    with session_factory() as session:
        service = RbacService(session=session, settings=settings, audit=InMemoryAuditSink())
        remaining = [role.name for role in service.assignments.list_user_roles(user_id)]
        version, _ = current_permission_state(session, user_id)
        session.rollback()

    assert remaining == ["User"]
    # Two assignments plus two removals, each bumping the version once.
    assert version == 4
