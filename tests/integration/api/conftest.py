from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from hirepanel.db import get_session_factory_from_app
from hirepanel.features.audit import InMemoryAuditSink
from hirepanel.features.rbac import RbacService
from hirepanel.features.rbac.dependencies import get_current_user_id
from hirepanel.main import create_app
from hirepanel.settings import Settings
from hirepanel_db.models import User


@dataclass
class Identity:
    admin: UUID
    recruiter: UUID
    member: UUID


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def create_user(app: FastAPI, client: TestClient, settings: Settings) -> Callable[..., UUID]:
    """Insert a user (optionally with roles) and commit."""

    def _create(email: str, *role_names: str, is_active: bool = True) -> UUID:
        session_factory = get_session_factory_from_app(app)
        with session_factory() as session, session.begin():
            service = RbacService(session=session, settings=settings, audit=InMemoryAuditSink())
            user = User(email=email, display_name=email.split("@")[0], is_active=is_active)
            session.add(user)
            session.flush()
            for name in role_names:
                role = service.roles.get_role_by_name(name)
                service.assignments.assign_role(user_id=user.id, role_id=role.id)
            return user.id

    return _create


@pytest.fixture()
def identity(create_user: Callable[..., UUID]) -> Identity:
    return Identity(
        admin=create_user("admin@example.com", "Super Admin"),
        recruiter=create_user("recruiter@example.com", "HR"),
        member=create_user("member@example.com", "User"),
    )


@pytest.fixture()
def act_as(app: FastAPI) -> Callable[[UUID], None]:
    """Stand in for the authentication layer."""

    def _act_as(user_id: UUID) -> None:
        app.dependency_overrides[get_current_user_id] = lambda: user_id

    return _act_as


@pytest.fixture()
def role_ids(client: TestClient, identity: Identity, act_as: Callable[[UUID], None]) -> dict[str, str]:
    act_as(identity.admin)
    response = client.get("/api/v1/roles")
    assert response.status_code == 200, response.text
    return {role["name"]: role["id"] for role in response.json()}

