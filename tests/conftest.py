from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

import taskboard.models  # noqa: F401  (registers every table)
from taskboard.db.session import create_db_engine, get_db
from taskboard.main import app

from .helpers import API, auth


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine):
    def get_db_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = get_db_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client) -> Callable[..., dict]:
    """Register a user and return {"user", "token", "headers"}."""
    def _register(username: str, password: str = "secret123", **extra) -> dict:
        payload = {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            "full_name": f"{username.title()} Tester",
        }
        payload.update(extra)
        response = client.post(f"{API}/auth/register", json=payload)
        assert response.status_code == 201, response.text
        body = response.json()
        return {"user": body["user"], "token": body["access_token"], "headers": auth(body["access_token"])}

    return _register


@pytest.fixture
def create_project(client) -> Callable[..., dict]:
    def _create(headers: Dict[str, str], name: str = "Launch", **extra) -> dict:
        response = client.post(f"{API}/projects", json={"name": name, **extra}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def create_task(client) -> Callable[..., dict]:
    def _create(headers: Dict[str, str], project_id: int, title: str = "Write docs", **extra) -> dict:
        response = client.post(
            f"{API}/tasks", json={"title": title, "project_id": project_id, **extra}, headers=headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def add_member(client) -> Callable[..., dict]:
    def _add(headers: Dict[str, str], project_id: int, user_id: str, role: str = "member") -> dict:
        response = client.post(
            f"{API}/projects/{project_id}/members",
            json={"user_id": user_id, "role": role},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add
