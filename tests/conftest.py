"""
Shared fixtures: an in-memory Supabase, the app wired to it, and helpers that
seed a workspace with members of each role.
"""

import os
import uuid
from dataclasses import dataclass

# Settings are read at import time; configure them before the app is imported.
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUDIT_PERSIST_EVENTS"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.core.dependencies import get_auth_service
from app.core.logging import setup_logging
from app.database.supabase_client import get_service_supabase, get_supabase
from app.modules.auth.service import AuthService, clear_auth_cache
from tests.fakes import FakeSupabase

setup_logging(os.environ["LOG_LEVEL"])


@dataclass
class Member:
    user_id: str
    token: str
    email: str
    membership_id: str
    workspace_id: str
    role: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}", "X-Workspace-ID": self.workspace_id}


class WorkspaceSeeder:
    """Creates workspaces, auth users and memberships in a FakeSupabase."""

    def __init__(self, fake: FakeSupabase):
        self.fake = fake

    def workspace(self, name: str = "Acme Sales", is_active: bool = True, **extra) -> dict:
        return self.fake.add_row(
            "workspaces", name=name, description=extra.pop("description", None),
            settings=extra.pop("settings", {}),
            is_active=is_active, plan_type="free", **extra,
        )

    def member(self, workspace: dict, role: str = "member", email: str = None,
               is_active: bool = True, first_name: str = "Test", last_name: str = None) -> Member:
        token = f"token-{uuid.uuid4().hex}"
        user_id = str(uuid.uuid4())
        email = email or f"{role}-{user_id[:6]}@example.com"
        last_name = last_name or role.title()
        self.fake.auth.add_user(token, user_id=user_id, email=email, full_name=f"{first_name} {last_name}")
        row = self.fake.add_row(
            "workspace_members", user_id=user_id, workspace_id=workspace["id"], role=role, is_active=is_active,
        )
        self.fake.add_row(
            "user_profiles", id=user_id, email=email, first_name=first_name, last_name=last_name,
            full_name=f"{first_name} {last_name}", avatar_url=None,
        )
        return Member(user_id, token, email, row["id"], workspace["id"], role)


@pytest.fixture(autouse=True)
def _reset_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def seed(fake_supabase):
    return WorkspaceSeeder(fake_supabase)


@pytest.fixture
def workspace(seed):
    return seed.workspace()


@pytest.fixture
def owner(seed, workspace):
    return seed.member(workspace, "owner")


@pytest.fixture
def admin(seed, workspace):
    return seed.member(workspace, "admin")


@pytest.fixture
def member(seed, workspace):
    return seed.member(workspace, "member")


@pytest.fixture
def app(fake_supabase):
    from app.main import app

    app.dependency_overrides[get_supabase] = lambda: fake_supabase
    app.dependency_overrides[get_service_supabase] = lambda: fake_supabase
    app.dependency_overrides[get_auth_service] = lambda: AuthService(
        fake_supabase, client_factory=lambda: fake_supabase, admin_client=fake_supabase,
    )
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    """HTTPX AsyncClient talking to the app over ASGI; server errors come back as 500 responses."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
