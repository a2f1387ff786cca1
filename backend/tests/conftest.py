# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["SUPABASE_JWT_SECRET"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["ENVIRONMENT"] = "test"

from models import Base, Profile, UserRole
from auth import create_access_token
from database import get_db_session
from errors import GitHubError
from mirroring import github_client_factory
from settings_store import GITHUB_PAT_KEY, set_setting
from main import app


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _make_profile(db_session, email: str, role: UserRole) -> Profile:
    profile = Profile(id=str(uuid.uuid4()), email=email, role=role)
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def test_user(db_session):
    """Create a customer profile"""
    return await _make_profile(db_session, "coach@4gears.test", UserRole.USER)


@pytest_asyncio.fixture
async def other_user(db_session):
    """A second customer, for ownership checks"""
    return await _make_profile(db_session, "rival@4gears.test", UserRole.USER)


@pytest_asyncio.fixture
async def admin_user(db_session):
    """Create an admin profile"""
    return await _make_profile(db_session, "admin@4gears.test", UserRole.ADMIN)


def get_auth_headers(profile: Profile) -> dict:
    """Generate auth headers for a profile"""
    token = create_access_token(profile.id, email=profile.email)
    return {"Authorization": f"Bearer {token}"}


# ============================================================
# GITHUB
# ============================================================

class FakeGitHub:
    """Stands in for GitHubClient. Records every call; methods listed in
    ``fail`` raise GitHubError instead of answering."""

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.tokens = []
        self._next_issue = 1

    def __call__(self, token: str):
        # Used as the client factory: every request gets this same instance
        self.tokens.append(token)
        return self

    def names(self):
        return [c[0] for c in self.calls]

    def _record(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise GitHubError(f"GitHub: {name} failed", status=502)

    async def create_repo(self, name, description=None, private=True):
        self._record("create_repo", name)
        return {"url": f"https://github.com/acme/{name}", "full_name": f"acme/{name}", "name": name}

    async def create_branch(self, repo, branch):
        self._record("create_branch", repo, branch)
        return branch

    async def put_file(self, repo, path, content, message, branch="main"):
        self._record("put_file", repo, path, content)

    async def create_issue(self, repo, title, body=""):
        self._record("create_issue", repo, title, body)
        number = self._next_issue
        self._next_issue += 1
        return number

    async def comment_issue(self, repo, issue_number, body):
        self._record("comment_issue", repo, issue_number, body)


@pytest_asyncio.fixture
async def github_pat(db_session):
    """Store a GitHub token in admin settings"""
    await set_setting(db_session, GITHUB_PAT_KEY, "ghp_testtoken1234")
    await db_session.commit()
    return "ghp_testtoken1234"


@pytest.fixture
def fake_github(client):
    """Route every GitHub call made by the API to a FakeGitHub"""
    fake = FakeGitHub()
    app.dependency_overrides[github_client_factory] = lambda: fake
    return fake
