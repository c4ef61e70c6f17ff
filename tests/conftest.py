"""Shared pytest fixtures for Coding Analytics tests.

Fixture summary
---------------
test_engine     — Async SQLite engine (aiosqlite) on a per-test file, schema created.
db_session      — AsyncSession on that engine, rolled back after each test.
world           — A project with one user per role, a document and a transcription.
collaborators   — In-memory fakes of the external services, wired to ``world``.
taxonomy        — TaxonomyManager on ``db_session``.
index           — AnnotationIndex on ``db_session``.
analytics       — AnalyticsEngine on ``db_session``.
client          — httpx.AsyncClient against ``create_app`` with a DB override.

No external infrastructure is required: every test gets a fresh SQLite
database in ``tmp_path``.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set env vars before any application modules are imported so that the
# module-level engine in core.database never points at a real database.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "LOG_LEVEL": "WARNING",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from coding_analytics.analysis.engine import AnalyticsEngine  # noqa: E402
from coding_analytics.config.settings import get_settings  # noqa: E402
from coding_analytics.core.annotation_index import AnnotationIndex  # noqa: E402
from coding_analytics.core.collaborators import Collaborators  # noqa: E402
from coding_analytics.core.database import (  # noqa: E402
    _build_engine,
    build_session_factory,
    create_schema,
)
from coding_analytics.core.roles import Role  # noqa: E402
from coding_analytics.core.taxonomy import TaxonomyManager  # noqa: E402

# Clear the lru_cache so Settings() re-reads from the patched environment.
get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeMembership:
    """In-memory ``ProjectMembership``: ``{project_id: {user_id: Role}}``."""

    def __init__(self) -> None:
        self.projects: dict[uuid.UUID, dict[uuid.UUID, Role]] = {}

    def add_project(self, project_id: uuid.UUID) -> None:
        self.projects.setdefault(project_id, {})

    def grant(self, project_id: uuid.UUID, user_id: uuid.UUID, role: Role) -> None:
        self.projects.setdefault(project_id, {})[user_id] = role

    async def project_exists(self, project_id: uuid.UUID) -> bool:
        return project_id in self.projects

    async def role_of(self, project_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Role]:
        return self.projects.get(project_id, {}).get(user_id)


class FakeTargets:
    """In-memory document or transcription store: ``{target_id: project_id}``."""

    def __init__(self) -> None:
        self.owners: dict[uuid.UUID, uuid.UUID] = {}

    def add(self, project_id: uuid.UUID) -> uuid.UUID:
        target_id = uuid.uuid4()
        self.owners[target_id] = project_id
        return target_id

    async def exists(self, target_id: uuid.UUID) -> bool:
        return target_id in self.owners

    async def project_of(self, target_id: uuid.UUID) -> Optional[uuid.UUID]:
        return self.owners.get(target_id)


class FakeUsers:
    """In-memory ``UserDirectory`` with a fallback label for unknown users."""

    def __init__(self) -> None:
        self.names: dict[uuid.UUID, str] = {}

    async def display_name(self, user_id: uuid.UUID) -> str:
        return self.names.get(user_id, "Unknown user")


@dataclass
class World:
    """One project populated with a user per role and two annotation targets."""

    collaborators: Collaborators
    project_id: uuid.UUID
    owner: uuid.UUID
    editor: uuid.UUID
    viewer: uuid.UUID
    outsider: uuid.UUID
    document_id: uuid.UUID
    transcription_id: uuid.UUID

    @property
    def membership(self) -> FakeMembership:
        return self.collaborators.membership  # type: ignore[return-value]

    @property
    def documents(self) -> FakeTargets:
        return self.collaborators.documents  # type: ignore[return-value]

    @property
    def transcriptions(self) -> FakeTargets:
        return self.collaborators.transcriptions  # type: ignore[return-value]

    @property
    def users(self) -> FakeUsers:
        return self.collaborators.users  # type: ignore[return-value]

    def new_document(self, project_id: Optional[uuid.UUID] = None) -> uuid.UUID:
        return self.documents.add(project_id or self.project_id)

    def new_project(self) -> uuid.UUID:
        """Create a second project where ``owner`` is also OWNER."""
        project_id = uuid.uuid4()
        self.membership.grant(project_id, self.owner, Role.OWNER)
        return project_id


@pytest.fixture
def world() -> World:
    membership = FakeMembership()
    documents = FakeTargets()
    transcriptions = FakeTargets()
    users = FakeUsers()

    project_id = uuid.uuid4()
    owner, editor, viewer, outsider = (uuid.uuid4() for _ in range(4))
    membership.add_project(project_id)
    membership.grant(project_id, owner, Role.OWNER)
    membership.grant(project_id, editor, Role.EDITOR)
    membership.grant(project_id, viewer, Role.VIEWER)
    users.names.update({owner: "Olivia Owner", editor: "Eli Editor", viewer: "Vic Viewer"})

    return World(
        collaborators=Collaborators(
            membership=membership,
            documents=documents,
            transcriptions=transcriptions,
            users=users,
        ),
        project_id=project_id,
        owner=owner,
        editor=editor,
        viewer=viewer,
        outsider=outsider,
        document_id=documents.add(project_id),
        transcription_id=transcriptions.add(project_id),
    )


@pytest.fixture
def collaborators(world: World) -> Collaborators:
    return world.collaborators


# ---------------------------------------------------------------------------
# Test database engine and session factory
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create an aiosqlite engine on a fresh database file with all tables.

    A file (rather than ``:memory:``) keeps the data visible across the
    pool's connections, which the HTTP tests rely on.
    """
    engine = _build_engine(f"sqlite+aiosqlite:///{tmp_path / 'coding.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a sessionmaker bound to the test engine."""
    return build_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession that rolls back after each test."""
    async with test_session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------------------------------------------------------------------------
# Engine services
# ---------------------------------------------------------------------------


@pytest.fixture
def taxonomy(db_session: AsyncSession, world: World) -> TaxonomyManager:
    return TaxonomyManager(db_session, world.membership)


@pytest.fixture
def index(db_session: AsyncSession, world: World) -> AnnotationIndex:
    return AnnotationIndex(db_session, world.collaborators)


@pytest.fixture
def analytics(db_session: AsyncSession, world: World) -> AnalyticsEngine:
    return AnalyticsEngine(db_session, world.collaborators, get_settings())


# ---------------------------------------------------------------------------
# FastAPI test client with DB override
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    world: World,
    test_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx.AsyncClient against an app wired to ``world``.

    ``get_db`` is overridden to open sessions on the test engine with the
    same commit-or-rollback behaviour as production, so every request is its
    own transaction.
    """
    from coding_analytics.api.main import create_app  # noqa: PLC0415
    from coding_analytics.core.database import get_db  # noqa: PLC0415

    app = create_app(world.collaborators)

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
