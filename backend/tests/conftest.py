"""pytest configuration and fixtures.

Provides in-memory fakes for the engine's collaborators (workflow store,
webhook registry, credential registry), a SQLite in-memory database for the
SQL registries, and an HTTP client wired to the FastAPI app with those
collaborators injected through ``dependency_overrides``.
"""

import copy
from collections.abc import AsyncGenerator, Callable, Iterable
from typing import Any, cast

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from starlette.types import ASGIApp

from graphpatch.api.deps import get_store
from graphpatch.db.session import get_db
from graphpatch.main import app
from graphpatch.models import Base
from graphpatch.services.registry import WebhookRegistration
from graphpatch.services.workflow.patcher import WorkflowPatcher

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests",
    )


# =============================================================================
# COLLABORATOR FAKES
# =============================================================================


class FakeWorkflowStore:
    """In-memory ``WorkflowStore``.

    Every read returns a deep copy, so the engine can never mutate stored
    state without going through ``update_workflow``.

    Attributes:
        updates: ``(workflow_id, payload)`` for every update call.
        reads: Workflow ids passed to ``get_workflow``, in call order.
        drop_writes: Acknowledge updates without storing them.
        after_first_read: Called with the stored document once, right after
            the first read; used to simulate a concurrent remote edit.
    """

    def __init__(self, workflows: Iterable[dict[str, Any]] = ()) -> None:
        self.workflows: dict[str, dict[str, Any]] = {
            str(doc["id"]): copy.deepcopy(doc) for doc in workflows
        }
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.created: list[dict[str, Any]] = []
        self.reads: list[str] = []
        self.drop_writes = False
        self.after_first_read: Callable[[dict[str, Any]], None] | None = None

    @staticmethod
    def _not_found(workflow_id: str) -> httpx.HTTPStatusError:
        request = httpx.Request("GET", f"http://store.test/rest/workflows/{workflow_id}")
        response = httpx.Response(404, request=request, json={"message": "Not Found"})
        return httpx.HTTPStatusError("Not Found", request=request, response=response)

    async def get_workflow(self, workflow_id: str, exclude_pinned_data: bool = True) -> dict[str, Any]:
        self.reads.append(workflow_id)
        if workflow_id not in self.workflows:
            raise self._not_found(workflow_id)
        snapshot = copy.deepcopy(self.workflows[workflow_id])
        if self.after_first_read is not None:
            hook, self.after_first_read = self.after_first_read, None
            hook(self.workflows[workflow_id])
        return snapshot

    async def update_workflow(self, workflow_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        if workflow_id not in self.workflows:
            raise self._not_found(workflow_id)
        self.updates.append((workflow_id, copy.deepcopy(payload)))
        stored = self.workflows[workflow_id]
        if not self.drop_writes:
            stored.update(copy.deepcopy(payload))
            stored["versionId"] = f"{stored.get('versionId', 'v')}+"
        return copy.deepcopy(stored)

    async def create_workflow(self, payload: dict[str, Any]) -> dict[str, Any]:
        doc = {"id": f"wf-new-{len(self.created) + 1}", **copy.deepcopy(payload)}
        self.created.append(doc)
        self.workflows[doc["id"]] = doc
        return copy.deepcopy(doc)


class FakeWebhookRegistry:
    """In-memory ``WebhookRegistry`` over a list of registrations."""

    def __init__(self, rows: Iterable[WebhookRegistration] = ()) -> None:
        self.rows = list(rows)

    async def list_for_workflow(self, workflow_id: str) -> list[WebhookRegistration]:
        return [row for row in self.rows if row.workflow_id == workflow_id]

    async def list_for_paths(self, paths: Iterable[str]) -> list[WebhookRegistration]:
        wanted = {path.strip("/") for path in paths}
        return [row for row in self.rows if row.webhook_path in wanted]


class FakeCredentialRegistry:
    """In-memory ``CredentialRegistry``; also records every lookup."""

    def __init__(self, ids: Iterable[str] = (), names: Iterable[str] = ()) -> None:
        self.ids = set(ids)
        self.names = set(names)
        self.lookups: list[tuple[str | None, str | None]] = []

    async def exists(self, credential_id: str | None = None, name: str | None = None) -> bool:
        self.lookups.append((credential_id, name))
        return bool((credential_id and credential_id in self.ids) or (name and name in self.names))


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


def _node(node_id: str, name: str, x: int, node_type: str = "n8n-nodes-base.set") -> dict[str, Any]:
    return {
        "id": node_id,
        "name": name,
        "type": node_type,
        "typeVersion": 1,
        "position": [x, 300],
        "parameters": {},
    }


@pytest.fixture
def sample_workflow() -> dict[str, Any]:
    """A linear four-node workflow: Trigger -> Fetch Data -> Transform -> Store.

    Returns:
        Raw workflow document as the store would return it.
    """
    return {
        "id": "wf-1",
        "name": "Order Sync",
        "active": False,
        "versionId": "v1",
        "nodes": [
            _node("n0", "Trigger", 0, "n8n-nodes-base.manualTrigger"),
            _node("n1", "Fetch Data", 200, "n8n-nodes-base.httpRequest"),
            _node("n2", "Transform", 400),
            _node("n3", "Store", 600, "n8n-nodes-base.postgres"),
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "Fetch Data", "type": "main", "index": 0}]]},
            "Fetch Data": {"main": [[{"node": "Transform", "type": "main", "index": 0}]]},
            "Transform": {"main": [[{"node": "Store", "type": "main", "index": 0}]]},
        },
        "settings": {"executionOrder": "v1"},
        "staticData": None,
    }


@pytest.fixture
def make_node() -> Callable[..., dict[str, Any]]:
    """Factory for node dictionaries.

    Example:
        def test_something(make_node):
            node = make_node("n9", "Notify", node_type="n8n-nodes-base.slack")
    """

    def factory(
        node_id: str,
        name: str,
        x: int = 800,
        node_type: str = "n8n-nodes-base.set",
        **extra: Any,
    ) -> dict[str, Any]:
        return {**_node(node_id, name, x, node_type), **extra}

    return factory


@pytest.fixture
def store(sample_workflow: dict[str, Any]) -> FakeWorkflowStore:
    """Fake store seeded with ``sample_workflow``."""
    return FakeWorkflowStore([sample_workflow])


@pytest.fixture
def store_factory() -> type[FakeWorkflowStore]:
    """The fake store class, for tests that seed their own documents."""
    return FakeWorkflowStore


@pytest.fixture
def webhook_registry_factory() -> type[FakeWebhookRegistry]:
    return FakeWebhookRegistry


@pytest.fixture
def credential_registry_factory() -> type[FakeCredentialRegistry]:
    return FakeCredentialRegistry


@pytest.fixture
def patcher(store: FakeWorkflowStore) -> WorkflowPatcher:
    """Patch engine over the seeded fake store."""
    return WorkflowPatcher(store)


# =============================================================================
# ASYNC ENGINE FIXTURES (SQLite In-Memory for Tests)
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async SQLite in-memory engine with the registration tables.

    Yields:
        AsyncEngine: SQLAlchemy async engine backed by SQLite in-memory.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide a database session that is rolled back after the test."""
    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


# =============================================================================
# HTTP CLIENT FIXTURES
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    store: FakeWorkflowStore,
) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for testing API endpoints.

    The workflow store is replaced with the ``store`` fake and the database
    dependency with the SQLite test session.

    Example:
        async def test_patch(async_client, store):
            response = await async_client.post("/api/v1/workflows/wf-1/patch", json=...)
            assert store.updates
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    async def override_get_store() -> AsyncGenerator[FakeWorkflowStore]:
        yield store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = override_get_store

    try:
        transport = ASGITransport(app=cast("ASGIApp", app))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
