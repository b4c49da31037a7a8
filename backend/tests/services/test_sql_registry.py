"""Tests for the SQL-backed webhook and credential registries."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from graphpatch.models import CredentialEntity, WebhookEntity
from graphpatch.services.registry import (
    SqlCredentialRegistry,
    SqlWebhookRegistry,
    WebhookRegistration,
)


@pytest_asyncio.fixture
async def seeded_session(db_session: AsyncSession) -> AsyncSession:
    db_session.add_all(
        [
            WebhookEntity(webhook_path="wf-1/incoming", method="post", node="incoming", workflow_id="wf-1"),
            WebhookEntity(webhook_path="/wf-1/status", method="GET", node="status", workflow_id="wf-1"),
            WebhookEntity(webhook_path="wf-1/incoming", method="GET", node="incoming", workflow_id="wf-2"),
            CredentialEntity(id="c1", name="Shop API", type="httpBasicAuth"),
        ]
    )
    await db_session.flush()
    return db_session


class TestSqlWebhookRegistry:
    """Tests for SqlWebhookRegistry."""

    @pytest.mark.asyncio
    async def test_list_for_workflow(self, seeded_session) -> None:
        """Test that rows are normalized and filtered by workflow."""
        rows = await SqlWebhookRegistry(seeded_session).list_for_workflow("wf-1")

        assert rows == [
            WebhookRegistration("wf-1/status", "GET", "status", "wf-1"),
            WebhookRegistration("wf-1/incoming", "POST", "incoming", "wf-1"),
        ]

    @pytest.mark.asyncio
    async def test_list_for_paths_matches_slash_variants(self, seeded_session) -> None:
        """Test lookup across workflows, with and without a leading slash."""
        registry = SqlWebhookRegistry(seeded_session)

        rows = await registry.list_for_paths(["wf-1/incoming", "/wf-1/status/"])

        assert {(row.webhook_path, row.method, row.workflow_id) for row in rows} == {
            ("wf-1/incoming", "GET", "wf-2"),
            ("wf-1/incoming", "POST", "wf-1"),
            ("wf-1/status", "GET", "wf-1"),
        }

    @pytest.mark.asyncio
    async def test_list_for_no_paths(self, seeded_session) -> None:
        """Test that blank paths short-circuit."""
        assert await SqlWebhookRegistry(seeded_session).list_for_paths(["", "/"]) == []


class TestSqlCredentialRegistry:
    """Tests for SqlCredentialRegistry."""

    @pytest.mark.asyncio
    async def test_exists_by_id_or_name(self, seeded_session) -> None:
        """Test both lookup keys."""
        registry = SqlCredentialRegistry(seeded_session)

        assert await registry.exists(credential_id="c1") is True
        assert await registry.exists(name="Shop API") is True
        assert await registry.exists(credential_id="gone", name="Shop API") is True
        assert await registry.exists(credential_id="gone") is False

    @pytest.mark.asyncio
    async def test_exists_without_keys(self, seeded_session) -> None:
        """Test that a reference with neither id nor name never resolves."""
        assert await SqlCredentialRegistry(seeded_session).exists() is False
