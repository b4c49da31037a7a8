"""Tests for the HTTP workflow store client."""

import json

import httpx
import pytest

from graphpatch.core.config import Settings
from graphpatch.services.store import HttpWorkflowStore


def _store(handler, **kwargs) -> HttpWorkflowStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://n8n.test")
    return HttpWorkflowStore("http://n8n.test/", client=client, **kwargs)


class TestHttpWorkflowStore:
    """Tests for HttpWorkflowStore."""

    @pytest.mark.asyncio
    async def test_get_workflow_excludes_pinned_data(self) -> None:
        """Test URL and query parameters of a read."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "wf-1", "nodes": [], "connections": {}})

        store = _store(handler)
        workflow = await store.get_workflow("wf-1")

        assert workflow["id"] == "wf-1"
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/rest/workflows/wf-1"
        assert seen[0].url.params["excludePinnedData"] == "true"

        await store.get_workflow("wf-1", exclude_pinned_data=False)
        assert "excludePinnedData" not in seen[1].url.params

    @pytest.mark.asyncio
    async def test_unwraps_data_envelope(self) -> None:
        """Test that ``{"data": {...}}`` responses are unwrapped."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"id": "wf-1", "nodes": []}})

        assert await _store(handler).get_workflow("wf-1") == {"id": "wf-1", "nodes": []}

    @pytest.mark.asyncio
    async def test_update_and_create_send_json(self) -> None:
        """Test write methods and payloads."""
        seen: list[tuple[str, str, dict]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append((request.method, request.url.path, body))
            return httpx.Response(200, json={"id": "wf-2", **body})

        store = _store(handler, api_prefix="api/v1")
        await store.update_workflow("wf-2", {"name": "A"})
        created = await store.create_workflow({"name": "B"})

        assert seen == [
            ("PUT", "/api/v1/workflows/wf-2", {"name": "A"}),
            ("POST", "/api/v1/workflows", {"name": "B"}),
        ]
        assert created["name"] == "B"

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        """Test that HTTP errors propagate unchanged."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await _store(handler).get_workflow("missing")
        assert exc_info.value.response.status_code == 404

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self) -> None:
        """Test that aclose only closes clients the store created."""
        store = _store(lambda request: httpx.Response(200, json={}))
        client = store._client

        await store.aclose()

        assert client is not None
        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_headers_and_close(self) -> None:
        """Test the default client configuration."""
        config = Settings(
            _env_file=None,
            WORKFLOW_STORE_URL="http://n8n.test",
            WORKFLOW_STORE_API_KEY="k-1",
            WORKFLOW_STORE_TIMEOUT=5.0,
        )

        async with HttpWorkflowStore.from_settings(config) as store:
            client = store._get_client()
            assert client.headers["Authorization"] == "Bearer k-1"
            assert client.base_url.host == "n8n.test"
            assert client.timeout.read == 5.0

        assert client.is_closed is True
        assert store._client is None
