"""Workflow store client.

The canonical copy of every workflow lives in the automation engine and is
reached through its REST control plane. The engine only depends on the
``WorkflowStore`` protocol; ``HttpWorkflowStore`` is the production adapter.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from graphpatch.core.config import Settings, settings
from graphpatch.core.logging import get_logger

logger = get_logger(__name__)


class WorkflowStore(Protocol):
    """Remote owner of workflow graphs.

    Every call returns the full document (nodes and connections included),
    never a partial view. Failures raise; they are not retried here.

    The patch engine and the analyzers only read and update. ``create_workflow``
    completes the store contract for callers that create workflows; nothing
    in this service calls it.
    """

    async def get_workflow(self, workflow_id: str, exclude_pinned_data: bool = True) -> dict[str, Any]: ...

    async def update_workflow(self, workflow_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def create_workflow(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class HttpWorkflowStore:
    """``WorkflowStore`` backed by the engine's REST API.

    Example:
        >>> async with HttpWorkflowStore.from_settings() as store:
        ...     workflow = await store.get_workflow("wf-1")
    """

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/rest",
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> HttpWorkflowStore:
        config = config or settings
        return cls(
            base_url=config.WORKFLOW_STORE_URL,
            api_prefix=config.WORKFLOW_STORE_API_PREFIX,
            api_key=config.WORKFLOW_STORE_API_KEY,
            timeout=config.WORKFLOW_STORE_TIMEOUT,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    def _url(self, *parts: str) -> str:
        return "/".join([self.api_prefix, "workflows", *parts])

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._get_client().request(method, url, **kwargs)
        logger.debug(
            f"{method} {url} -> {response.status_code}",
            extra={"context": {"method": method, "url": url, "status": response.status_code}},
        )
        response.raise_for_status()
        return self._unwrap(response.json())

    @staticmethod
    def _unwrap(body: Any) -> dict[str, Any]:
        """Strip the ``{"data": ...}`` envelope some endpoints use."""
        if isinstance(body, dict) and isinstance(body.get("data"), dict) and "nodes" not in body:
            return body["data"]
        return body if isinstance(body, dict) else {}

    async def get_workflow(self, workflow_id: str, exclude_pinned_data: bool = True) -> dict[str, Any]:
        params = {"excludePinnedData": "true"} if exclude_pinned_data else None
        return await self._request("GET", self._url(workflow_id), params=params)

    async def update_workflow(self, workflow_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", self._url(workflow_id), json=payload)

    async def create_workflow(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._url(), json=payload)

    async def aclose(self) -> None:
        """Close the client if this store created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpWorkflowStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


__all__ = ["HttpWorkflowStore", "WorkflowStore"]
