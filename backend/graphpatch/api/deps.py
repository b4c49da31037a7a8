"""API dependencies.

Builds the engine's collaborators per request: the workflow store client from
settings and the registries from a database session. Tests replace these via
``app.dependency_overrides``.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from graphpatch.core.config import Settings, get_settings
from graphpatch.db.session import get_db
from graphpatch.services.registry import (
    CredentialRegistry,
    SqlCredentialRegistry,
    SqlWebhookRegistry,
    WebhookRegistry,
)
from graphpatch.services.store import HttpWorkflowStore, WorkflowStore
from graphpatch.services.webhook.analyzer import WebhookAnalyzer
from graphpatch.services.workflow.inspector import WorkflowInspector
from graphpatch.services.workflow.patcher import WorkflowPatcher

# =============================================================================
# Settings and Database Session
# =============================================================================

AppSettings = Annotated[Settings, Depends(get_settings)]

DBSession = Annotated[AsyncSession, Depends(get_db)]
"""Type alias for database session dependency injection."""


# =============================================================================
# Collaborators
# =============================================================================


async def get_store(config: AppSettings) -> AsyncGenerator[WorkflowStore, None]:
    """Yield a workflow store client that is closed after the request."""
    async with HttpWorkflowStore.from_settings(config) as store:
        yield store


Store = Annotated[WorkflowStore, Depends(get_store)]


def get_webhook_registry(db: DBSession) -> WebhookRegistry:
    return SqlWebhookRegistry(db)


def get_credential_registry(db: DBSession) -> CredentialRegistry:
    return SqlCredentialRegistry(db)


Webhooks = Annotated[WebhookRegistry, Depends(get_webhook_registry)]
Credentials = Annotated[CredentialRegistry, Depends(get_credential_registry)]


# =============================================================================
# Services
# =============================================================================


def get_patcher(store: Store, config: AppSettings) -> WorkflowPatcher:
    return WorkflowPatcher.from_settings(store, config)


def get_inspector(store: Store, credentials: Credentials) -> WorkflowInspector:
    return WorkflowInspector(store, credentials)


def get_webhook_analyzer(store: Store, registry: Webhooks, config: AppSettings) -> WebhookAnalyzer:
    return WebhookAnalyzer(store, registry, config.webhook_base_url)


Patcher = Annotated[WorkflowPatcher, Depends(get_patcher)]
Inspector = Annotated[WorkflowInspector, Depends(get_inspector)]
Analyzer = Annotated[WebhookAnalyzer, Depends(get_webhook_analyzer)]


__all__ = [
    "Analyzer",
    "AppSettings",
    "Credentials",
    "DBSession",
    "Inspector",
    "Patcher",
    "Store",
    "Webhooks",
    "get_credential_registry",
    "get_db",
    "get_inspector",
    "get_patcher",
    "get_store",
    "get_webhook_analyzer",
    "get_webhook_registry",
]
