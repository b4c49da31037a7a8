"""Read-only lookups against the automation engine's database.

``WebhookRegistry`` lists registered webhook routes; ``CredentialRegistry``
answers whether a credential reference can be resolved. Both are protocols
so the analyzers can be exercised without a database.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from graphpatch.models.credential import CredentialEntity
from graphpatch.models.webhook import WebhookEntity


@dataclass(frozen=True, slots=True)
class WebhookRegistration:
    """A registered webhook route, normalized for comparison."""

    webhook_path: str
    method: str
    node: str
    workflow_id: str

    @classmethod
    def from_entity(cls, entity: WebhookEntity) -> WebhookRegistration:
        return cls(
            webhook_path=(entity.webhook_path or "").strip("/"),
            method=(entity.method or "").upper(),
            node=entity.node or "",
            workflow_id=str(entity.workflow_id),
        )


class WebhookRegistry(Protocol):
    async def list_for_workflow(self, workflow_id: str) -> list[WebhookRegistration]: ...

    async def list_for_paths(self, paths: Iterable[str]) -> list[WebhookRegistration]: ...


class CredentialRegistry(Protocol):
    async def exists(self, credential_id: str | None = None, name: str | None = None) -> bool: ...


class SqlWebhookRegistry:
    """``WebhookRegistry`` over the ``webhook_entity`` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_for_workflow(self, workflow_id: str) -> list[WebhookRegistration]:
        result = await self.db.execute(
            select(WebhookEntity)
            .where(WebhookEntity.workflow_id == workflow_id)
            .order_by(WebhookEntity.webhook_path, WebhookEntity.method)
        )
        return [WebhookRegistration.from_entity(row) for row in result.scalars().all()]

    async def list_for_paths(self, paths: Iterable[str]) -> list[WebhookRegistration]:
        """Registrations under any of ``paths``, across all workflows.

        Stored paths are compared with and without surrounding slashes.
        """
        wanted = {path.strip("/") for path in paths if path.strip("/")}
        if not wanted:
            return []
        variants = wanted | {f"/{path}" for path in wanted}
        result = await self.db.execute(
            select(WebhookEntity)
            .where(WebhookEntity.webhook_path.in_(variants))
            .order_by(WebhookEntity.webhook_path, WebhookEntity.method)
        )
        return [WebhookRegistration.from_entity(row) for row in result.scalars().all()]


class SqlCredentialRegistry:
    """``CredentialRegistry`` over the ``credentials_entity`` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def exists(self, credential_id: str | None = None, name: str | None = None) -> bool:
        """True if a credential with the given id or name is stored."""
        conditions = []
        if credential_id:
            conditions.append(CredentialEntity.id == credential_id)
        if name:
            conditions.append(CredentialEntity.name == name)
        if not conditions:
            return False
        result = await self.db.execute(select(CredentialEntity.id).where(or_(*conditions)).limit(1))
        return result.scalar_one_or_none() is not None


__all__ = [
    "CredentialRegistry",
    "SqlCredentialRegistry",
    "SqlWebhookRegistry",
    "WebhookRegistration",
    "WebhookRegistry",
]
