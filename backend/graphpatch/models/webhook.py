"""Webhook registration model.

Maps the automation engine's ``webhook_entity`` table. Rows are written by
the engine when a workflow with webhook trigger nodes is activated; one row
per (path, method) pair.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from graphpatch.models.base import Base


class WebhookEntity(Base):
    """A registered webhook route.

    Attributes:
        webhook_path: Registered path, e.g. ``"wf-1/incoming-order"``.
        method: HTTP method (part of the composite primary key).
        node: Name of the webhook node that owns the route.
        webhook_id: Identifier of the webhook node, if recorded.
        path_length: Number of path segments, used by dynamic routes.
        workflow_id: Owning workflow.
    """

    __tablename__ = "webhook_entity"

    webhook_path: Mapped[str] = mapped_column("webhookPath", String, primary_key=True)
    method: Mapped[str] = mapped_column(String, primary_key=True)
    node: Mapped[str] = mapped_column(String, nullable=False)
    webhook_id: Mapped[str | None] = mapped_column("webhookId", String, nullable=True)
    path_length: Mapped[int | None] = mapped_column("pathLength", Integer, nullable=True)
    workflow_id: Mapped[str] = mapped_column("workflowId", String, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<WebhookEntity(method={self.method}, path={self.webhook_path!r})>"


__all__ = ["WebhookEntity"]
