"""SQLAlchemy models for the automation engine's registration tables."""

from graphpatch.models.base import Base
from graphpatch.models.credential import CredentialEntity
from graphpatch.models.webhook import WebhookEntity

__all__ = [
    "Base",
    "CredentialEntity",
    "WebhookEntity",
]
