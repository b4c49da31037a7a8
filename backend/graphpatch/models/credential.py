"""Credential record model.

Only the identifying columns of ``credentials_entity`` are mapped; the
encrypted ``data`` column is never read by this service.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from graphpatch.models.base import Base


class CredentialEntity(Base):
    """A stored credential referenced by workflow nodes."""

    __tablename__ = "credentials_entity"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(128), nullable=False)

    def __repr__(self) -> str:
        return f"<CredentialEntity(id={self.id}, type={self.type})>"


__all__ = ["CredentialEntity"]
