"""Patch request/response schemas."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import Field

from graphpatch.schemas.base import BaseSchema


class PatchState(str, Enum):
    """Lifecycle of one patch invocation.

    RESOLVED -> PREFLIGHT_CHECKED -> APPLYING -> POSTFLIGHT_CHECKED
    -> SKIPPED | PERSISTED -> VERIFIED
    """

    RESOLVED = "resolved"
    PREFLIGHT_CHECKED = "preflight_checked"
    APPLYING = "applying"
    POSTFLIGHT_CHECKED = "postflight_checked"
    SKIPPED = "skipped"
    PERSISTED = "persisted"
    VERIFIED = "verified"


class SkipReason(str, Enum):
    """Why a batch was not persisted."""

    NO_EFFECTIVE_OPERATIONS = "no_effective_operations"
    NET_NOOP = "net_noop_after_patch_sequence"


class PatchRequest(BaseSchema):
    """Body of the patch endpoint.

    Operations are kept loose here and normalized by ``parse_operations`` so
    that alias errors are reported per ``operations[i]``.
    """

    operations: list[Any] | str = Field(..., description="Ordered patch operations, or a JSON string of them")


# =============================================================================
# Per-operation results
# =============================================================================


class _OperationResult(BaseSchema):
    index: int = Field(..., description="Position in the submitted batch")
    changed: bool = Field(..., description="Whether the operation had an effect")


class NodeAddResult(_OperationResult):
    kind: Literal["node_add"] = "node_add"
    inserted_node_id: str
    inserted_node_name: str
    insert_index: int


class NodeUpdateResult(_OperationResult):
    kind: Literal["node_update"] = "node_update"
    node_index: int
    applied_patch: dict[str, Any]
    previous_node_name: str
    updated_node_name: str
    updated_node_id: str | None = None


class ConnectionCounts(BaseSchema):
    inbound: int = 0
    outbound: int = 0


class NodeRemoveResult(_OperationResult):
    kind: Literal["node_remove"] = "node_remove"
    removed_node_id: str | None = None
    removed_node_name: str
    removed_node_index: int
    removed_connections: ConnectionCounts


class ConnectionResult(_OperationResult):
    """Outcome of a connection add or remove."""

    kind: Literal["connection_add", "connection_remove"]
    source: str
    target_node: str
    source_index: int
    target_index: int
    source_type: str
    target_type: str
    matched_count_before: int
    matched_count_after: int

    @property
    def label(self) -> str:
        return f"{self.source}[{self.source_index}] -> {self.target_node}[{self.target_index}]"


OperationResult = NodeAddResult | NodeUpdateResult | NodeRemoveResult | ConnectionResult


class PatchResponse(BaseSchema):
    """Structured outcome of one patch invocation."""

    workflow_id: str
    state: PatchState = Field(..., description="Terminal state: skipped or verified")
    patched_count: int = Field(..., description="Operations with an observed effect")
    skipped_update: bool
    skipped_update_reason: SkipReason | None = None
    operations: list[Annotated[OperationResult, Field(discriminator="kind")]] = Field(default_factory=list)


__all__ = [
    "ConnectionCounts",
    "ConnectionResult",
    "NodeAddResult",
    "NodeRemoveResult",
    "NodeUpdateResult",
    "OperationResult",
    "PatchRequest",
    "PatchResponse",
    "PatchState",
    "SkipReason",
]
