"""Schemas for structural validation and workflow inspection reports."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from graphpatch.schemas.base import BaseSchema


class ConnectionIssueCode(str, Enum):
    """Structural problems the connection validator can report."""

    SOURCE_NODE_MISSING = "source_node_missing"
    MALFORMED_OUTPUT_BUCKET = "malformed_output_bucket"
    MISSING_TARGET_NODE = "missing_target_node"
    TARGET_NODE_MISSING = "target_node_missing"
    INVALID_TARGET_INDEX = "invalid_target_index"


class ConnectionIssue(BaseSchema):
    """One structural problem found in a connection map."""

    issue: ConnectionIssueCode = Field(..., description="Issue code")
    detail: str = Field(..., description="Human-readable location and cause")


class FlatEdge(BaseSchema):
    """An edge flattened out of the nested connection map."""

    source_node: str
    source_type: str
    source_index: int
    target_node: str
    target_type: str
    target_index: int


class FloatingNode(BaseSchema):
    """A named node with no inbound and no outbound edges."""

    id: str | None = None
    name: str
    type: str | None = None


class MissingCredential(BaseSchema):
    """Credential references on one node that cannot be resolved."""

    node_id: str | None = None
    node_name: str
    node_type: str | None = None
    missing: list[str] = Field(
        default_factory=list,
        description="Entries like 'slackApi:missing_reference' or 'slackApi:<id|name>'",
    )


class UntypedNode(BaseSchema):
    """A node whose ``type`` is empty."""

    id: str | None = None
    name: str
    index: int


class ReportSummary(BaseSchema):
    """Counts shown at the top of a workflow report."""

    node_count: int = 0
    edge_count: int = 0
    floating_node_count: int = 0
    missing_credential_node_count: int = 0
    broken_connection_count: int = 0
    nodes_without_type_count: int = 0


class WorkflowReport(BaseSchema):
    """Result of inspecting a stored workflow graph."""

    workflow_id: str
    workflow_name: str
    summary: ReportSummary
    floating_nodes: list[FloatingNode] = Field(default_factory=list)
    missing_credentials: list[MissingCredential] = Field(default_factory=list)
    broken_connections: list[ConnectionIssue] = Field(default_factory=list)
    nodes_without_type: list[UntypedNode] = Field(default_factory=list)
    edges: list[FlatEdge] = Field(default_factory=list)
    valid: bool


class PayloadValidationResult(BaseSchema):
    """Result of checking a create/update workflow payload."""

    valid: bool
    name: str
    node_count: int
    connection_keys: list[str] = Field(default_factory=list)
    has_settings: bool = False
    has_shared: bool = False
    has_static_data: bool = False
    issues: list[ConnectionIssue] = Field(default_factory=list)


__all__ = [
    "ConnectionIssue",
    "ConnectionIssueCode",
    "FlatEdge",
    "FloatingNode",
    "MissingCredential",
    "PayloadValidationResult",
    "ReportSummary",
    "UntypedNode",
    "WorkflowReport",
]
