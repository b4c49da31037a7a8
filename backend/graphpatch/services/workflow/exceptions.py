"""Graph patch engine exceptions.

This module defines the failure taxonomy of the patch engine. Every error
aborts the whole operation batch:

- Selector errors: a node selector is missing, unknown, ambiguous or
  self-contradictory.
- Structural errors: the connection map is broken before (preflight) or
  after (postflight) the batch was applied in memory.
- Verification errors: the persisted graph does not show a claimed effect.
- Input errors: the raw operation batch or workflow payload is malformed.

Collaborator errors (HTTP, database) are never wrapped; they propagate
unchanged from the store and registry clients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from graphpatch.core.exceptions import AppError

if TYPE_CHECKING:
    from graphpatch.schemas.validation import ConnectionIssue

MAX_AVAILABLE_NAMES = 12
MAX_AMBIGUOUS_CANDIDATES = 8
MAX_REPORTED_ISSUES = 8


class GraphPatchError(AppError):
    """Base exception for all patch engine failures."""

    error_code = "GRAPH_PATCH_ERROR"


# ============================================================================
# Selector errors
# ============================================================================


class SelectorError(GraphPatchError):
    """Base exception for node selector resolution failures."""

    error_code = "SELECTOR_ERROR"


class SelectorRequiredError(SelectorError):
    """Raised when neither nodeId nor nodeName was supplied."""

    error_code = "SELECTOR_REQUIRED"

    def __init__(self) -> None:
        super().__init__("Node selector is required: provide nodeId or nodeName.")


class NodeNotFoundError(SelectorError):
    """Raised when a selector matches no node.

    Attributes:
        node_id: Identifier that was searched for, if any.
        node_name: Name that was searched for, if any.
        available_names: Up to 12 node names present in the graph.
    """

    error_code = "NODE_NOT_FOUND"

    def __init__(
        self,
        node_id: str | None = None,
        node_name: str | None = None,
        available_names: list[str] | None = None,
    ) -> None:
        available = (available_names or [])[:MAX_AVAILABLE_NAMES]
        if node_id:
            message = f"Node not found by nodeId: {node_id}"
        else:
            message = f"Node not found by nodeName: {node_name}"
            if available:
                message += f". Available nodes: {', '.join(available)}"
        super().__init__(
            message,
            details={
                "node_id": node_id,
                "node_name": node_name,
                "available_names": available,
            },
        )
        self.node_id = node_id
        self.node_name = node_name
        self.available_names = available


class AmbiguousNodeSelectorError(SelectorError):
    """Raised when a name selector matches more than one node.

    Attributes:
        node_name: The ambiguous name.
        candidates: Up to 8 matching node names.
    """

    error_code = "AMBIGUOUS_SELECTOR"

    def __init__(self, node_name: str, candidates: list[str]) -> None:
        listed = candidates[:MAX_AMBIGUOUS_CANDIDATES]
        super().__init__(
            f"Node name is ambiguous: {node_name}. Provide nodeId instead. "
            f"Candidates: {', '.join(listed)}",
            details={"node_name": node_name, "candidates": listed},
        )
        self.node_name = node_name
        self.candidates = listed


class NodeSelectorMismatchError(SelectorError):
    """Raised when nodeId and nodeName point at different nodes."""

    error_code = "SELECTOR_MISMATCH"

    def __init__(self, node_id: str, node_name: str, actual_name: str) -> None:
        super().__init__(
            f"Node selector mismatch: nodeId {node_id} does not match nodeName {node_name}.",
            details={
                "node_id": node_id,
                "node_name": node_name,
                "actual_name": actual_name,
            },
        )
        self.node_id = node_id
        self.node_name = node_name
        self.actual_name = actual_name


class ConnectionEndpointNotFoundError(SelectorError):
    """Raised when a connection operation names a node that does not exist.

    Attributes:
        role: Either "source" or "target".
        node_name: The missing endpoint name.
    """

    error_code = "CONNECTION_ENDPOINT_NOT_FOUND"

    def __init__(self, role: str, node_name: str) -> None:
        super().__init__(
            f"{role.capitalize()} node not found: {node_name}",
            details={"role": role, "node_name": node_name},
        )
        self.role = role
        self.node_name = node_name


# ============================================================================
# Structural errors
# ============================================================================


class StructuralValidationError(GraphPatchError):
    """Raised when the connection map fails structural validation.

    Attributes:
        stage: "preflight" or "postflight".
        issues: Every issue found (only the first 8 are reported).
    """

    error_code = "STRUCTURAL_VALIDATION_FAILED"
    prefix = "Workflow connections failed validation."

    def __init__(self, issues: list[ConnectionIssue], stage: str) -> None:
        reported = issues[:MAX_REPORTED_ISSUES]
        summary = "; ".join(f"{issue.issue}: {issue.detail}" for issue in reported)
        super().__init__(
            f"{self.prefix} {summary}",
            details={
                "stage": stage,
                "issue_count": len(issues),
                "issues": [issue.model_dump() for issue in reported],
            },
        )
        self.stage = stage
        self.issues = issues


class PreflightValidationError(StructuralValidationError):
    """Raised when the fetched graph is already structurally broken."""

    prefix = "Workflow connections preflight failed; refusing patch."

    def __init__(self, issues: list[ConnectionIssue]) -> None:
        super().__init__(issues, stage="preflight")


class PostflightValidationError(StructuralValidationError):
    """Raised when the patched in-memory graph would introduce corruption."""

    prefix = "Workflow connections failed post-patch validation."

    def __init__(self, issues: list[ConnectionIssue]) -> None:
        super().__init__(issues, stage="postflight")


class EmptyWorkflowError(GraphPatchError):
    """Raised when the fetched workflow has no nodes at all."""

    error_code = "EMPTY_WORKFLOW"

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            f"Workflow {workflow_id} has no nodes; cannot patch safely.",
            details={"workflow_id": workflow_id},
        )
        self.workflow_id = workflow_id


# ============================================================================
# Verification errors
# ============================================================================


class PostSaveVerificationError(GraphPatchError):
    """Raised when a persisted graph does not show a claimed effect.

    Attributes:
        operation_index: Position of the operation in the submitted batch.
        kind: Operation kind, e.g. "connection_add".
        subject: Node name/id or "source -> target" edge label.
    """

    error_code = "POST_SAVE_VERIFICATION_FAILED"

    def __init__(self, operation_index: int, kind: str, subject: str, reason: str) -> None:
        super().__init__(
            f"Post-save verification failed: {reason} "
            f"(operations[{operation_index}] {kind}: {subject}).",
            details={
                "operation_index": operation_index,
                "kind": kind,
                "subject": subject,
                "reason": reason,
            },
        )
        self.operation_index = operation_index
        self.kind = kind
        self.subject = subject
        self.reason = reason


class WorkflowVersionConflictError(GraphPatchError):
    """Raised when the workflow changed remotely between fetch and persist."""

    error_code = "VERSION_CONFLICT"

    def __init__(self, workflow_id: str, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"Workflow {workflow_id} was modified concurrently "
            f"(expected version {expected}, found {actual}); nothing was written.",
            details={"workflow_id": workflow_id, "expected": expected, "actual": actual},
        )
        self.workflow_id = workflow_id
        self.expected = expected
        self.actual = actual


# ============================================================================
# Input errors
# ============================================================================


class InvalidOperationError(GraphPatchError):
    """Raised when one raw operation cannot be normalized."""

    error_code = "INVALID_OPERATION"

    def __init__(self, index: int | None, reason: str) -> None:
        location = f"operations[{index}]" if index is not None else "operations"
        super().__init__(
            f"{location}: {reason}",
            details={"index": index, "reason": reason},
        )
        self.index = index
        self.reason = reason


class TooManyOperationsError(InvalidOperationError):
    """Raised when a batch exceeds the configured operation limit."""

    error_code = "TOO_MANY_OPERATIONS"

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            None,
            f"batch is too large ({count}); maximum allowed operations per call is {limit}.",
        )
        self.details.update({"count": count, "limit": limit})
        self.count = count
        self.limit = limit


class InvalidWorkflowPayloadError(GraphPatchError):
    """Raised when a create/update workflow payload has the wrong shape."""

    error_code = "INVALID_WORKFLOW_PAYLOAD"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid workflow payload: {reason}", details={"reason": reason})
        self.reason = reason


__all__ = [
    "AmbiguousNodeSelectorError",
    "ConnectionEndpointNotFoundError",
    "EmptyWorkflowError",
    "GraphPatchError",
    "InvalidOperationError",
    "InvalidWorkflowPayloadError",
    "NodeNotFoundError",
    "NodeSelectorMismatchError",
    "PostSaveVerificationError",
    "PostflightValidationError",
    "PreflightValidationError",
    "SelectorError",
    "SelectorRequiredError",
    "StructuralValidationError",
    "TooManyOperationsError",
    "WorkflowVersionConflictError",
]
