"""Atomic patch engine for stored workflow graphs.

One invocation fetches a workflow, applies an ordered operation batch to an
isolated copy, and persists at most once:

    RESOLVED -> PREFLIGHT_CHECKED -> APPLYING -> POSTFLIGHT_CHECKED
    -> SKIPPED | PERSISTED -> VERIFIED

Any error aborts the whole batch. Errors raised before PERSISTED leave the
stored workflow untouched; a verification error after PERSISTED is raised
rather than reported as success.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

from graphpatch.core.config import Settings
from graphpatch.core.logging import LogContext, get_logger
from graphpatch.schemas.operations import (
    ConnectionAddOperation,
    ConnectionRemoveOperation,
    InsertMode,
    NodeAddOperation,
    NodeRemoveOperation,
    NodeUpdateOperation,
    PatchOperation,
)
from graphpatch.schemas.patch import (
    ConnectionCounts,
    ConnectionResult,
    NodeAddResult,
    NodeRemoveResult,
    NodeUpdateResult,
    OperationResult,
    PatchResponse,
    PatchState,
    SkipReason,
)
from graphpatch.services.store import WorkflowStore
from graphpatch.services.workflow.allocator import ensure_unique_id, ensure_unique_name
from graphpatch.services.workflow.exceptions import (
    ConnectionEndpointNotFoundError,
    EmptyWorkflowError,
    GraphPatchError,
    InvalidOperationError,
    PostflightValidationError,
    PreflightValidationError,
    TooManyOperationsError,
    WorkflowVersionConflictError,
)
from graphpatch.services.workflow.merge import merge_node
from graphpatch.services.workflow.snapshot import (
    WorkflowGraph,
    get_node_id,
    get_node_name,
    node_names,
    resolve_node_index,
)
from graphpatch.services.workflow.validator import collect_connection_issues
from graphpatch.services.workflow.verifier import verify_persisted

logger = get_logger(__name__)


class _BatchApplier:
    """Applies operations to one working graph, tracking live node names."""

    def __init__(self, graph: WorkflowGraph) -> None:
        self.graph = graph
        self.names: set[str] = set(graph.node_names)

    def apply(self, index: int, operation: PatchOperation) -> OperationResult:
        if isinstance(operation, NodeAddOperation):
            return self._add_node(index, operation)
        if isinstance(operation, NodeUpdateOperation):
            return self._update_node(index, operation)
        if isinstance(operation, NodeRemoveOperation):
            return self._remove_node(index, operation)
        if isinstance(operation, ConnectionAddOperation | ConnectionRemoveOperation):
            return self._edit_connection(index, operation)
        raise InvalidOperationError(index, f"unsupported operation type {type(operation).__name__}")

    def _add_node(self, index: int, operation: NodeAddOperation) -> NodeAddResult:
        nodes = self.graph.nodes
        raw = operation.node
        name = ensure_unique_name(str(raw.get("name") or ""), nodes)
        node_id = ensure_unique_id(str(raw.get("id") or ""), name, nodes)

        if operation.insert_mode == InsertMode.APPEND:
            position = len(nodes)
        else:
            anchor = resolve_node_index(nodes, operation.anchor_node_id, operation.anchor_node_name)
            position = anchor if operation.insert_mode == InsertMode.BEFORE else anchor + 1

        nodes.insert(position, {**copy.deepcopy(raw), "id": node_id, "name": name})
        self.names.add(name)
        return NodeAddResult(
            index=index,
            changed=True,
            inserted_node_id=node_id,
            inserted_node_name=name,
            insert_index=position,
        )

    def _update_node(self, index: int, operation: NodeUpdateOperation) -> NodeUpdateResult:
        nodes = self.graph.nodes
        position = resolve_node_index(nodes, operation.node_id, operation.node_name)
        existing = nodes[position]
        others = nodes[:position] + nodes[position + 1 :]
        old_name = get_node_name(existing)

        merged = existing
        for fragment in (operation.node, operation.patch):
            if fragment is not None:
                merged = merge_node(merged, fragment)

        requested = self._requested(operation, "name")
        if requested is not None:
            merged["name"] = ensure_unique_name(str(requested), others)
        requested_id = self._requested(operation, "id")
        if requested_id is not None and get_node_id(merged) != get_node_id(existing):
            merged["id"] = ensure_unique_id(str(requested_id), get_node_name(merged), others)

        changed = merged != existing
        nodes[position] = merged
        new_name = get_node_name(merged)
        if old_name and new_name and old_name != new_name:
            self.graph.connections.rename_node(old_name, new_name)
            self.names.discard(old_name)
            self.names.add(new_name)

        if operation.node is not None:
            applied = copy.deepcopy(merged)
        else:
            applied = copy.deepcopy(operation.patch or {})
            for key in ("name", "id"):
                if key in applied:
                    applied[key] = merged.get(key)

        return NodeUpdateResult(
            index=index,
            changed=changed,
            node_index=position,
            applied_patch=applied,
            previous_node_name=old_name,
            updated_node_name=new_name,
            updated_node_id=get_node_id(merged) or None,
        )

    @staticmethod
    def _requested(operation: NodeUpdateOperation, key: str) -> Any:
        # The partial patch is merged last, so it wins over the replacement node.
        for fragment in (operation.patch, operation.node):
            if fragment is not None and key in fragment:
                return fragment[key]
        return None

    def _remove_node(self, index: int, operation: NodeRemoveOperation) -> NodeRemoveResult:
        position = resolve_node_index(self.graph.nodes, operation.node_id, operation.node_name)
        removed = self.graph.nodes.pop(position)
        name = get_node_name(removed)
        counts = self.graph.connections.count_node_connections(name)
        self.graph.connections.remove_node(name)
        self.names.discard(name)
        return NodeRemoveResult(
            index=index,
            changed=True,
            removed_node_id=get_node_id(removed) or None,
            removed_node_name=name,
            removed_node_index=position,
            removed_connections=ConnectionCounts(**counts),
        )

    def _edit_connection(
        self, index: int, operation: ConnectionAddOperation | ConnectionRemoveOperation
    ) -> ConnectionResult:
        if operation.source not in self.names:
            raise ConnectionEndpointNotFoundError("source", operation.source)
        if operation.target_node not in self.names:
            raise ConnectionEndpointNotFoundError("target", operation.target_node)

        edge = {
            "source_type": operation.source_type,
            "target_type": operation.target_type,
            "target_index": operation.target_index,
        }
        connections = self.graph.connections
        before = connections.count_matching(operation.source, operation.source_index, operation.target_node, **edge)
        if isinstance(operation, ConnectionAddOperation):
            connections.add_edge(operation.source, operation.source_index, operation.target_node, **edge)
        else:
            connections.remove_edge(operation.source, operation.source_index, operation.target_node, **edge)
        after = connections.count_matching(operation.source, operation.source_index, operation.target_node, **edge)

        return ConnectionResult(
            index=index,
            kind=operation.kind,
            changed=before != after,
            source=operation.source,
            target_node=operation.target_node,
            source_index=operation.source_index,
            target_index=operation.target_index,
            source_type=operation.source_type,
            target_type=operation.target_type,
            matched_count_before=before,
            matched_count_after=after,
        )


class WorkflowPatcher:
    """Apply operation batches to workflows held by a ``WorkflowStore``.

    The patcher keeps no state between invocations; concurrent calls for
    different workflows share nothing but the store client.

    Example:
        >>> patcher = WorkflowPatcher(store)
        >>> response = await patcher.patch("wf-1", parse_operations(raw_operations))
        >>> response.skipped_update
        False
    """

    def __init__(
        self,
        store: WorkflowStore,
        *,
        max_operations: int = 250,
        version_check: bool = False,
    ) -> None:
        """Initialize the patcher.

        Args:
            store: Workflow store used for fetch, persist and re-read.
            max_operations: Largest accepted batch.
            version_check: Re-read before persisting and refuse to write if
                the stored ``versionId`` moved since the initial fetch.
        """
        self.store = store
        self.max_operations = max_operations
        self.version_check = version_check

    @classmethod
    def from_settings(cls, store: WorkflowStore, config: Settings) -> WorkflowPatcher:
        return cls(
            store,
            max_operations=config.PATCH_MAX_OPERATIONS,
            version_check=config.PATCH_VERSION_CHECK,
        )

    async def patch(self, workflow_id: str, operations: Sequence[PatchOperation]) -> PatchResponse:
        """Apply ``operations`` in order and persist the result once.

        Args:
            workflow_id: Workflow to patch.
            operations: Typed operations, usually from ``parse_operations``.

        Returns:
            PatchResponse in state ``skipped`` (nothing written) or
            ``verified`` (written and confirmed by re-reading).

        Raises:
            SelectorError: A node selector or connection endpoint did not
                resolve to exactly one node.
            StructuralValidationError: The graph was broken before the batch,
                or would be after it.
            PostSaveVerificationError: The store did not keep a claimed effect.
            WorkflowVersionConflictError: The workflow changed remotely
                (only with ``version_check``).
        """
        workflow_id = workflow_id.strip()
        if not workflow_id:
            raise InvalidOperationError(None, "workflowId is required")
        if not operations:
            raise InvalidOperationError(None, "operations is required and must be a non-empty array")
        if len(operations) > self.max_operations:
            raise TooManyOperationsError(len(operations), self.max_operations)

        with LogContext(workflow_id=workflow_id, operation_count=len(operations)):
            try:
                return await self._run(workflow_id, operations)
            except GraphPatchError as exc:
                logger.warning(
                    f"Patch aborted: {exc.message}",
                    extra={"context": {"error_code": exc.error_code, "details": exc.details}},
                )
                raise

    async def _run(self, workflow_id: str, operations: Sequence[PatchOperation]) -> PatchResponse:
        raw = await self.store.get_workflow(workflow_id, exclude_pinned_data=True)
        graph = WorkflowGraph.from_store(raw, workflow_id)
        self._transition(PatchState.RESOLVED, node_count=len(graph.nodes))

        names = node_names(graph.nodes)
        if not names:
            raise EmptyWorkflowError(workflow_id)
        issues = collect_connection_issues(raw.get("connections"), names)
        if issues:
            raise PreflightValidationError(issues)
        self._transition(PatchState.PREFLIGHT_CHECKED)

        original = graph.clone()
        applier = _BatchApplier(graph)
        self._transition(PatchState.APPLYING)
        results = [applier.apply(index, operation) for index, operation in enumerate(operations)]

        issues = collect_connection_issues(graph.connections.to_raw(), graph.node_names)
        if issues:
            raise PostflightValidationError(issues)
        self._transition(PatchState.POSTFLIGHT_CHECKED)

        changed_count = sum(1 for result in results if result.changed)
        reason: SkipReason | None = None
        if changed_count == 0:
            reason = SkipReason.NO_EFFECTIVE_OPERATIONS
        elif graph.same_content(original):
            reason = SkipReason.NET_NOOP
        if reason is not None:
            self._transition(PatchState.SKIPPED, reason=reason.value, changed_count=changed_count)
            return PatchResponse(
                workflow_id=graph.id,
                state=PatchState.SKIPPED,
                patched_count=0,
                skipped_update=True,
                skipped_update_reason=reason,
                operations=results,
            )

        if self.version_check:
            await self._ensure_unchanged(graph)

        updated = await self.store.update_workflow(graph.id, graph.to_update_payload())
        persisted_id = str(updated.get("id") or graph.id)
        self._transition(PatchState.PERSISTED, changed_count=changed_count)

        persisted = await self.store.get_workflow(persisted_id, exclude_pinned_data=True)
        verify_persisted(results, graph, persisted)
        self._transition(PatchState.VERIFIED)

        return PatchResponse(
            workflow_id=persisted_id,
            state=PatchState.VERIFIED,
            patched_count=changed_count,
            skipped_update=False,
            operations=results,
        )

    async def _ensure_unchanged(self, graph: WorkflowGraph) -> None:
        if graph.version_id is None:
            return
        current = await self.store.get_workflow(graph.id, exclude_pinned_data=True)
        current_version = current.get("versionId")
        if current_version is not None and str(current_version) != graph.version_id:
            raise WorkflowVersionConflictError(graph.id, graph.version_id, str(current_version))

    @staticmethod
    def _transition(state: PatchState, **context: Any) -> None:
        logger.info(f"Patch state: {state.value}", extra={"context": {"state": state.value, **context}})


__all__ = ["WorkflowPatcher"]
