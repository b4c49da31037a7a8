"""Read-after-write verification of persisted patches.

The store has been seen to acknowledge writes it silently dropped. After
persisting, the engine re-reads the workflow and checks, for every operation
that claimed an effect, that the effect is observable.

Expectations come from the final in-memory graph rather than from each
operation alone, so a later operation in the same batch that undoes an
earlier one (add then remove an edge, remove then re-add a node) does not
produce a false failure.
"""

from __future__ import annotations

from typing import Any

from graphpatch.schemas.patch import (
    ConnectionResult,
    NodeAddResult,
    NodeRemoveResult,
    NodeUpdateResult,
    OperationResult,
)
from graphpatch.services.workflow.connections import ConnectionMap
from graphpatch.services.workflow.exceptions import PostSaveVerificationError
from graphpatch.services.workflow.merge import is_subset_match
from graphpatch.services.workflow.snapshot import Node, WorkflowGraph, get_node_id, get_node_name


def _find_node(nodes: list[Node], node_id: str | None, name: str | None) -> Node | None:
    if node_id:
        for node in nodes:
            if get_node_id(node) == node_id:
                return node
    if name:
        for node in nodes:
            if get_node_name(node) == name:
                return node
    return None


class PersistedGraphVerifier:
    """Compare claimed effects with a freshly fetched workflow document.

    Example:
        >>> verifier = PersistedGraphVerifier(expected_graph, persisted_raw)
        >>> verifier.verify(results)  # raises PostSaveVerificationError
    """

    def __init__(self, expected: WorkflowGraph, persisted: dict[str, Any]) -> None:
        self.expected = expected
        nodes = persisted.get("nodes")
        self.nodes: list[Node] = [node for node in nodes if isinstance(node, dict)] if isinstance(nodes, list) else []
        self.connections = ConnectionMap.from_raw(persisted.get("connections"))
        self.ids = {get_node_id(node) for node in self.nodes} - {""}
        self.names = {get_node_name(node) for node in self.nodes} - {""}

    def verify(self, results: list[OperationResult]) -> None:
        for result in results:
            if not result.changed:
                continue
            if isinstance(result, ConnectionResult):
                self._verify_connection(result)
            elif isinstance(result, NodeAddResult):
                self._verify_node_presence(
                    result.index, result.kind, result.inserted_node_id, result.inserted_node_name
                )
            elif isinstance(result, NodeUpdateResult):
                self._verify_update(result)
            elif isinstance(result, NodeRemoveResult):
                self._verify_node_presence(
                    result.index, result.kind, result.removed_node_id, result.removed_node_name
                )

    def _fail(self, index: int, kind: str, subject: str, reason: str) -> None:
        raise PostSaveVerificationError(index, kind, subject, reason)

    def _verify_connection(self, result: ConnectionResult) -> None:
        edge = {
            "source_type": result.source_type,
            "target_type": result.target_type,
            "target_index": result.target_index,
        }
        expected = self.expected.connections.has_edge(result.source, result.source_index, result.target_node, **edge)
        actual = self.connections.has_edge(result.source, result.source_index, result.target_node, **edge)
        if expected and not actual:
            self._fail(result.index, result.kind, result.label, "connection is missing from the persisted graph")
        if actual and not expected:
            self._fail(result.index, result.kind, result.label, "connection is still present in the persisted graph")

    def _verify_node_presence(self, index: int, kind: str, node_id: str | None, name: str) -> None:
        subject = name or node_id or "?"
        final = _find_node(self.expected.nodes, node_id, name)
        if final is not None:
            # Later operations may have renamed it; check what should be stored now.
            final_id = get_node_id(final)
            final_name = get_node_name(final)
            if (final_id and final_id not in self.ids) or (final_name and final_name not in self.names):
                self._fail(index, kind, subject, "node is missing from the persisted graph")
        elif (node_id and node_id in self.ids) or (name and name in self.names):
            self._fail(index, kind, subject, "node is still present in the persisted graph")

    def _verify_update(self, result: NodeUpdateResult) -> None:
        node_id = result.updated_node_id
        name = result.updated_node_name
        final = _find_node(self.expected.nodes, node_id, name)
        if final is None:
            # Removed later in the batch; that removal is verified on its own.
            return
        self._verify_node_presence(result.index, result.kind, node_id, name)

        persisted = _find_node(self.nodes, get_node_id(final), get_node_name(final))
        if persisted is None:
            self._fail(result.index, result.kind, name or node_id or "?", "updated node could not be located")
            return

        expected_fields = result.applied_patch if is_subset_match(result.applied_patch, final) else final
        if not is_subset_match(expected_fields, persisted):
            self._fail(result.index, result.kind, name or node_id or "?", "node patch fields were not persisted")


def verify_persisted(results: list[OperationResult], expected: WorkflowGraph, persisted: dict[str, Any]) -> None:
    """Raise ``PostSaveVerificationError`` on the first unobservable effect."""
    PersistedGraphVerifier(expected, persisted).verify(results)


__all__ = ["PersistedGraphVerifier", "verify_persisted"]
