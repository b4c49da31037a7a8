"""Isolated workflow graph snapshots and node selector resolution."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any

from graphpatch.services.workflow.connections import ConnectionMap
from graphpatch.services.workflow.exceptions import (
    AmbiguousNodeSelectorError,
    NodeNotFoundError,
    NodeSelectorMismatchError,
    SelectorRequiredError,
)

Node = dict[str, Any]

SUBSTRING_MATCH_MIN_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def get_node_name(node: Any) -> str:
    return str(node.get("name") or "").strip() if isinstance(node, dict) else ""


def get_node_id(node: Any) -> str:
    return str(node.get("id") or "").strip() if isinstance(node, dict) else ""


def node_names(nodes: list[Node]) -> list[str]:
    """Names of all named nodes, in node order."""
    return [name for name in (get_node_name(node) for node in nodes) if name]


@dataclass
class WorkflowGraph:
    """A deep, independent working copy of a stored workflow.

    Nothing in a snapshot aliases the dictionary it was built from, so the
    engine can mutate nodes and connections freely and compare against the
    untouched original afterwards.

    Attributes:
        id: Workflow identifier.
        name: Workflow display name.
        active: Whether the workflow is activated in the automation engine.
        nodes: Node dictionaries in stored order.
        connections: Typed connection map.
        settings: Workflow settings object.
        static_data: Workflow static data object.
        version_id: Store-assigned version token, when supplied.
    """

    id: str
    name: str = ""
    active: bool = False
    nodes: list[Node] = field(default_factory=list)
    connections: ConnectionMap = field(default_factory=ConnectionMap)
    settings: dict[str, Any] = field(default_factory=dict)
    static_data: dict[str, Any] = field(default_factory=dict)
    version_id: str | None = None

    @classmethod
    def from_store(cls, raw: dict[str, Any], workflow_id: str | None = None) -> WorkflowGraph:
        """Clone a raw store document, defaulting missing containers."""
        nodes = raw.get("nodes")
        settings = raw.get("settings")
        static_data = raw.get("staticData")
        version_id = raw.get("versionId")
        return cls(
            id=str(raw.get("id") or workflow_id or ""),
            name=str(raw.get("name") or ""),
            active=bool(raw.get("active")),
            nodes=copy.deepcopy([node for node in nodes if isinstance(node, dict)])
            if isinstance(nodes, list)
            else [],
            connections=ConnectionMap.from_raw(raw.get("connections")),
            settings=copy.deepcopy(settings) if isinstance(settings, dict) else {},
            static_data=copy.deepcopy(static_data) if isinstance(static_data, dict) else {},
            version_id=str(version_id) if version_id is not None else None,
        )

    def clone(self) -> WorkflowGraph:
        return WorkflowGraph(
            id=self.id,
            name=self.name,
            active=self.active,
            nodes=copy.deepcopy(self.nodes),
            connections=self.connections.copy(),
            settings=copy.deepcopy(self.settings),
            static_data=copy.deepcopy(self.static_data),
            version_id=self.version_id,
        )

    @property
    def node_names(self) -> list[str]:
        return node_names(self.nodes)

    def to_update_payload(self) -> dict[str, Any]:
        """Body for the store's update call."""
        return {
            "name": self.name,
            "nodes": self.nodes,
            "connections": self.connections.to_raw(),
            "settings": self.settings,
            "staticData": self.static_data,
        }

    def same_content(self, other: WorkflowGraph) -> bool:
        """True when nothing that would be persisted differs.

        Empty output buckets left behind by edits that cancel out do not
        count as a difference.
        """
        return (
            self.name == other.name
            and self.nodes == other.nodes
            and self.connections.equivalent(other.connections)
            and self.settings == other.settings
            and self.static_data == other.static_data
        )


def normalize_node_token(value: str) -> str:
    """Normalize a node name for cosmetic-insensitive comparison.

    - Lowercase
    - Drop every character outside ``[a-z0-9]``
    """
    return _NON_ALNUM.sub("", value.lower())


def _candidates_by_name(nodes: list[Node], name: str) -> list[int]:
    """Indices of nodes matching ``name``, narrowing from strict to loose.

    The first tier that matches anything wins:

    1. exact, case-sensitive
    2. case-insensitive, widened to normalized-token matches when those find
       more nodes (so "Fetch Data" and "fetch-data" both match "fetch data")
    3. normalized substring containment, only for queries of 3+ characters
    """
    indexed = [(index, get_node_name(node)) for index, node in enumerate(nodes)]

    exact = [index for index, candidate in indexed if candidate == name]
    if exact:
        return exact

    folded = name.casefold()
    insensitive = [index for index, candidate in indexed if candidate.casefold() == folded]
    token = normalize_node_token(name)
    normalized = (
        [index for index, candidate in indexed if candidate and normalize_node_token(candidate) == token]
        if token
        else []
    )
    loose = normalized if len(normalized) > len(insensitive) else insensitive
    if loose:
        return loose

    if len(token) >= SUBSTRING_MATCH_MIN_LENGTH:
        return [index for index, candidate in indexed if candidate and token in normalize_node_token(candidate)]
    return []


def resolve_node_index(
    nodes: list[Node],
    node_id: str | None = None,
    node_name: str | None = None,
) -> int:
    """Resolve a ``{nodeId, nodeName}`` selector to a position in ``nodes``.

    Args:
        nodes: Current node sequence.
        node_id: Exact identifier to look up.
        node_name: Name to look up, with case, punctuation and substring
            fallbacks.

    Returns:
        Index of the single matching node.

    Raises:
        SelectorRequiredError: Neither field was supplied.
        NodeNotFoundError: Nothing matched.
        AmbiguousNodeSelectorError: A name matched more than one node and no
            identifier was supplied to disambiguate.
        NodeSelectorMismatchError: Identifier and name point at different
            nodes.
    """
    wanted_id = (node_id or "").strip()
    wanted_name = (node_name or "").strip()
    if not wanted_id and not wanted_name:
        raise SelectorRequiredError()

    if wanted_id:
        id_matches = [index for index, node in enumerate(nodes) if get_node_id(node) == wanted_id]
        if not id_matches:
            raise NodeNotFoundError(node_id=wanted_id, available_names=node_names(nodes))
        resolved = id_matches[0]
        if wanted_name and resolved not in _candidates_by_name(nodes, wanted_name):
            raise NodeSelectorMismatchError(
                node_id=wanted_id,
                node_name=wanted_name,
                actual_name=get_node_name(nodes[resolved]),
            )
        return resolved

    matches = _candidates_by_name(nodes, wanted_name)
    if not matches:
        raise NodeNotFoundError(node_name=wanted_name, available_names=node_names(nodes))
    if len(matches) > 1:
        raise AmbiguousNodeSelectorError(
            wanted_name, [get_node_name(nodes[index]) for index in matches]
        )
    return matches[0]


__all__ = [
    "Node",
    "WorkflowGraph",
    "get_node_id",
    "get_node_name",
    "node_names",
    "normalize_node_token",
    "resolve_node_index",
]
