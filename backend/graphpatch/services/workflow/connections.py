"""Typed connection map and edge rewriting.

The workflow store exchanges connections as loosely shaped nested JSON::

    {"Fetch": {"main": [[{"node": "Store", "type": "main", "index": 0}], []]}}

Inside the engine they are held as ``ConnectionMap``: source node name ->
connection type -> output buckets (indexed by source output slot) -> ``Edge``
records. Conversion happens only at the store boundary (``from_raw`` /
``to_raw``); every algorithm here works on the typed form.

Time Complexity:
- Bucket access / add / remove edge: O(k) in the bucket size
- Rename / removal propagation: O(E)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_CONNECTION_TYPE = "main"

_INTEGER = re.compile(r"-?[0-9]+")

RawConnections = dict[str, Any]


@dataclass(frozen=True, slots=True)
class Edge:
    """A link into input slot ``index`` of the node called ``node``."""

    node: str
    type: str = DEFAULT_CONNECTION_TYPE
    index: int = 0

    def matches(self, node: str, type_: str, index: int) -> bool:
        return self.node == node and self.type == type_ and self.index == index

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> Edge:
        index = raw.get("index")
        parsed = 0 if index is None else parse_index(index)
        return cls(
            node=str(raw.get("node") or "").strip(),
            type=str(raw.get("type") or DEFAULT_CONNECTION_TYPE).strip(),
            index=parsed if parsed is not None else -1,
        )

    def to_raw(self) -> dict[str, Any]:
        return {"node": self.node, "type": self.type, "index": self.index}


EdgeTransform = Callable[[str, Edge], Edge | None]


def parse_index(value: Any) -> int | None:
    """Integer value of an index, or None if ``value`` is not integral.

    Examples:
        >>> parse_index(2), parse_index(2.0), parse_index(" 2 ")
        (2, 2, 2)
        >>> parse_index(1.5) is None and parse_index(True) is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value.strip())
    return None


def as_bucket_list(value: Any) -> list[Any]:
    """Return the output buckets of one type entry as a list.

    A bucket's position is its source output slot. Object-shaped entries
    keyed by slot (``{"0": [...], "2": [...]}``) are placed at those slots,
    with empty buckets filling the gaps. Objects with other keys are read in
    value order; anything else that is not a list yields no buckets.
    """
    if isinstance(value, list):
        return value
    if not isinstance(value, dict):
        return []

    slots = [parse_index(key) for key in value]
    if not all(slot is not None and slot >= 0 for slot in slots):
        return list(value.values())
    buckets: list[Any] = [[] for _ in range(max(slots, default=-1) + 1)]
    for slot, bucket in zip(slots, value.values(), strict=True):
        buckets[slot] = bucket
    return buckets


class ConnectionMap:
    """Typed, mutable connection map owned by a single patch invocation.

    Example:
        >>> connections = ConnectionMap.from_raw({"A": {"main": [[{"node": "B"}]]}})
        >>> connections.add_edge("A", 0, "C")
        True
        >>> connections.rename_node("B", "B2")
        1
    """

    __slots__ = ("_sources",)

    def __init__(self, sources: dict[str, dict[str, list[list[Edge]]]] | None = None) -> None:
        self._sources: dict[str, dict[str, list[list[Edge]]]] = sources or {}

    # ------------------------------------------------------------------
    # Boundary conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_raw(cls, raw: Any) -> ConnectionMap:
        """Build the typed form from store JSON.

        Non-object source entries become empty type maps, non-list buckets
        become empty buckets and non-object edges are dropped. Run the
        structural validator on ``raw`` first if those shapes must be refused
        rather than normalized.
        """
        sources: dict[str, dict[str, list[list[Edge]]]] = {}
        if not isinstance(raw, dict):
            return cls(sources)

        for source, by_type in raw.items():
            typed: dict[str, list[list[Edge]]] = {}
            if isinstance(by_type, dict):
                for type_, buckets in by_type.items():
                    typed[str(type_)] = [
                        [Edge.from_raw(edge) for edge in bucket if isinstance(edge, dict)]
                        if isinstance(bucket, list)
                        else []
                        for bucket in as_bucket_list(buckets)
                    ]
            sources[str(source)] = typed
        return cls(sources)

    def to_raw(self) -> RawConnections:
        """Serialize back to the store's JSON shape."""
        return {
            source: {
                type_: [[edge.to_raw() for edge in bucket] for bucket in buckets]
                for type_, buckets in by_type.items()
            }
            for source, by_type in self._sources.items()
        }

    def copy(self) -> ConnectionMap:
        # Edges are frozen, so copying the containers is enough.
        return ConnectionMap(
            {
                source: {type_: [list(bucket) for bucket in buckets] for type_, buckets in by_type.items()}
                for source, by_type in self._sources.items()
            }
        )

    def canonical(self) -> dict[str, dict[str, list[list[Edge]]]]:
        """The map without trailing empty buckets or empty containers.

        Two maps with the same canonical form route every edge identically.
        """
        canonical: dict[str, dict[str, list[list[Edge]]]] = {}
        for source, by_type in self._sources.items():
            typed: dict[str, list[list[Edge]]] = {}
            for type_, buckets in by_type.items():
                trimmed = [list(bucket) for bucket in buckets]
                while trimmed and not trimmed[-1]:
                    trimmed.pop()
                if trimmed:
                    typed[type_] = trimmed
            if typed:
                canonical[source] = typed
        return canonical

    def equivalent(self, other: ConnectionMap) -> bool:
        return self.canonical() == other.canonical()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConnectionMap):
            return NotImplemented
        return self._sources == other._sources

    def __repr__(self) -> str:
        return f"ConnectionMap(sources={list(self._sources)})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    def iter_edges(self) -> Iterator[tuple[str, str, int, Edge]]:
        """Yield ``(source, type, output_index, edge)`` for every edge."""
        for source, by_type in self._sources.items():
            for type_, buckets in by_type.items():
                for output_index, bucket in enumerate(buckets):
                    for edge in bucket:
                        yield source, type_, output_index, edge

    def count_matching(
        self,
        source: str,
        source_index: int,
        target: str,
        *,
        source_type: str = DEFAULT_CONNECTION_TYPE,
        target_type: str = DEFAULT_CONNECTION_TYPE,
        target_index: int = 0,
    ) -> int:
        """Count edges in one output bucket matching ``(target, type, index)``."""
        buckets = self._sources.get(source, {}).get(source_type, [])
        if source_index >= len(buckets):
            return 0
        return sum(1 for edge in buckets[source_index] if edge.matches(target, target_type, target_index))

    def has_edge(self, source: str, source_index: int, target: str, **kwargs: Any) -> bool:
        return self.count_matching(source, source_index, target, **kwargs) > 0

    def count_node_connections(self, node_name: str) -> dict[str, int]:
        """Count edges touching ``node_name``.

        Returns:
            ``{"inbound": n, "outbound": m}``; a self-loop counts once in each.
        """
        inbound = 0
        outbound = 0
        for source, _type, _index, edge in self.iter_edges():
            if edge.node == node_name:
                inbound += 1
            if source == node_name:
                outbound += 1
        return {"inbound": inbound, "outbound": outbound}

    # ------------------------------------------------------------------
    # Edge operations
    # ------------------------------------------------------------------

    def output_bucket(
        self, source: str, source_index: int, source_type: str = DEFAULT_CONNECTION_TYPE
    ) -> list[Edge]:
        """Return the live bucket at ``source_index``, creating it if needed.

        Missing lower buckets are padded with empty lists so the bucket list
        stays dense.
        """
        buckets = self._sources.setdefault(source, {}).setdefault(source_type, [])
        while len(buckets) <= source_index:
            buckets.append([])
        return buckets[source_index]

    def add_edge(
        self,
        source: str,
        source_index: int,
        target: str,
        *,
        source_type: str = DEFAULT_CONNECTION_TYPE,
        target_type: str = DEFAULT_CONNECTION_TYPE,
        target_index: int = 0,
    ) -> bool:
        """Append an edge unless an identical one is already in the bucket.

        Returns:
            True if an edge was appended.
        """
        bucket = self.output_bucket(source, source_index, source_type)
        if any(edge.matches(target, target_type, target_index) for edge in bucket):
            return False
        bucket.append(Edge(node=target, type=target_type, index=target_index))
        return True

    def remove_edge(
        self,
        source: str,
        source_index: int,
        target: str,
        *,
        source_type: str = DEFAULT_CONNECTION_TYPE,
        target_type: str = DEFAULT_CONNECTION_TYPE,
        target_index: int = 0,
    ) -> int:
        """Drop every edge in the bucket matching ``(target, type, index)``.

        A missing bucket is left missing.

        Returns:
            Number of edges removed.
        """
        buckets = self._sources.get(source, {}).get(source_type, [])
        if source_index >= len(buckets):
            return 0
        bucket = buckets[source_index]
        kept = [edge for edge in bucket if not edge.matches(target, target_type, target_index)]
        removed = len(bucket) - len(kept)
        bucket[:] = kept
        return removed

    # ------------------------------------------------------------------
    # Whole-map propagation
    # ------------------------------------------------------------------

    def map_edges(self, transform: EdgeTransform) -> int:
        """Apply ``transform(source, edge)`` to every edge in place.

        The transform returns a replacement edge, the same edge, or ``None``
        to drop it.

        Returns:
            Number of edges replaced or dropped.
        """
        touched = 0
        for source, by_type in self._sources.items():
            for buckets in by_type.values():
                for position, bucket in enumerate(buckets):
                    rewritten: list[Edge] = []
                    for edge in bucket:
                        result = transform(source, edge)
                        if result is not edge:
                            touched += 1
                        if result is not None:
                            rewritten.append(result)
                    buckets[position] = rewritten
        return touched

    def rename_node(self, old_name: str, new_name: str) -> int:
        """Move ``old_name``'s outputs to ``new_name`` and retarget its inputs.

        Returns:
            Number of edges retargeted.
        """
        if old_name == new_name:
            return 0
        if old_name in self._sources:
            self._sources[new_name] = self._sources.pop(old_name)
        return self.map_edges(
            lambda _source, edge: replace(edge, node=new_name) if edge.node == old_name else edge
        )

    def remove_node(self, node_name: str) -> int:
        """Delete ``node_name``'s outputs and every edge pointing at it.

        Returns:
            Number of inbound edges dropped.
        """
        self._sources.pop(node_name, None)
        return self.map_edges(lambda _source, edge: None if edge.node == node_name else edge)


__all__ = [
    "DEFAULT_CONNECTION_TYPE",
    "ConnectionMap",
    "Edge",
    "EdgeTransform",
    "RawConnections",
    "as_bucket_list",
    "parse_index",
]
