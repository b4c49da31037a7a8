"""Structural validation of connection maps.

The same check runs before a patch batch (refuse to edit an already broken
graph) and after it (refuse to persist corruption the batch introduced).
It works on the raw store JSON so that malformed shapes the typed
``ConnectionMap`` would silently normalize are still reported.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from graphpatch.schemas.validation import ConnectionIssue, ConnectionIssueCode
from graphpatch.services.workflow.connections import as_bucket_list, parse_index


def is_valid_target_index(value: Any) -> bool:
    """Return True for non-negative integral values (``1.0`` and ``"1"`` count)."""
    index = parse_index(value)
    return index is not None and index >= 0


def collect_connection_issues(
    connections: Any,
    node_names: Iterable[str],
) -> list[ConnectionIssue]:
    """Walk the whole connection map and report every structural problem.

    Checks are exhaustive, not short-circuiting:

    - every source key names a known node (``source_node_missing``)
    - every source entry is an object of connection types and every output
      bucket is a list (``malformed_output_bucket``)
    - every edge is an object with a non-empty target (``missing_target_node``)
      that names a known node (``target_node_missing``)
    - every edge index is a non-negative integer (``invalid_target_index``);
      a missing or null index means 0 and integral strings such as ``"1"``
      are accepted

    Args:
        connections: Raw connection map as stored. Non-object input is
            treated as an empty map.
        node_names: Names of the nodes currently in the graph.

    Returns:
        Issues in map traversal order. Empty when the map is sound.
    """
    known = set(node_names)
    issues: list[ConnectionIssue] = []
    if not isinstance(connections, dict):
        return issues

    for source, by_type in connections.items():
        if source not in known:
            issues.append(
                ConnectionIssue(
                    issue=ConnectionIssueCode.SOURCE_NODE_MISSING,
                    detail=f"Connection source node missing: {source}",
                )
            )
        if not isinstance(by_type, dict):
            issues.append(
                ConnectionIssue(
                    issue=ConnectionIssueCode.MALFORMED_OUTPUT_BUCKET,
                    detail=f"{source} is not an object of connection types",
                )
            )
            continue

        for type_, buckets in by_type.items():
            if not isinstance(buckets, list | dict):
                issues.append(
                    ConnectionIssue(
                        issue=ConnectionIssueCode.MALFORMED_OUTPUT_BUCKET,
                        detail=f"{source}.{type_} is not an array of output buckets",
                    )
                )
                continue
            for output_index, bucket in enumerate(as_bucket_list(buckets)):
                location = f"{source}.{type_}[{output_index}]"
                if not isinstance(bucket, list):
                    issues.append(
                        ConnectionIssue(
                            issue=ConnectionIssueCode.MALFORMED_OUTPUT_BUCKET,
                            detail=f"{location} is not an array",
                        )
                    )
                    continue

                for edge in bucket:
                    if not isinstance(edge, dict):
                        issues.append(
                            ConnectionIssue(
                                issue=ConnectionIssueCode.MISSING_TARGET_NODE,
                                detail=f"{location} edge is not an object",
                            )
                        )
                        continue
                    target = str(edge.get("node") or "").strip()
                    if not target:
                        issues.append(
                            ConnectionIssue(
                                issue=ConnectionIssueCode.MISSING_TARGET_NODE,
                                detail=f"{location} edge has empty target node",
                            )
                        )
                        continue
                    if target not in known:
                        issues.append(
                            ConnectionIssue(
                                issue=ConnectionIssueCode.TARGET_NODE_MISSING,
                                detail=f"{location} references missing target node: {target}",
                            )
                        )
                    index = edge.get("index")
                    if not is_valid_target_index(0 if index is None else index):
                        issues.append(
                            ConnectionIssue(
                                issue=ConnectionIssueCode.INVALID_TARGET_INDEX,
                                detail=f"{location} -> {target} has invalid target index",
                            )
                        )

    return issues


__all__ = ["collect_connection_issues", "is_valid_target_index"]
