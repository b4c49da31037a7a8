"""Collision-free node names and identifiers.

Both allocators are pure functions of the current node sequence; there are
no counters kept between calls.
"""

from __future__ import annotations

import re

from graphpatch.services.workflow.snapshot import Node, get_node_id, get_node_name

DEFAULT_NODE_NAME = "New Node"
DEFAULT_ID_TOKEN = "node"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def slugify_node_token(value: str) -> str:
    """Lowercase ``value`` and collapse non-alphanumeric runs to hyphens.

    Examples:
        >>> slugify_node_token("  Fetch Orders (v2) ")
        'fetch-orders-v2'
        >>> slugify_node_token("!!!")
        'node'
    """
    token = _NON_ALNUM_RUN.sub("-", value.strip().lower()).strip("-")
    return token or DEFAULT_ID_TOKEN


def ensure_unique_name(desired: str | None, nodes: list[Node], exclude_id: str | None = None) -> str:
    """Return ``desired`` or the first free ``"desired (n)"`` for n >= 2.

    Args:
        desired: Requested name; blank means ``"New Node"``.
        nodes: Current node sequence.
        exclude_id: Identifier of a node whose own name does not count as
            taken (the node being renamed).
    """
    base = (desired or "").strip() or DEFAULT_NODE_NAME
    used = {
        get_node_name(node)
        for node in nodes
        if not exclude_id or get_node_id(node) != exclude_id
    }
    used.discard("")

    if base not in used:
        return base
    suffix = 2
    while f"{base} ({suffix})" in used:
        suffix += 1
    return f"{base} ({suffix})"


def ensure_unique_id(
    desired: str | None,
    fallback_name: str,
    nodes: list[Node],
    exclude_id: str | None = None,
) -> str:
    """Return ``desired`` if free, else the first free ``{slug}-{n}`` for n >= 1.

    Args:
        desired: Requested identifier; may be blank.
        fallback_name: Name the slug is derived from.
        nodes: Current node sequence.
        exclude_id: Identifier that does not count as taken.
    """
    candidate = (desired or "").strip()
    used = {get_node_id(node) for node in nodes}
    used.discard("")
    if exclude_id:
        used.discard(exclude_id)

    if candidate and candidate not in used:
        return candidate
    token = slugify_node_token(fallback_name)
    sequence = 1
    while f"{token}-{sequence}" in used:
        sequence += 1
    return f"{token}-{sequence}"


__all__ = [
    "DEFAULT_NODE_NAME",
    "ensure_unique_id",
    "ensure_unique_name",
    "slugify_node_token",
]
