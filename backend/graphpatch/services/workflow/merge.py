"""Nested-object helpers for node updates and read-after-write checks."""

from __future__ import annotations

import copy
from typing import Any


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` over a copy of ``base``.

    Nested objects are merged key by key; lists and scalars in ``patch``
    replace the base value outright.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}, "l": [1, 2]}, {"a": {"y": 3}, "l": [9]})
        {'a': {'x': 1, 'y': 3}, 'l': [9]}
    """
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_node(existing: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge a node patch, replacing ``parameters`` wholesale.

    Parameter schemas of complex nodes change shape between versions;
    merging them partially leaves stale fragments behind.
    """
    merged = deep_merge(existing, patch)
    if "parameters" in patch:
        merged["parameters"] = copy.deepcopy(patch["parameters"])
    return merged


def is_subset_match(expected: Any, actual: Any) -> bool:
    """True when every field of ``expected`` is present and equal in ``actual``.

    Objects may carry extra keys. Lists must match element-wise on the
    expected prefix (``actual`` may be longer). Scalars compare with ``==``.
    """
    if isinstance(expected, list):
        if not isinstance(actual, list) or len(actual) < len(expected):
            return False
        return all(is_subset_match(item, actual[i]) for i, item in enumerate(expected))

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        return all(key in actual and is_subset_match(value, actual[key]) for key, value in expected.items())

    return expected == actual


__all__ = ["deep_merge", "is_subset_match", "merge_node"]
