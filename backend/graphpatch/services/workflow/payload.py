"""Shape checks for workflow create/update payloads."""

from __future__ import annotations

import json
from typing import Any

from graphpatch.schemas.validation import PayloadValidationResult
from graphpatch.services.workflow.exceptions import InvalidWorkflowPayloadError
from graphpatch.services.workflow.validator import collect_connection_issues


def _decode(value: Any, field: str) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise InvalidWorkflowPayloadError(f"invalid JSON for {field}: {exc.msg}") from exc


def normalize_workflow_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Decode JSON-string fields and enforce the payload shape.

    Raises:
        InvalidWorkflowPayloadError: A field has the wrong type, a node lacks
            name, type or position, or two nodes share a name.
    """
    normalized = dict(payload)
    for field in ("nodes", "connections", "settings", "shared", "staticData"):
        if field in normalized:
            normalized[field] = _decode(normalized[field], field)
    if normalized.get("settings") is None:
        normalized["settings"] = {}

    nodes = normalized.get("nodes")
    if not isinstance(nodes, list):
        raise InvalidWorkflowPayloadError("nodes must be an array")

    seen: set[str] = set()
    decoded_nodes: list[dict[str, Any]] = []
    for index, node in enumerate(nodes):
        node = _decode(node, f"nodes[{index}]")
        if not isinstance(node, dict):
            raise InvalidWorkflowPayloadError(f"nodes[{index}] must be an object")
        if not node.get("name") or not node.get("type") or not isinstance(node.get("position"), list):
            raise InvalidWorkflowPayloadError(f"nodes[{index}] must include name, type, and position")
        name = str(node["name"]).strip()
        if name in seen:
            raise InvalidWorkflowPayloadError(f"node names must be unique (duplicate: {name})")
        seen.add(name)
        decoded_nodes.append(node)
    normalized["nodes"] = decoded_nodes

    if not isinstance(normalized.get("connections"), dict):
        raise InvalidWorkflowPayloadError("connections must be an object")
    if not isinstance(normalized["settings"], dict):
        raise InvalidWorkflowPayloadError("settings must be an object")
    if normalized.get("shared") is not None and not isinstance(normalized["shared"], list):
        raise InvalidWorkflowPayloadError("shared must be an array when provided")

    return normalized


def validate_workflow_payload(payload: dict[str, Any]) -> PayloadValidationResult:
    """Check a payload before it is sent to the store's create/update call.

    Shape errors raise; connection problems are reported as ``issues`` and
    make the result invalid.
    """
    normalized = normalize_workflow_payload(payload)
    names = [str(node["name"]).strip() for node in normalized["nodes"]]
    issues = collect_connection_issues(normalized["connections"], names)
    return PayloadValidationResult(
        valid=not issues,
        name=str(normalized.get("name") or ""),
        node_count=len(names),
        connection_keys=list(normalized["connections"]),
        has_settings=bool(normalized["settings"]),
        has_shared=isinstance(normalized.get("shared"), list),
        has_static_data=normalized.get("staticData") is not None,
        issues=issues,
    )


__all__ = ["normalize_workflow_payload", "validate_workflow_payload"]
