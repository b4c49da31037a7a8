"""Patch operation schemas and wire-format normalization.

Callers (mostly agent loops) send loosely shaped operations::

    {"op": "add", "target": "connection", "source": "A", "connectionTarget": "B"}

``parse_operations`` turns those into one typed variant per
(target, op) pair, discriminated by ``kind``. Operations that already carry
``kind`` are validated as-is.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, ValidationError, model_validator

from graphpatch.schemas.base import CamelSchema
from graphpatch.services.workflow.connections import DEFAULT_CONNECTION_TYPE
from graphpatch.services.workflow.exceptions import InvalidOperationError, TooManyOperationsError

DEFAULT_MAX_OPERATIONS = 250

_TARGET_TAGS = ("node", "connection")
_TAG_FIELDS = ("target", "targetType", "entity", "resource")
_SOURCE_FIELDS = ("source", "connectionSource", "sourceNodeName")
_DESTINATION_FIELDS = ("connectionTarget", "targetNodeName", "targetNode", "to", "destination")


class InsertMode(str, Enum):
    """Where a new node goes in the node sequence."""

    APPEND = "append"
    BEFORE = "before"
    AFTER = "after"


class NodeAddOperation(CamelSchema):
    """Insert a new node; its name and id are made unique on apply."""

    kind: Literal["node_add"] = "node_add"
    node: dict[str, Any]
    insert_mode: InsertMode = InsertMode.APPEND
    anchor_node_id: str | None = None
    anchor_node_name: str | None = None

    @model_validator(mode="after")
    def check_node(self) -> NodeAddOperation:
        if not str(self.node.get("type") or "").strip() or not isinstance(self.node.get("position"), list):
            raise ValueError("node must include at least type and position for node add")
        if self.insert_mode != InsertMode.APPEND and not (self.anchor_node_id or self.anchor_node_name):
            raise ValueError(f"anchorNodeId or anchorNodeName is required for insert mode {self.insert_mode}")
        return self


class NodeUpdateOperation(CamelSchema):
    """Merge a replacement node and/or a partial patch into an existing node."""

    kind: Literal["node_update"] = "node_update"
    node_id: str | None = None
    node_name: str | None = None
    node: dict[str, Any] | None = None
    patch: dict[str, Any] | None = None

    @model_validator(mode="after")
    def check_payload(self) -> NodeUpdateOperation:
        if self.node is None and self.patch is None:
            raise ValueError("node update requires either patch or node")
        return self


class NodeRemoveOperation(CamelSchema):
    """Remove a node and every edge touching it."""

    kind: Literal["node_remove"] = "node_remove"
    node_id: str | None = None
    node_name: str | None = None


class _ConnectionOperation(CamelSchema):
    source: str = Field(..., min_length=1)
    target_node: str = Field(..., min_length=1)
    source_index: int = Field(default=0, ge=0)
    target_index: int = Field(default=0, ge=0)
    source_type: str = DEFAULT_CONNECTION_TYPE
    target_type: str = DEFAULT_CONNECTION_TYPE

    @property
    def label(self) -> str:
        return f"{self.source}[{self.source_index}] -> {self.target_node}[{self.target_index}]"


class ConnectionAddOperation(_ConnectionOperation):
    """Add an edge unless an identical one exists."""

    kind: Literal["connection_add"] = "connection_add"


class ConnectionRemoveOperation(_ConnectionOperation):
    """Remove every matching edge; removing nothing is not an error."""

    kind: Literal["connection_remove"] = "connection_remove"


NodeOperation = NodeAddOperation | NodeUpdateOperation | NodeRemoveOperation
ConnectionOperation = ConnectionAddOperation | ConnectionRemoveOperation

PatchOperation = Annotated[
    NodeAddOperation
    | NodeUpdateOperation
    | NodeRemoveOperation
    | ConnectionAddOperation
    | ConnectionRemoveOperation,
    Field(discriminator="kind"),
]

_operation_adapter: TypeAdapter[PatchOperation] = TypeAdapter(PatchOperation)


# =============================================================================
# Wire-format normalization
# =============================================================================


def _decode_json(value: Any, field: str, index: int) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise InvalidOperationError(index, f"invalid JSON for {field}: {exc.msg}") from exc


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _first(rec: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for field in fields:
        value = rec.get(field)
        if value is not None and value != "":
            return value
    return None


def _explicit_tag(rec: dict[str, Any]) -> str | None:
    for field in _TAG_FIELDS:
        value = _text(rec.get(field)).lower()
        if value in _TARGET_TAGS:
            return value
    return None


def _infer_tag(rec: dict[str, Any], index: int) -> str:
    explicit = _explicit_tag(rec)
    if explicit:
        return explicit
    if any(rec.get(field) is not None for field in ("node", "nodeId", "nodeName", "patch")):
        return "node"
    if rec.get("source") is not None or rec.get("sourceNodeName") is not None:
        return "connection"
    raise InvalidOperationError(
        index, "unable to infer operation target; provide target as node or connection"
    )


def _coerce_index(value: Any, field: str, index: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        raise InvalidOperationError(index, f"{field} must be a non-negative integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidOperationError(index, f"{field} must be a non-negative integer") from None
    if not isinstance(value, int) or value < 0:
        raise InvalidOperationError(index, f"{field} must be a non-negative integer")
    return value


def _connection_destination(rec: dict[str, Any], index: int) -> tuple[str, int | None]:
    raw = _first(rec, _DESTINATION_FIELDS)
    # ``target`` doubles as the tag field; a tag value is never a destination.
    if raw is None and _text(rec.get("target")).lower() not in (*_TARGET_TAGS, ""):
        raw = rec.get("target")

    if isinstance(raw, dict):
        name = _text(_first(raw, ("node", "name", "target", "targetNodeName")))
        if not name:
            raise InvalidOperationError(index, "connectionTarget object must include node/name/target")
        raw_index = _first(raw, ("index", "targetIndex", "inputIndex"))
        if raw_index is None:
            return name, None
        return name, _coerce_index(raw_index, "connectionTarget.index", index)

    return _text(raw), None


def _normalize_node(rec: dict[str, Any], op: str, index: int) -> dict[str, Any]:
    node_id = _text(rec.get("nodeId")) or None
    node_name = _text(rec.get("nodeName")) or None

    if op == "add":
        node = _decode_json(rec.get("node"), "node", index)
        if not isinstance(node, dict):
            raise InvalidOperationError(index, "node must be an object for node add")
        mode = _text(rec.get("insertMode")).lower() or InsertMode.APPEND.value
        if mode not in {m.value for m in InsertMode}:
            raise InvalidOperationError(index, "insertMode must be one of: append, before, after")
        return {
            "kind": "node_add",
            "node": node,
            "insert_mode": mode,
            "anchor_node_id": _text(rec.get("anchorNodeId")) or None,
            "anchor_node_name": _text(rec.get("anchorNodeName")) or None,
        }

    if not node_id and not node_name:
        raise InvalidOperationError(index, f"node {op} requires nodeId or nodeName")

    if op == "update":
        node = _decode_json(rec.get("node"), "node", index)
        patch = _decode_json(rec.get("patch"), "patch", index)
        if node is not None and not isinstance(node, dict):
            raise InvalidOperationError(index, "node must be an object when provided for node update")
        if patch is not None and not isinstance(patch, dict):
            raise InvalidOperationError(index, "patch must be an object for node update")
        return {
            "kind": "node_update",
            "node_id": node_id,
            "node_name": node_name,
            "node": node,
            "patch": patch,
        }

    return {"kind": "node_remove", "node_id": node_id, "node_name": node_name}


def _normalize_connection(rec: dict[str, Any], op: str, index: int) -> dict[str, Any]:
    if op == "update":
        raise InvalidOperationError(index, "connection target does not support op=update; use add/remove")

    source = _text(_first(rec, _SOURCE_FIELDS))
    if not source:
        raise InvalidOperationError(
            index,
            "source is required for connection operations "
            "(accepted aliases: source, connectionSource, sourceNodeName)",
        )
    destination, index_from_target = _connection_destination(rec, index)
    if not destination:
        raise InvalidOperationError(
            index,
            "connection destination is required "
            "(use connectionTarget string or connectionTarget object with node)",
        )

    raw_target_index = _first(rec, ("targetIndex", "targetInputIndex"))
    target_index = (
        _coerce_index(raw_target_index, "targetIndex", index)
        if raw_target_index is not None
        else index_from_target or 0
    )
    connection_type = _text(rec.get("connectionType")) or DEFAULT_CONNECTION_TYPE
    target_type = _text(rec.get("targetType"))
    if target_type.lower() in _TARGET_TAGS:
        target_type = ""

    return {
        "kind": f"connection_{op}",
        "source": source,
        "target_node": destination,
        "source_index": _coerce_index(_first(rec, ("sourceIndex", "sourceOutputIndex")), "sourceIndex", index),
        "target_index": target_index,
        "source_type": _text(rec.get("sourceType")) or connection_type,
        "target_type": target_type or connection_type,
    }


def parse_operation(raw: Any, index: int = 0) -> PatchOperation:
    """Normalize one wire-format operation.

    Raises:
        InvalidOperationError: The entry cannot be interpreted.
    """
    rec = _decode_json(raw, f"operations[{index}]", index)
    if not isinstance(rec, dict):
        raise InvalidOperationError(index, "operation must be an object")

    if "kind" in rec:
        normalized: dict[str, Any] = rec
    else:
        op = _text(rec.get("op")).lower()
        if op not in ("add", "update", "remove"):
            raise InvalidOperationError(index, "op must be one of: add, update, remove")
        if _infer_tag(rec, index) == "node":
            normalized = _normalize_node(rec, op, index)
        else:
            normalized = _normalize_connection(rec, op, index)

    try:
        return _operation_adapter.validate_python(normalized)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        reason = first["msg"] if not location else f"{location}: {first['msg']}"
        raise InvalidOperationError(index, reason) from exc


def parse_operations(raw: Any, max_operations: int = DEFAULT_MAX_OPERATIONS) -> list[PatchOperation]:
    """Normalize a whole batch, preserving order.

    Args:
        raw: List of operations (objects or JSON strings), or a JSON string
            encoding such a list.
        max_operations: Largest accepted batch.

    Raises:
        InvalidOperationError: The batch is empty, not a list, or an entry
            is invalid.
        TooManyOperationsError: The batch exceeds ``max_operations``.
    """
    if isinstance(raw, str):
        raw = _decode_json(raw, "operations", 0)
    if not isinstance(raw, list) or not raw:
        raise InvalidOperationError(None, "operations is required and must be a non-empty array")
    if len(raw) > max_operations:
        raise TooManyOperationsError(len(raw), max_operations)
    return [parse_operation(entry, index) for index, entry in enumerate(raw)]


__all__ = [
    "ConnectionAddOperation",
    "ConnectionOperation",
    "ConnectionRemoveOperation",
    "InsertMode",
    "NodeAddOperation",
    "NodeOperation",
    "NodeRemoveOperation",
    "NodeUpdateOperation",
    "PatchOperation",
    "parse_operation",
    "parse_operations",
]
