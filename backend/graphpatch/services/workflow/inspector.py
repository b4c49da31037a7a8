"""Read-only health report for a stored workflow graph."""

from __future__ import annotations

from collections import Counter
from typing import Any

from graphpatch.core.logging import get_logger
from graphpatch.schemas.validation import (
    FlatEdge,
    FloatingNode,
    MissingCredential,
    ReportSummary,
    UntypedNode,
    WorkflowReport,
)
from graphpatch.services.registry import CredentialRegistry
from graphpatch.services.store import WorkflowStore
from graphpatch.services.workflow.connections import ConnectionMap
from graphpatch.services.workflow.snapshot import get_node_id, get_node_name, node_names
from graphpatch.services.workflow.validator import collect_connection_issues

logger = get_logger(__name__)


def flatten_edges(connections: Any) -> list[FlatEdge]:
    """List every edge with a non-empty target as a flat record."""
    return [
        FlatEdge(
            source_node=source,
            source_type=type_,
            source_index=output_index,
            target_node=edge.node,
            target_type=edge.type,
            target_index=edge.index,
        )
        for source, type_, output_index, edge in ConnectionMap.from_raw(connections).iter_edges()
        if edge.node
    ]


async def _missing_credentials(
    nodes: list[dict[str, Any]], credentials: CredentialRegistry
) -> list[MissingCredential]:
    known: dict[tuple[str, str], bool] = {}
    report: list[MissingCredential] = []

    for node in nodes:
        references = node.get("credentials")
        if not isinstance(references, dict):
            continue
        missing: list[str] = []
        for credential_type, reference in references.items():
            reference = reference if isinstance(reference, dict) else {}
            credential_id = str(reference.get("id") or "").strip()
            name = str(reference.get("name") or "").strip()
            if not credential_id and not name:
                missing.append(f"{credential_type}:missing_reference")
                continue
            key = (credential_id, name)
            if key not in known:
                known[key] = await credentials.exists(credential_id or None, name or None)
            if not known[key]:
                missing.append(f"{credential_type}:{credential_id or name}")
        if missing:
            report.append(
                MissingCredential(
                    node_id=get_node_id(node) or None,
                    node_name=get_node_name(node),
                    node_type=str(node.get("type") or "").strip() or None,
                    missing=missing,
                )
            )
    return report


async def inspect_workflow(
    raw: dict[str, Any],
    credentials: CredentialRegistry,
    workflow_id: str | None = None,
) -> WorkflowReport:
    """Build a ``WorkflowReport`` for a raw store document.

    The report is ``valid`` only when there are no floating nodes, no
    unresolvable credential references, no broken connections and no nodes
    without a type.
    """
    nodes_raw = raw.get("nodes")
    nodes = [node for node in nodes_raw if isinstance(node, dict)] if isinstance(nodes_raw, list) else []
    connections = raw.get("connections")

    edges = flatten_edges(connections)
    broken = collect_connection_issues(connections, node_names(nodes))

    inbound = Counter(edge.target_node for edge in edges)
    outbound = Counter(edge.source_node for edge in edges)
    floating = [
        FloatingNode(
            id=get_node_id(node) or None,
            name=get_node_name(node),
            type=str(node.get("type") or "").strip() or None,
        )
        for node in nodes
        if get_node_name(node) and not inbound[get_node_name(node)] and not outbound[get_node_name(node)]
    ]
    untyped = [
        UntypedNode(id=get_node_id(node) or None, name=get_node_name(node), index=index)
        for index, node in enumerate(nodes)
        if not str(node.get("type") or "").strip()
    ]
    missing = await _missing_credentials(nodes, credentials)

    summary = ReportSummary(
        node_count=len(nodes),
        edge_count=len(edges),
        floating_node_count=len(floating),
        missing_credential_node_count=len(missing),
        broken_connection_count=len(broken),
        nodes_without_type_count=len(untyped),
    )
    return WorkflowReport(
        workflow_id=str(raw.get("id") or workflow_id or ""),
        workflow_name=str(raw.get("name") or ""),
        summary=summary,
        floating_nodes=floating,
        missing_credentials=missing,
        broken_connections=broken,
        nodes_without_type=untyped,
        edges=edges,
        valid=not (floating or missing or broken or untyped),
    )


class WorkflowInspector:
    """Fetch a workflow from the store and report on its health."""

    def __init__(self, store: WorkflowStore, credentials: CredentialRegistry) -> None:
        self.store = store
        self.credentials = credentials

    async def inspect(self, workflow_id: str) -> WorkflowReport:
        raw = await self.store.get_workflow(workflow_id, exclude_pinned_data=True)
        report = await inspect_workflow(raw, self.credentials, workflow_id)
        logger.info(
            f"Inspected workflow {report.workflow_id}: valid={report.valid}",
            extra={"context": {"workflow_id": report.workflow_id, **report.summary.model_dump()}},
        )
        return report


__all__ = ["WorkflowInspector", "flatten_edges", "inspect_workflow"]
