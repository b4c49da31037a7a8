"""Webhook path derivation and registration audit.

The automation engine routes an external request to
``{base}/webhook/{workflowId}/{kebab(nodeName)}[/{customPath}]``. Node names
that kebab-casing rewrites are a common source of 404s, and routes that are
registered for more than one workflow cannot be dispatched at all.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Any

from graphpatch.core.logging import get_logger
from graphpatch.schemas.webhook import (
    HttpMethod,
    NamingIssue,
    NamingSeverity,
    WebhookInfo,
    WebhookIssue,
    WebhookIssueCode,
    WebhookReport,
)
from graphpatch.services.registry import WebhookRegistration, WebhookRegistry
from graphpatch.services.store import WorkflowStore
from graphpatch.services.workflow.snapshot import get_node_id, get_node_name

logger = get_logger(__name__)

WEBHOOK_NODE_TYPE = "n8n-nodes-base.webhook"
DEFAULT_KEBAB_NAME = "webhook"

_WHITESPACE = re.compile(r"\s")
_UPPERCASE = re.compile(r"[A-Z]")
_PUNCTUATION = re.compile(r"[^a-zA-Z0-9\s-]")


def normalize_method(raw: Any) -> HttpMethod:
    """Map a configured method onto a supported one, defaulting to POST."""
    value = str(raw or "").strip().upper()
    try:
        return HttpMethod(value)
    except ValueError:
        return HttpMethod.POST


def normalize_path(raw: Any) -> str:
    return str(raw or "").strip().strip("/")


def to_kebab_case(name: str) -> str:
    """Lowercase, hyphenate whitespace and drop everything outside ``[a-z0-9-]``."""
    value = re.sub(r"\s+", "-", str(name or "").lower())
    value = re.sub(r"[^a-z0-9-]", "", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def naming_severity(name: str) -> NamingSeverity | None:
    """Severity of the naming risk for ``name``, or None if it is safe.

    Whitespace and punctuation change the path shape and are ``high``;
    uppercase alone is ``medium``.
    """
    trimmed = str(name or "").strip()
    if not trimmed:
        return None
    if _WHITESPACE.search(trimmed) or _PUNCTUATION.search(trimmed):
        return NamingSeverity.HIGH
    if _UPPERCASE.search(trimmed):
        return NamingSeverity.MEDIUM
    return None


def expected_webhook_path(workflow_id: str, node_name: str, custom_path: str = "") -> str:
    kebab = to_kebab_case(node_name) or DEFAULT_KEBAB_NAME
    path = f"{workflow_id}/{kebab}"
    return f"{path}/{custom_path}" if custom_path else path


def webhook_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/webhook/{path}"


def curl_command(method: HttpMethod | str, url: str) -> str:
    method = HttpMethod(method).value
    if method == HttpMethod.GET.value:
        return f"curl -X GET {url}"
    return f"curl -X {method} {url} -H 'Content-Type: application/json' -d '{{\"test\": true}}'"


def is_webhook_node(node: dict[str, Any]) -> bool:
    return str(node.get("type") or "").strip() == WEBHOOK_NODE_TYPE


def _parameters(node: dict[str, Any]) -> dict[str, Any]:
    parameters = node.get("parameters")
    return parameters if isinstance(parameters, dict) else {}


def custom_path_of(node: dict[str, Any]) -> str:
    parameters = _parameters(node)
    return normalize_path(parameters.get("path") or parameters.get("webhookPath"))


def describe_webhook(
    node: dict[str, Any],
    workflow_id: str,
    base_url: str,
    registrations: list[WebhookRegistration],
) -> WebhookInfo:
    """Derive path, URL, registration state and naming risk for one node."""
    name = get_node_name(node)
    method = normalize_method(_parameters(node).get("httpMethod"))
    custom_path = custom_path_of(node)
    expected_path = expected_webhook_path(workflow_id, name, custom_path)
    full_url = webhook_url(base_url, expected_path)

    registered = any(
        row.method == method.value and (row.node == name or row.webhook_path == expected_path)
        for row in registrations
    )

    naming_issue = None
    severity = naming_severity(name)
    if severity is not None:
        kebab = to_kebab_case(name) or DEFAULT_KEBAB_NAME
        naming_issue = NamingIssue(
            severity=severity,
            problem=(
                f"Node name '{name}' contains spaces, mixed case, or special characters "
                "that are rewritten in the webhook path."
            ),
            recommendation=f"Rename node to kebab-case '{kebab}'.",
            expected_url_after_fix=full_url,
        )

    return WebhookInfo(
        node_id=get_node_id(node) or None,
        node_name=name,
        method=method,
        custom_path=custom_path,
        expected_path=expected_path,
        full_url=full_url,
        registered=registered,
        test_command=curl_command(method, full_url),
        naming_issue=naming_issue,
    )


def find_collisions(
    registrations: list[WebhookRegistration], paths: set[str]
) -> list[WebhookIssue]:
    """Report every path+method under ``paths`` owned by more than one workflow."""
    owners: dict[tuple[str, str], set[str]] = defaultdict(set)
    for row in registrations:
        if row.webhook_path in paths and row.workflow_id:
            owners[(row.webhook_path, row.method)].add(row.workflow_id)

    issues: list[WebhookIssue] = []
    for (path, method), workflow_ids in sorted(owners.items()):
        if len(workflow_ids) < 2:
            continue
        issues.append(
            WebhookIssue(
                issue=WebhookIssueCode.PATH_COLLISION,
                path=path,
                method=normalize_method(method),
                detail=f"{method} /{path} is registered by {len(workflow_ids)} workflows",
                workflow_ids=sorted(workflow_ids),
            )
        )
    return issues


def build_webhook_report(
    raw: dict[str, Any],
    workflow_id: str,
    base_url: str,
    registrations: list[WebhookRegistration],
    path_registrations: list[WebhookRegistration] | None = None,
) -> WebhookReport:
    """Assemble a ``WebhookReport`` from already-fetched data.

    Args:
        raw: Workflow document from the store.
        workflow_id: Workflow identifier used for path derivation.
        base_url: Public base URL of the automation engine.
        registrations: Registration rows of this workflow.
        path_registrations: Rows from any workflow sharing one of the
            relevant paths, used for the collision audit.
    """
    nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    active = bool(raw.get("active"))
    webhooks = [
        describe_webhook(node, workflow_id, base_url, registrations)
        for node in nodes
        if isinstance(node, dict) and is_webhook_node(node)
    ]

    issues: list[WebhookIssue] = []
    if active:
        for webhook in webhooks:
            if webhook.registered:
                continue
            issues.append(
                WebhookIssue(
                    issue=WebhookIssueCode.NOT_REGISTERED,
                    node_name=webhook.node_name,
                    path=webhook.expected_path,
                    method=webhook.method,
                    detail=(
                        f"Active workflow has no {webhook.method} registration for "
                        f"'{webhook.node_name}' at /{webhook.expected_path}"
                    ),
                    workflow_ids=[workflow_id],
                )
            )

    relevant = {webhook.expected_path for webhook in webhooks} | {row.webhook_path for row in registrations}
    issues.extend(find_collisions(path_registrations or [], relevant))

    registered_count = sum(1 for webhook in webhooks if webhook.registered)
    return WebhookReport(
        workflow_id=workflow_id,
        workflow_name=str(raw.get("name") or ""),
        workflow_active=active,
        webhooks=webhooks,
        issues=issues,
        registered_count=registered_count,
        expected_count=len(webhooks),
        healthy=not issues,
    )


class WebhookAnalyzer:
    """Audit webhook triggers of a stored workflow against the registry."""

    def __init__(self, store: WorkflowStore, registry: WebhookRegistry, base_url: str) -> None:
        self.store = store
        self.registry = registry
        self.base_url = base_url.rstrip("/")

    async def analyze(self, workflow_id: str) -> WebhookReport:
        raw = await self.store.get_workflow(workflow_id, exclude_pinned_data=True)
        registrations = await self.registry.list_for_workflow(workflow_id)

        nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
        paths = {
            expected_webhook_path(workflow_id, get_node_name(node), custom_path_of(node))
            for node in nodes
            if isinstance(node, dict) and is_webhook_node(node)
        } | {row.webhook_path for row in registrations}
        path_registrations = await self.registry.list_for_paths(paths) if paths else []

        report = build_webhook_report(raw, workflow_id, self.base_url, registrations, path_registrations)
        logger.info(
            f"Analyzed webhooks for workflow {workflow_id}: "
            f"{report.registered_count}/{report.expected_count} registered",
            extra={
                "context": {
                    "workflow_id": workflow_id,
                    "active": report.workflow_active,
                    "issue_count": len(report.issues),
                }
            },
        )
        return report


__all__ = [
    "WEBHOOK_NODE_TYPE",
    "WebhookAnalyzer",
    "build_webhook_report",
    "curl_command",
    "describe_webhook",
    "expected_webhook_path",
    "find_collisions",
    "naming_severity",
    "normalize_method",
    "to_kebab_case",
]
