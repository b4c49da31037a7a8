"""Tests for webhook path derivation and registration audit."""

import pytest

from graphpatch.services.registry import WebhookRegistration
from graphpatch.services.webhook.analyzer import (
    WebhookAnalyzer,
    build_webhook_report,
    curl_command,
    expected_webhook_path,
    naming_severity,
    normalize_method,
    to_kebab_case,
)

BASE_URL = "http://n8n.test"


def _webhook_node(name: str, method: str | None = "POST", path: str | None = None, node_id: str = "w1") -> dict:
    parameters = {}
    if method is not None:
        parameters["httpMethod"] = method
    if path is not None:
        parameters["path"] = path
    return {
        "id": node_id,
        "name": name,
        "type": "n8n-nodes-base.webhook",
        "position": [0, 0],
        "parameters": parameters,
    }


def _workflow(*nodes: dict, active: bool = True) -> dict:
    return {"id": "wf-7", "name": "Intake", "active": active, "nodes": list(nodes), "connections": {}}


class TestPathHelpers:
    """Tests for the pure path helpers."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Incoming Order", "incoming-order"),
            ("  Order -- Webhook!! ", "order-webhook"),
            ("already-kebab", "already-kebab"),
            ("???", ""),
        ],
    )
    def test_to_kebab_case(self, name, expected) -> None:
        """Test kebab-casing."""
        assert to_kebab_case(name) == expected

    def test_expected_path(self) -> None:
        """Test path derivation with and without a custom subpath."""
        assert expected_webhook_path("wf-7", "Incoming Order") == "wf-7/incoming-order"
        assert expected_webhook_path("wf-7", "Incoming Order", "v1/orders") == "wf-7/incoming-order/v1/orders"
        assert expected_webhook_path("wf-7", "!!!") == "wf-7/webhook"

    @pytest.mark.parametrize(
        ("name", "severity"),
        [
            ("incoming-order", None),
            ("Incoming", "medium"),
            ("incoming order", "high"),
            ("order_hook", "high"),
            ("", None),
        ],
    )
    def test_naming_severity(self, name, severity) -> None:
        """Test that whitespace/punctuation are high and uppercase alone is medium."""
        result = naming_severity(name)
        assert (result.value if result else None) == severity

    def test_normalize_method(self) -> None:
        """Test method normalization with POST default."""
        assert normalize_method("get").value == "GET"
        assert normalize_method("delete").value == "DELETE"
        assert normalize_method(None).value == "POST"
        assert normalize_method("OPTIONS").value == "POST"

    def test_curl_command(self) -> None:
        """Test curl command rendering."""
        assert curl_command("GET", "http://x/webhook/a") == "curl -X GET http://x/webhook/a"
        assert curl_command("POST", "http://x/webhook/a") == (
            "curl -X POST http://x/webhook/a -H 'Content-Type: application/json' -d '{\"test\": true}'"
        )


class TestBuildWebhookReport:
    """Tests for build_webhook_report."""

    def test_describes_webhook_nodes_only(self, make_node) -> None:
        """Test that non-webhook nodes are ignored."""
        raw = _workflow(_webhook_node("incoming", path="/orders/"), make_node("s1", "Set"), active=False)
        report = build_webhook_report(raw, "wf-7", BASE_URL, [])

        assert report.expected_count == 1
        webhook = report.webhooks[0]
        assert webhook.custom_path == "orders"
        assert webhook.expected_path == "wf-7/incoming/orders"
        assert webhook.full_url == "http://n8n.test/webhook/wf-7/incoming/orders"
        assert webhook.naming_issue is None
        assert report.healthy is True

    def test_custom_path_from_webhook_path(self) -> None:
        """Test the webhookPath fallback."""
        node = _webhook_node("hook")
        node["parameters"]["webhookPath"] = "alt"
        report = build_webhook_report(_workflow(node, active=False), "wf-7", BASE_URL, [])
        assert report.webhooks[0].expected_path == "wf-7/hook/alt"

    def test_naming_issue(self) -> None:
        """Test naming issue details."""
        report = build_webhook_report(_workflow(_webhook_node("New Order"), active=False), "wf-7", BASE_URL, [])

        issue = report.webhooks[0].naming_issue
        assert issue is not None
        assert issue.severity == "high"
        assert issue.recommendation == "Rename node to kebab-case 'new-order'."
        assert issue.expected_url_after_fix == "http://n8n.test/webhook/wf-7/new-order"

    def test_registered_by_node_name(self) -> None:
        """Test a registration matching method and node name."""
        rows = [WebhookRegistration("some/other/path", "POST", "New Order", "wf-7")]
        report = build_webhook_report(_workflow(_webhook_node("New Order")), "wf-7", BASE_URL, rows)
        assert report.webhooks[0].registered is True
        assert report.registered_count == 1
        assert report.healthy is True

    def test_registered_by_path(self) -> None:
        """Test a registration matching method and exact path."""
        rows = [WebhookRegistration("wf-7/new-order", "POST", "Renamed", "wf-7")]
        report = build_webhook_report(_workflow(_webhook_node("New Order")), "wf-7", BASE_URL, rows)
        assert report.webhooks[0].registered is True

    def test_method_must_match(self) -> None:
        """Test that a registration for another method does not count."""
        rows = [WebhookRegistration("wf-7/new-order", "GET", "New Order", "wf-7")]
        report = build_webhook_report(_workflow(_webhook_node("New Order")), "wf-7", BASE_URL, rows)

        assert report.webhooks[0].registered is False
        assert [issue.issue for issue in report.issues] == ["not_registered"]
        assert report.issues[0].severity == "critical"
        assert report.healthy is False

    def test_inactive_workflow_is_not_flagged(self) -> None:
        """Test that unregistered webhooks of inactive workflows are not issues."""
        report = build_webhook_report(_workflow(_webhook_node("hook"), active=False), "wf-7", BASE_URL, [])
        assert report.webhooks[0].registered is False
        assert report.issues == []

    def test_path_collision(self) -> None:
        """Test that a path+method owned by two workflows is critical."""
        own = WebhookRegistration("wf-7/hook", "POST", "hook", "wf-7")
        other = WebhookRegistration("wf-7/hook", "POST", "hook", "wf-8")
        report = build_webhook_report(_workflow(_webhook_node("hook")), "wf-7", BASE_URL, [own], [own, other])

        collisions = [issue for issue in report.issues if issue.issue == "path_collision"]
        assert len(collisions) == 1
        assert collisions[0].workflow_ids == ["wf-7", "wf-8"]
        assert report.healthy is False

    def test_same_path_other_method_is_not_a_collision(self) -> None:
        """Test that collisions are per method."""
        own = WebhookRegistration("wf-7/hook", "POST", "hook", "wf-7")
        other = WebhookRegistration("wf-7/hook", "GET", "hook", "wf-8")
        report = build_webhook_report(_workflow(_webhook_node("hook")), "wf-7", BASE_URL, [own], [own, other])
        assert report.issues == []


class TestWebhookAnalyzer:
    """Tests for the store/registry-backed analyzer."""

    @pytest.mark.asyncio
    async def test_analyze(self, store_factory, webhook_registry_factory) -> None:
        """Test a full audit with a collision from another workflow."""
        store = store_factory([_workflow(_webhook_node("Hook", method="get"))])
        registry = webhook_registry_factory(
            [
                WebhookRegistration("wf-7/hook", "GET", "Hook", "wf-7"),
                WebhookRegistration("wf-7/hook", "GET", "Hook", "wf-9"),
                WebhookRegistration("unrelated", "POST", "x", "wf-9"),
            ]
        )

        report = await WebhookAnalyzer(store, registry, BASE_URL + "/").analyze("wf-7")

        assert report.workflow_name == "Intake"
        assert report.workflow_active is True
        assert report.webhooks[0].method == "GET"
        assert report.webhooks[0].test_command == "curl -X GET http://n8n.test/webhook/wf-7/hook"
        assert report.webhooks[0].naming_issue.severity == "medium"
        assert [issue.issue for issue in report.issues] == ["path_collision"]
