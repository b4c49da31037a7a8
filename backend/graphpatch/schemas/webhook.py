"""Schemas for webhook path and registration reports."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from graphpatch.schemas.base import BaseSchema


class HttpMethod(str, Enum):
    """HTTP methods a webhook trigger can listen on."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class NamingSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


class WebhookIssueCode(str, Enum):
    """Problems found while auditing webhook registrations."""

    NOT_REGISTERED = "not_registered"
    PATH_COLLISION = "path_collision"


class NamingIssue(BaseSchema):
    """A node name that kebab-casing would rewrite."""

    severity: NamingSeverity
    problem: str
    recommendation: str
    expected_url_after_fix: str


class WebhookInfo(BaseSchema):
    """Derived routing information for one webhook trigger node."""

    node_id: str | None = None
    node_name: str
    method: HttpMethod
    custom_path: str = ""
    expected_path: str = Field(..., description="{workflowId}/{kebab-name}[/{customPath}]")
    full_url: str
    registered: bool
    test_command: str
    naming_issue: NamingIssue | None = None


class WebhookIssue(BaseSchema):
    """A critical registration problem."""

    issue: WebhookIssueCode
    severity: str = "critical"
    node_name: str | None = None
    path: str
    method: HttpMethod
    detail: str
    workflow_ids: list[str] = Field(default_factory=list)


class WebhookReport(BaseSchema):
    """Webhook audit of one workflow."""

    workflow_id: str
    workflow_name: str
    workflow_active: bool
    webhooks: list[WebhookInfo] = Field(default_factory=list)
    issues: list[WebhookIssue] = Field(default_factory=list)
    registered_count: int = 0
    expected_count: int = 0
    healthy: bool


__all__ = [
    "HttpMethod",
    "NamingIssue",
    "NamingSeverity",
    "WebhookInfo",
    "WebhookIssue",
    "WebhookIssueCode",
    "WebhookReport",
]
