"""Pydantic schemas for request/response validation.

Operation and patch schemas live in ``graphpatch.schemas.operations`` and
``graphpatch.schemas.patch``; they depend on the workflow service package
and are not re-exported here.
"""

from graphpatch.schemas.base import BaseSchema, CamelSchema
from graphpatch.schemas.validation import (
    ConnectionIssue,
    ConnectionIssueCode,
    FlatEdge,
    FloatingNode,
    MissingCredential,
    PayloadValidationResult,
    ReportSummary,
    UntypedNode,
    WorkflowReport,
)
from graphpatch.schemas.webhook import (
    HttpMethod,
    NamingIssue,
    NamingSeverity,
    WebhookInfo,
    WebhookIssue,
    WebhookIssueCode,
    WebhookReport,
)

__all__ = [
    "BaseSchema",
    "CamelSchema",
    "ConnectionIssue",
    "ConnectionIssueCode",
    "FlatEdge",
    "FloatingNode",
    "HttpMethod",
    "MissingCredential",
    "NamingIssue",
    "NamingSeverity",
    "PayloadValidationResult",
    "ReportSummary",
    "UntypedNode",
    "WebhookInfo",
    "WebhookIssue",
    "WebhookIssueCode",
    "WebhookReport",
    "WorkflowReport",
]
