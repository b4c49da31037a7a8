"""Webhook path derivation and registration audit."""

from graphpatch.services.webhook.analyzer import WebhookAnalyzer, build_webhook_report

__all__ = ["WebhookAnalyzer", "build_webhook_report"]
