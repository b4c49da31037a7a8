"""Business logic services.

Subpackages:
- workflow: graph snapshot, patch engine, validation and inspection
- webhook: webhook path derivation and registration audit

Collaborator adapters live in ``store`` (workflow REST API) and
``registry`` (webhook and credential tables).
"""
