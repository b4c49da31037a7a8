"""Workflow graph patching, validation and inspection.

Modules:
- connections: typed connection map and edge primitives
- validator: structural connection checks
- snapshot: workflow snapshot and node selector resolution
- allocator: unique node name/id allocation
- merge: node merge and subset matching
- patcher: the atomic patch engine
- verifier: read-after-write verification
- inspector: read-only workflow health report
- payload: create/update payload shape checks
"""
