"""Database module.

Read-only access to the automation engine's registration tables.
"""

from graphpatch.db.session import dispose_engine, get_db, get_engine, get_session_factory

__all__ = [
    "dispose_engine",
    "get_db",
    "get_engine",
    "get_session_factory",
]
