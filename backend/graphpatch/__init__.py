"""Graph Patch backend.

Safe, verified mutation of remotely stored automation workflow graphs.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
