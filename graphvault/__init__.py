"""
GRAPHVAULT — Service Graph Synchronization and Snapshot Versioning.

Applies batched graph mutations atomically and keeps versioned,
restorable snapshots of each project's service-dependency graph.
"""

__version__ = "1.0.0"
__author__ = "Borja Moskv"

from graphvault.engine import GraphVaultEngine

__all__ = ["GraphVaultEngine", "__version__"]
