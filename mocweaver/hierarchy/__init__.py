"""Container hierarchy: cycle checks, re-parenting, creation and deletion."""

from .graph import HierarchyGraph, NO_CHANGES
from .tree import StorageTree, TreeNode

__all__ = ["HierarchyGraph", "StorageTree", "TreeNode", "NO_CHANGES"]
