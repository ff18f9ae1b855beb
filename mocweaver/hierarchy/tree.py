"""
Parent-pointer tree of storage groups and documents.
"""

from typing import Dict, List, Optional

from ..models import StorageHandle
from ..storage import StorageBackend, parent_path


class TreeNode:
    """One group or document in a `StorageTree`."""

    def __init__(self, handle: StorageHandle, parent: Optional["TreeNode"] = None):
        self.handle = handle
        self.parent = parent
        self.children: List["TreeNode"] = []

    @property
    def path(self) -> str:
        return self.handle.path

    @property
    def is_group(self) -> bool:
        return self.handle.is_group


class StorageTree:
    """
    Snapshot of a storage subtree with explicit parent pointers.

    Built once from a backend; used to answer containment questions such as
    "what does deleting this group remove" without further I/O.
    """

    def __init__(self, root_path: str = ""):
        self.root = TreeNode(StorageHandle(path=root_path, name=root_path, is_group=True))
        self._nodes: Dict[str, TreeNode] = {root_path: self.root}

    @classmethod
    async def build(cls, storage: StorageBackend, root_path: str = "") -> "StorageTree":
        """
        Build the tree for everything beneath `root_path`.

        Handles arrive depth-first, so every parent is known before its
        children.
        """
        tree = cls(root_path)
        for handle in await storage.walk(root_path, documents_only=False):
            parent = tree._nodes[parent_path(handle.path)]
            node = TreeNode(handle, parent)
            parent.children.append(node)
            tree._nodes[handle.path] = node
        return tree

    def get(self, path: str) -> Optional[TreeNode]:
        return self._nodes.get(path)

    def ancestors(self, path: str) -> List[str]:
        """Group paths from the direct parent up to the tree root."""
        node = self._nodes.get(path)
        result: List[str] = []
        while node is not None and node.parent is not None:
            node = node.parent
            result.append(node.path)
        return result

    def descendants(self, path: str) -> List[StorageHandle]:
        """Every handle beneath `path`, depth-first, excluding `path` itself."""
        node = self._nodes.get(path)
        if node is None:
            return []
        handles: List[StorageHandle] = []
        stack = list(reversed(node.children))
        while stack:
            current = stack.pop()
            handles.append(current.handle)
            stack.extend(reversed(current.children))
        return handles

    def documents(self, path: str) -> List[StorageHandle]:
        """Documents beneath `path`."""
        return [handle for handle in self.descendants(path) if not handle.is_group]
