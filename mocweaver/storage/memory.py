"""
In-memory storage backend for MOC Weaver.

Holds the vault as an explicit tree of nodes with parent pointers, so deleting
a group detaches it and everything beneath it in one deterministic step.
Used for tests and dry runs.
"""

from typing import Dict, List, Optional

from ..errors import StorageError
from ..models import StorageHandle
from .base import StorageBackend, join_path


class StorageNode:
    """A document or group in the in-memory tree."""

    def __init__(self, name: str, parent: Optional["StorageNode"] = None,
                 text: Optional[str] = None):
        self.name = name
        self.parent = parent
        self.text = text
        self.children: Dict[str, "StorageNode"] = {}

    @property
    def is_group(self) -> bool:
        return self.text is None

    @property
    def path(self) -> str:
        parts = []
        node: Optional[StorageNode] = self
        while node is not None and node.parent is not None:
            parts.append(node.name)
            node = node.parent
        return "/".join(reversed(parts))

    def detach(self) -> None:
        if self.parent is not None:
            del self.parent.children[self.name]
            self.parent = None


class InMemoryStorage(StorageBackend):
    """
    Storage backend that keeps every document in memory.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None):
        """
        Initialize the in-memory backend.

        Args:
            files: Optional mapping of document path to text to seed the vault
        """
        self._root = StorageNode("")
        for path, text in (files or {}).items():
            self._insert(path, text)

    def _split(self, path: str) -> List[str]:
        return [part for part in path.strip("/").split("/") if part]

    def _find(self, path: str) -> Optional[StorageNode]:
        node = self._root
        for part in self._split(path):
            if node.is_group and part in node.children:
                node = node.children[part]
            else:
                return None
        return node

    def _ensure_group(self, path: str) -> StorageNode:
        node = self._root
        for part in self._split(path):
            child = node.children.get(part)
            if child is None:
                child = StorageNode(part, node)
                node.children[part] = child
            elif not child.is_group:
                raise StorageError(f"A file blocks the folder path: {path}", "create", path)
            node = child
        return node

    def _insert(self, path: str, text: str) -> StorageNode:
        parts = self._split(path)
        if not parts:
            raise StorageError("Cannot create a file at the vault root path", "create", path)
        group = self._ensure_group("/".join(parts[:-1]))
        node = StorageNode(parts[-1], group, text)
        group.children[parts[-1]] = node
        return node

    def _handle(self, node: StorageNode) -> StorageHandle:
        return StorageHandle(path=node.path, name=node.name, is_group=node.is_group)

    async def read(self, path: str) -> str:
        node = self._find(path)
        if node is None or node.is_group:
            raise StorageError(f"Failed to read file: {path}", "read", path)
        return node.text or ""

    async def write(self, path: str, text: str) -> None:
        node = self._find(path)
        if node is None or node.is_group:
            raise StorageError(f"Cannot write missing file: {path}", "write", path)
        node.text = text

    async def create(self, path: str, text: str) -> StorageHandle:
        if self._find(path) is not None:
            raise StorageError(f"Failed to create file, path exists: {path}", "create", path)
        return self._handle(self._insert(path, text))

    async def create_group(self, path: str) -> StorageHandle:
        return self._handle(self._ensure_group(path))

    async def rename(self, old_path: str, new_path: str) -> None:
        node = self._find(old_path)
        if node is None or node is self._root:
            raise StorageError(f"Cannot rename missing path: {old_path}", "rename", old_path)
        if self._find(new_path) is not None:
            raise StorageError(f"Cannot rename onto existing path: {new_path}", "rename", new_path)
        parts = self._split(new_path)
        destination = self._ensure_group("/".join(parts[:-1]))
        # Moving a group beneath itself would orphan the subtree
        ancestor: Optional[StorageNode] = destination
        while ancestor is not None:
            if ancestor is node:
                raise StorageError(f"Cannot move {old_path} inside itself", "rename", old_path)
            ancestor = ancestor.parent
        node.detach()
        node.name = parts[-1]
        node.parent = destination
        destination.children[node.name] = node

    async def delete(self, path: str) -> None:
        node = self._find(path)
        if node is None or node is self._root:
            raise StorageError(f"Cannot delete missing path: {path}", "delete", path)
        node.detach()

    async def exists(self, path: str) -> bool:
        return self._find(path) is not None

    async def list_children(self, group_path: str) -> List[StorageHandle]:
        node = self._find(group_path)
        if node is None or not node.is_group:
            raise StorageError(f"Not a folder: {group_path or '/'}", "list", group_path)
        return [self._handle(node.children[name]) for name in sorted(node.children)]

    def snapshot(self) -> Dict[str, str]:
        """Return every document as a path -> text mapping."""
        files: Dict[str, str] = {}

        def _collect(node: StorageNode) -> None:
            for child in node.children.values():
                if child.is_group:
                    _collect(child)
                else:
                    files[join_path(child.path)] = child.text or ""

        _collect(self._root)
        return files
