"""
Base storage interface for MOC Weaver.

This module defines the abstract interface every storage backend implements.
Paths are POSIX-style and relative to the vault root; the empty string is
the root group itself.
"""

import posixpath
from abc import ABC, abstractmethod
from typing import List

from ..models import StorageHandle


def join_path(*parts: str) -> str:
    """Join path components, ignoring empty ones."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


def parent_path(path: str) -> str:
    """Path of the group holding `path` ('' for top-level entries)."""
    return posixpath.dirname(path.strip("/"))


def path_name(path: str) -> str:
    """Final component of a path."""
    return posixpath.basename(path.strip("/"))


def path_depth(path: str) -> int:
    """Number of components in a path."""
    stripped = path.strip("/")
    return len(stripped.split("/")) if stripped else 0


def is_within(path: str, group: str) -> bool:
    """True when `path` is `group` itself or lies somewhere beneath it."""
    path, group = path.strip("/"), group.strip("/")
    if not group:
        return True
    return path == group or path.startswith(group + "/")


class StorageBackend(ABC):
    """
    Abstract base class for hierarchical document storage.

    Documents are named text blobs held in nested storage groups. Every
    operation may suspend; callers await them one at a time.
    """

    @abstractmethod
    async def read(self, path: str) -> str:
        """Return the text of a document."""
        pass

    @abstractmethod
    async def write(self, path: str, text: str) -> None:
        """Replace the text of an existing document."""
        pass

    @abstractmethod
    async def create(self, path: str, text: str) -> StorageHandle:
        """Create a new document. Fails if the path already exists."""
        pass

    @abstractmethod
    async def create_group(self, path: str) -> StorageHandle:
        """Create a storage group (and missing parents). Existing groups are kept."""
        pass

    @abstractmethod
    async def rename(self, old_path: str, new_path: str) -> None:
        """Move a document or group. Fails if the source does not exist."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document, or a group with everything beneath it."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """True when a document or group exists at `path`."""
        pass

    @abstractmethod
    async def list_children(self, group_path: str) -> List[StorageHandle]:
        """List the direct children of a group, sorted by name."""
        pass

    async def walk(self, group_path: str = "", documents_only: bool = True) -> List[StorageHandle]:
        """
        Recursively list everything beneath a group in stable depth-first order.

        Args:
            group_path: Group to start from (default: vault root)
            documents_only: Skip group handles in the result

        Returns:
            List of handles
        """
        handles: List[StorageHandle] = []
        for child in await self.list_children(group_path):
            if child.is_group:
                if not documents_only:
                    handles.append(child)
                handles.extend(await self.walk(child.path, documents_only))
            else:
                handles.append(child)
        return handles
