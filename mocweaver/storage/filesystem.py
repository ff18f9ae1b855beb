"""
File system storage backend.

Maps vault paths onto a directory tree. Blocking file system calls run in a
worker thread so the event loop only suspends at these I/O boundaries.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import List

from ..errors import StorageError
from ..models import StorageHandle
from .base import StorageBackend, path_name


class FileSystemStorage(StorageBackend):
    """
    Storage backend backed by a directory on disk.
    """

    def __init__(self, root: str):
        """
        Initialize the file system backend.

        Args:
            root: Directory holding the vault
        """
        self.root = Path(root)
        logging.info(f"Initialized FileSystemStorage for: {self.root}")

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path.strip("/")).resolve()
        root = self.root.resolve()
        if resolved != root and root not in resolved.parents:
            raise StorageError(f"Path escapes the vault: {path}", "resolve", path)
        return resolved

    def _handle(self, path: str, is_group: bool) -> StorageHandle:
        clean = path.strip("/")
        return StorageHandle(path=clean, name=path_name(clean), is_group=is_group)

    async def read(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read file: {path} ({e})", "read", path) from e

    async def write(self, path: str, text: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Cannot write missing file: {path}", "write", path)
        try:
            await asyncio.to_thread(target.write_text, text, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write file: {path} ({e})", "write", path) from e

    async def create(self, path: str, text: str) -> StorageHandle:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Failed to create file, path exists: {path}", "create", path)

        def _create() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'x', encoding='utf-8') as f:
                f.write(text)

        try:
            await asyncio.to_thread(_create)
        except OSError as e:
            raise StorageError(f"Failed to create file: {path} ({e})", "create", path) from e
        logging.info(f"Created file: {path}")
        return self._handle(path, is_group=False)

    async def create_group(self, path: str) -> StorageHandle:
        target = self._resolve(path)
        if target.exists() and not target.is_dir():
            raise StorageError(f"Failed to create folder, a file exists: {path}", "create", path)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create folder: {path} ({e})", "create", path) from e
        return self._handle(path, is_group=True)

    async def rename(self, old_path: str, new_path: str) -> None:
        source = self._resolve(old_path)
        destination = self._resolve(new_path)
        if not source.exists():
            raise StorageError(f"Cannot rename missing path: {old_path}", "rename", old_path)
        if destination.exists():
            raise StorageError(f"Cannot rename onto existing path: {new_path}", "rename", new_path)

        def _rename() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.rename(destination)

        try:
            await asyncio.to_thread(_rename)
        except OSError as e:
            raise StorageError(f"Failed to rename {old_path} to {new_path} ({e})", "rename", old_path) from e
        logging.info(f"Renamed {old_path} -> {new_path}")

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists():
            raise StorageError(f"Cannot delete missing path: {path}", "delete", path)
        try:
            if target.is_dir():
                await asyncio.to_thread(shutil.rmtree, target)
            else:
                await asyncio.to_thread(target.unlink)
        except OSError as e:
            raise StorageError(f"Failed to delete {path} ({e})", "delete", path) from e
        logging.info(f"Deleted: {path}")

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)

    async def list_children(self, group_path: str) -> List[StorageHandle]:
        target = self._resolve(group_path)
        if not target.is_dir():
            raise StorageError(f"Not a folder: {group_path or '/'}", "list", group_path)

        def _list() -> List[StorageHandle]:
            handles = []
            for child in sorted(target.iterdir(), key=lambda p: p.name):
                if child.name.startswith('.'):
                    continue
                relative = child.relative_to(self.root.resolve()).as_posix()
                handles.append(self._handle(relative, child.is_dir()))
            return handles

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageError(f"Failed to list folder: {group_path} ({e})", "list", group_path) from e
