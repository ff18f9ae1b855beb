"""Storage backends holding vault documents and their groups."""

from .base import StorageBackend, join_path, parent_path, path_name, path_depth, is_within
from .filesystem import FileSystemStorage
from .memory import InMemoryStorage

__all__ = [
    "StorageBackend",
    "FileSystemStorage",
    "InMemoryStorage",
    "join_path",
    "parent_path",
    "path_name",
    "path_depth",
    "is_within"
]
