"""
MOC Weaver: keeps a vault of Maps of Content in shape.

Manages the canonical sections of container documents and the folder
hierarchy those containers own.
"""

__version__ = "0.1.0"
__author__ = "MOC Weaver Project"

# Import main components
from .errors import (
    MOCSystemError, ValidationError, StorageError, PartialMutationError,
    CycleError, StructureError, FrontmatterError
)
from .models import Attributes, NoteType, Container, MutationReport, BatchReport
from .sections import DocumentModel, SectionGrammar, reorganize_text, add_entry, prune_references
from .storage import StorageBackend, FileSystemStorage, InMemoryStorage
from .index import MetadataIndex
from .hierarchy import HierarchyGraph, StorageTree
from .maintenance import VaultMaintenance
from .versioning import VersionManager

__all__ = [
    "MOCSystemError",
    "ValidationError",
    "StorageError",
    "PartialMutationError",
    "CycleError",
    "StructureError",
    "FrontmatterError",
    "Attributes",
    "NoteType",
    "Container",
    "MutationReport",
    "BatchReport",
    "DocumentModel",
    "SectionGrammar",
    "reorganize_text",
    "add_entry",
    "prune_references",
    "StorageBackend",
    "FileSystemStorage",
    "InMemoryStorage",
    "MetadataIndex",
    "HierarchyGraph",
    "StorageTree",
    "VaultMaintenance",
    "VersionManager"
]
