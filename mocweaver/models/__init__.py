"""Data models for MOC Weaver."""

from .attributes import Attributes, NoteType, CONTAINER_TAG
from .hierarchy import (
    StorageHandle, Container, MutationState, MutationReport, BatchReport, VaultUpdatePlan
)

__all__ = [
    "Attributes",
    "NoteType",
    "CONTAINER_TAG",
    "StorageHandle",
    "Container",
    "MutationState",
    "MutationReport",
    "BatchReport",
    "VaultUpdatePlan"
]
