"""
Hierarchy models for MOC Weaver.

This module defines the data structures exchanged between the hierarchy
graph, the maintenance jobs and their callers.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .attributes import Attributes


class StorageHandle(BaseModel):
    """
    A document or storage group returned by a storage backend.
    """

    path: str = Field(..., description="Path relative to the vault root")
    name: str = Field(..., description="Final path component")
    is_group: bool = Field(False, description="True for storage groups (folders)")

    @property
    def basename(self) -> str:
        """Name without the document extension."""
        if self.is_group or "." not in self.name:
            return self.name
        return self.name.rsplit(".", 1)[0]


class Container(BaseModel):
    """
    A container document together with the storage group it owns.
    """

    path: str = Field(..., description="Path of the container document")
    name: str = Field(..., description="Identifier (document basename)")
    group_path: str = Field(..., description="Path of the owned storage group")
    attributes: Attributes = Field(default_factory=Attributes)

    @property
    def is_root(self) -> bool:
        """Root containers own a top-level storage group."""
        return "/" not in self.group_path


class MutationState(str, Enum):
    """States a hierarchy mutation moves through."""

    IDLE = "idle"
    VALIDATING = "validating"
    REJECTED = "rejected"
    RELOCATING = "relocating"
    RELINKING = "relinking"
    DONE = "done"


class MutationReport(BaseModel):
    """
    Outcome of a move or promote operation.
    """

    node: str = Field(..., description="Path of the container that was mutated")
    new_parent: Optional[str] = Field(None, description="Path of the new parent, None for root")
    state: MutationState = Field(MutationState.IDLE)
    changed: bool = Field(False)
    message: str = Field("")
    unlinked_from: List[str] = Field(
        default_factory=list,
        description="Documents whose entry for the node was removed"
    )
    old_group: Optional[str] = None
    new_group: Optional[str] = None


class BatchReport(BaseModel):
    """
    Aggregate result of a bulk operation over many documents.
    """

    operation: str
    succeeded: List[str] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(
        default_factory=dict,
        description="Map of document path to error message"
    )

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def changed(self) -> bool:
        return bool(self.succeeded)

    def summary(self) -> str:
        """Human-readable one-line summary."""
        if not self.succeeded and not self.failed:
            return f"{self.operation}: no changes needed"
        return (f"{self.operation}: {self.success_count} updated, "
                f"{len(self.unchanged)} unchanged, {self.failure_count} failed")


class VaultUpdatePlan(BaseModel):
    """
    Documents that need updates to match the current section layout.
    """

    files_to_update: List[str] = Field(default_factory=list)
    update_summary: Dict[str, List[str]] = Field(default_factory=dict)

    @property
    def total_changes(self) -> int:
        return sum(len(changes) for changes in self.update_summary.values())
