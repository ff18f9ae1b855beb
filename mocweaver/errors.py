"""
Error types raised by MOC Weaver.

Every error carries the affected document path(s) so callers can present a
human-readable cause without re-deriving context.
"""

from typing import Optional


class MOCSystemError(Exception):
    """Base class for all MOC Weaver errors."""

    code = "MOC_SYSTEM_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(MOCSystemError):
    """Invalid identifier or name supplied by the caller. Raised before any I/O."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, invalid_value: Optional[str] = None):
        super().__init__(message)
        self.invalid_value = invalid_value


class StorageError(MOCSystemError):
    """
    A storage backend call failed.

    Attributes:
        operation: The attempted operation (create, read, write, rename, delete, list)
        path: The path the operation targeted
        step: Mutation step that was running, if any (unlink, relocate, relink)
    """

    code = "FILE_SYSTEM_ERROR"

    def __init__(self, message: str, operation: str, path: Optional[str] = None,
                 step: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.path = path
        self.step = step

    def with_step(self, step: str) -> "StorageError":
        """Return a copy of this error annotated with the mutation step."""
        return StorageError(f"{self.message} (during {step})", self.operation, self.path, step)


class PartialMutationError(StorageError):
    """
    A hierarchy mutation stopped after its storage group was relocated.

    The group sits at its new location but the new parent does not list it.
    Nothing is rolled back; the caller decides whether to retry the relink.
    """

    code = "PARTIAL_MUTATION"

    def __init__(self, message: str, path: Optional[str] = None, moved_to: Optional[str] = None,
                 operation: str = "write"):
        super().__init__(message, operation, path, step="relink")
        self.moved_to = moved_to


class CycleError(MOCSystemError):
    """A proposed re-parent would create a cycle in the hierarchy."""

    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, source: str, target: str):
        super().__init__(
            f'Cannot create circular dependency: "{source}" would become both '
            f'parent and child of "{target}"'
        )
        self.source = source
        self.target = target


class StructureError(MOCSystemError):
    """A container does not follow the storage layout an operation needs."""

    code = "MOC_STRUCTURE_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FrontmatterError(MOCSystemError):
    """Frontmatter could not be parsed."""

    code = "FRONTMATTER_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
