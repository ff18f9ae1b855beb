"""
Version control for vault mutations.
"""

from .manager import VersionManager

__all__ = ["VersionManager"]
