"""Metadata index over vault documents."""

from .manager import (
    MetadataIndex, load_frontmatter, parse_frontmatter, extract_links, extract_entries, document_basename
)

__all__ = [
    "MetadataIndex", "load_frontmatter", "parse_frontmatter", "extract_links", "extract_entries",
    "document_basename"
]
