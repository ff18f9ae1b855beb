"""Managed section parsing and rewriting."""

from .document import (
    DocumentModel, ManagedSection, Entry, SectionGrammar,
    find_frontmatter_end, find_section_end, is_entry, link_target
)
from .reorganizer import ReorganizeResult, reorganize_lines, reorganize_text, needs_reorganization
from .inserter import add_entry, append_entry_under, insert_entry_lines, has_entry
from .pruner import PruneResult, prune_references, prune_lines, normalize_blank_lines

__all__ = [
    "DocumentModel",
    "ManagedSection",
    "Entry",
    "SectionGrammar",
    "find_frontmatter_end",
    "find_section_end",
    "is_entry",
    "link_target",
    "ReorganizeResult",
    "reorganize_lines",
    "reorganize_text",
    "needs_reorganization",
    "add_entry",
    "append_entry_under",
    "insert_entry_lines",
    "has_entry",
    "PruneResult",
    "prune_references",
    "prune_lines",
    "normalize_blank_lines"
]
