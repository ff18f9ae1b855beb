"""
Section reorganizer.

Regroups the managed sections of a document directly after the frontmatter,
in canonical order, and moves all other content after them without losing or
duplicating a single line.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from .document import DocumentModel, SectionGrammar, find_frontmatter_end, split_lines


class ReorganizeResult(BaseModel):
    """
    Rebuilt document lines and where each managed section now starts.
    """

    lines: List[str] = Field(default_factory=list)
    section_indices: Dict[str, int] = Field(default_factory=dict)
    section_ends: Dict[str, int] = Field(
        default_factory=dict,
        description="Exclusive end of each section's captured lines in the rebuilt list"
    )
    frontmatter_end: int = 0

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def _needs_separator(emitted: List[str], other: List[str], grammar: SectionGrammar) -> bool:
    # Content after the managed block that starts with a header stays attached
    # as is; anything else would be swallowed by the last section on the next
    # parse, so a blank line is only added in front of header-less content.
    if not emitted or not other:
        return False
    first = other[0]
    return (emitted[-1].strip() != ""
            and first.strip() != ""
            and not grammar.is_header(first))


def reorganize_lines(lines: List[str], frontmatter_end: Optional[int] = None,
                     grammar: Optional[SectionGrammar] = None) -> ReorganizeResult:
    """
    Rebuild a document with its managed sections in canonical order.

    Args:
        lines: Document lines
        frontmatter_end: Index of the first line after the frontmatter
                         (computed when omitted)
        grammar: Markers and canonical order (defaults to configuration)

    Returns:
        ReorganizeResult with the rebuilt lines and section start indices
    """
    grammar = grammar or SectionGrammar.from_config()
    if frontmatter_end is None:
        frontmatter_end = find_frontmatter_end(lines, grammar.frontmatter_delimiter)

    model = DocumentModel.from_lines(lines, grammar, frontmatter_end)

    rebuilt = list(model.frontmatter)
    section_indices: Dict[str, int] = {}
    section_ends: Dict[str, int] = {}
    emitted: List[str] = []
    for section in model.sections:
        section_indices[section.name] = len(rebuilt)
        rebuilt.extend(section.lines)
        section_ends[section.name] = len(rebuilt)
        emitted.extend(section.lines)

    if model.other_lines:
        if _needs_separator(emitted, model.other_lines, grammar):
            rebuilt.append("")
        rebuilt.extend(model.other_lines)

    return ReorganizeResult(
        lines=rebuilt,
        section_indices=section_indices,
        section_ends=section_ends,
        frontmatter_end=frontmatter_end
    )


def reorganize_text(text: str, grammar: Optional[SectionGrammar] = None) -> str:
    """Reorganize a document given as text."""
    return reorganize_lines(split_lines(text), grammar=grammar).text


def needs_reorganization(text: str, grammar: Optional[SectionGrammar] = None) -> bool:
    """True when reorganizing would change the document."""
    return reorganize_text(text, grammar) != text
