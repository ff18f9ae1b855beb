"""
Document model for managed sections.

A document is split into three parts: the frontmatter prologue, the managed
sections (one per canonical name, first occurrence only) and everything else.
Serializing a parsed document reproduces the input exactly when it has no
managed sections; otherwise the sections are emitted in canonical order.
"""

import re
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from ..config import config


ENTRY_PATTERN = re.compile(r"^-\s*\[\[(?P<link>[^\[\]]+)\]\]")


class SectionGrammar(BaseModel):
    """
    Fixed markers that make a section or frontmatter recognisable.
    """

    frontmatter_delimiter: str = "---"
    header_marker: str = "## "
    canonical_order: List[str] = Field(
        default_factory=lambda: ["MOCs", "Notes", "Resources", "Prompts"]
    )

    @classmethod
    def from_config(cls) -> "SectionGrammar":
        return cls(
            frontmatter_delimiter=config.frontmatter_delimiter,
            header_marker=config.section_marker,
            canonical_order=config.canonical_order
        )

    def header_for(self, name: str) -> str:
        """Header line for a canonical section name."""
        return f"{self.header_marker}{name}"

    def is_header(self, line: str) -> bool:
        """True for any section header, managed or not."""
        return line.strip().startswith(self.header_marker)

    def managed_name(self, line: str) -> Optional[str]:
        """Return the canonical name a header line declares, if any."""
        stripped = line.strip()
        for name in self.canonical_order:
            if stripped == self.header_for(name):
                return name
        return None


class Entry(BaseModel):
    """
    A reference line inside a managed section: a bullet followed by a link.
    Text after the link (a note such as "(draft)") belongs to the entry.
    """

    target: str = Field(..., description="Identifier of the referenced document")
    line: str = Field(..., description="The raw line")

    @classmethod
    def parse(cls, line: str) -> Optional["Entry"]:
        """Parse a line as an entry, returning None for anything else."""
        match = ENTRY_PATTERN.match(line.strip())
        if not match:
            return None
        return cls(target=link_target(match.group("link")), line=line)

    @staticmethod
    def render(target: str) -> str:
        return f"- [[{target}]]"


def link_target(link: str) -> str:
    """Strip alias and heading parts from a wiki link body."""
    return link.split("|", 1)[0].split("#", 1)[0].strip()


def is_entry(line: str) -> bool:
    return ENTRY_PATTERN.match(line.strip()) is not None


class ManagedSection(BaseModel):
    """
    A managed section captured from a document.

    `start` and `end` are line indices in the source the section was parsed
    from; `end` is exclusive.
    """

    name: str
    start: int
    end: int
    lines: List[str] = Field(default_factory=list)

    @property
    def header(self) -> str:
        return self.lines[0] if self.lines else ""

    @property
    def entries(self) -> List[Entry]:
        parsed = (Entry.parse(line) for line in self.lines[1:])
        return [entry for entry in parsed if entry is not None]


def split_lines(text: str) -> List[str]:
    return text.split("\n")


def find_frontmatter_end(lines: List[str], delimiter: str = "---") -> int:
    """
    Index of the first line after the frontmatter block.

    Returns 0 when the document does not start with the delimiter or the
    prologue is never closed.
    """
    if not lines or lines[0] != delimiter:
        return 0
    for index in range(1, len(lines)):
        if lines[index] == delimiter:
            return index + 1
    return 0


def find_section_end(lines: List[str], start: int, grammar: SectionGrammar) -> int:
    """Index of the next header after `start`, or the end of the document."""
    for index in range(start + 1, len(lines)):
        if grammar.is_header(lines[index]):
            return index
    return len(lines)


def locate_sections(lines: List[str], frontmatter_end: int,
                    grammar: SectionGrammar) -> List[Tuple[str, int, int]]:
    """
    Find the managed section spans of a document.

    Returns (name, start, end) tuples in canonical order. Only the first
    header per canonical name counts; later duplicates are user content.
    """
    first_seen: Dict[str, int] = {}
    for index in range(frontmatter_end, len(lines)):
        name = grammar.managed_name(lines[index])
        if name is not None and name not in first_seen:
            first_seen[name] = index

    spans = []
    for name in grammar.canonical_order:
        if name in first_seen:
            start = first_seen[name]
            spans.append((name, start, find_section_end(lines, start, grammar)))
    return spans


class DocumentModel(BaseModel):
    """
    A parsed document: frontmatter, managed sections and other content.
    """

    frontmatter: List[str] = Field(default_factory=list)
    sections: List[ManagedSection] = Field(default_factory=list)
    other_lines: List[str] = Field(default_factory=list)

    @classmethod
    def parse(cls, text: str, grammar: Optional[SectionGrammar] = None) -> "DocumentModel":
        """
        Parse raw text into its structural parts.

        Args:
            text: Document text
            grammar: Markers and canonical order (defaults to configuration)

        Returns:
            The parsed document model
        """
        return cls.from_lines(split_lines(text), grammar)

    @classmethod
    def from_lines(cls, lines: List[str], grammar: Optional[SectionGrammar] = None,
                   frontmatter_end: Optional[int] = None) -> "DocumentModel":
        """Parse already split lines, optionally with a known frontmatter boundary."""
        grammar = grammar or SectionGrammar.from_config()
        if frontmatter_end is None:
            frontmatter_end = find_frontmatter_end(lines, grammar.frontmatter_delimiter)

        sections = []
        consumed = set()
        for name, start, end in locate_sections(lines, frontmatter_end, grammar):
            sections.append(ManagedSection(name=name, start=start, end=end, lines=lines[start:end]))
            consumed.update(range(start, end))

        other_lines = [
            lines[index] for index in range(frontmatter_end, len(lines))
            if index not in consumed
        ]

        return cls(
            frontmatter=lines[:frontmatter_end],
            sections=sections,
            other_lines=other_lines
        )

    @property
    def frontmatter_end(self) -> int:
        return len(self.frontmatter)

    def get_section(self, name: str) -> Optional[ManagedSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def to_lines(self) -> List[str]:
        lines = list(self.frontmatter)
        for section in self.sections:
            lines.extend(section.lines)
        lines.extend(self.other_lines)
        return lines

    def serialize(self) -> str:
        """Join frontmatter, managed sections and other content with newlines."""
        return "\n".join(self.to_lines())
