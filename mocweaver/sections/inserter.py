"""
Entry inserter.

Adds a single reference entry to a managed section. The document is
reorganized first so the section lands at its canonical position; a missing
section is created there.
"""

import logging
from typing import List, Optional

from ..errors import StructureError, ValidationError
from .document import DocumentModel, Entry, SectionGrammar, is_entry, split_lines
from .reorganizer import ReorganizeResult, reorganize_lines


def _new_section_insert_point(section: str, result: ReorganizeResult,
                              grammar: SectionGrammar) -> int:
    order = grammar.canonical_order
    for later in order[order.index(section) + 1:]:
        if later in result.section_indices:
            return result.section_indices[later]
    if result.section_ends:
        return max(result.section_ends.values())
    return result.frontmatter_end


def _last_entry_index(lines: List[str], header_index: int, grammar: SectionGrammar) -> int:
    """
    Index of the last managed entry of the section starting at `header_index`.

    Falls back to the last blank line after the header (or the header itself)
    when the section has no entries yet.
    """
    index = header_index + 1
    while index < len(lines) and lines[index].strip() == "":
        index += 1
    last = index - 1

    while index < len(lines):
        line = lines[index]
        if grammar.is_header(line):
            break
        if is_entry(line):
            last = index
            index += 1
            continue
        if line.strip() == "" and index + 1 < len(lines) and is_entry(lines[index + 1]):
            index += 1
            continue
        # Blank line closing the entry list, or user content
        break
    return last


def _validate(section: str, target: str, grammar: SectionGrammar) -> None:
    if section not in grammar.canonical_order:
        raise ValidationError(f"Unknown section: {section}", section)
    if not target or not target.strip() or "\n" in target:
        raise ValidationError("Entry target cannot be empty or span lines", target)


def insert_entry_lines(lines: List[str], section: str, target: str,
                       grammar: Optional[SectionGrammar] = None) -> List[str]:
    """
    Insert an entry for `target` into `section` and return the new lines.

    Args:
        lines: Document lines
        section: Canonical section name
        target: Identifier the new entry references
        grammar: Markers and canonical order (defaults to configuration)

    Raises:
        ValidationError: If the section is not canonical or the target is empty
    """
    grammar = grammar or SectionGrammar.from_config()
    _validate(section, target, grammar)

    result = reorganize_lines(lines, grammar=grammar)
    rebuilt = list(result.lines)
    entry_line = Entry.render(target.strip())

    if section not in result.section_indices:
        insert_at = _new_section_insert_point(section, result, grammar)
        block = [grammar.header_for(section), "", entry_line, ""]
        if insert_at < len(rebuilt) and rebuilt[insert_at].strip() == "":
            block.pop()
        rebuilt[insert_at:insert_at] = block
        logging.debug(f"Created section '{section}' at line {insert_at}")
        return rebuilt

    last = _last_entry_index(rebuilt, result.section_indices[section], grammar)
    rebuilt.insert(last + 1, entry_line)
    return rebuilt


def has_entry(text: str, section: str, target: str,
              grammar: Optional[SectionGrammar] = None) -> bool:
    """True when the managed section already holds an entry for `target`."""
    managed = DocumentModel.parse(text, grammar).get_section(section)
    if managed is None:
        return False
    return any(entry.target == target.strip() for entry in managed.entries)


def add_entry(text: str, section: str, target: str,
              grammar: Optional[SectionGrammar] = None) -> str:
    """
    Add an entry for `target` to `section` of a document.

    Adding a target the section already lists returns the text unchanged.
    """
    grammar = grammar or SectionGrammar.from_config()
    _validate(section, target, grammar)
    if has_entry(text, section, target, grammar):
        logging.debug(f"Section '{section}' already lists [[{target}]]")
        return text
    return "\n".join(insert_entry_lines(split_lines(text), section, target, grammar))


def append_entry_under(text: str, header: str, target: str,
                       grammar: Optional[SectionGrammar] = None) -> str:
    """
    Append an entry to the list below an unmanaged header, in place.

    Unlike `add_entry` the document is not reorganized, so user headings such
    as a prompt hub's "## Iterations" keep their position.

    Raises:
        StructureError: If the document has no such header
    """
    grammar = grammar or SectionGrammar.from_config()
    lines = split_lines(text)
    for index, line in enumerate(lines):
        if line.strip() == header:
            last = _last_entry_index(lines, index, grammar)
            lines.insert(last + 1, Entry.render(target.strip()))
            return "\n".join(lines)
    raise StructureError(f"Document has no '{header}' heading to list [[{target}]] under")
