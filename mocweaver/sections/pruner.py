"""
Link pruner.

Removes the entries that reference a given identifier and tidies the blank
lines those removals leave behind inside managed sections.
"""

from typing import List, Optional
from pydantic import BaseModel

from .document import Entry, SectionGrammar, split_lines


class PruneResult(BaseModel):
    """Pruned text and the number of entry lines removed."""

    text: str
    removed: int = 0

    @property
    def changed(self) -> bool:
        return self.removed > 0


def references(line: str, target: str) -> bool:
    """True for an entry line whose link points at `target`, alias or heading allowed."""
    entry = Entry.parse(line)
    return entry is not None and entry.target == target.strip()


def _normalize_span(body: List[str]) -> List[str]:
    if not any(line.strip() for line in body):
        return []
    normalized: List[str] = []
    for line in body:
        if line.strip() == "" and normalized and normalized[-1].strip() == "":
            continue
        normalized.append(line)
    return normalized


def normalize_blank_lines(lines: List[str], grammar: Optional[SectionGrammar] = None) -> List[str]:
    """
    Drop orphaned blank lines inside managed sections.

    A managed section without any remaining content loses all its blank
    lines; otherwise consecutive blank lines collapse into one. Lines outside
    managed sections are returned untouched.
    """
    grammar = grammar or SectionGrammar.from_config()
    trailing_newline = len(lines) > 1 and lines[-1] == ""
    work = lines[:-1] if trailing_newline else list(lines)

    result: List[str] = []
    index = 0
    while index < len(work):
        line = work[index]
        result.append(line)
        index += 1
        if grammar.managed_name(line) is None:
            continue
        end = index
        while end < len(work) and not grammar.is_header(work[end]):
            end += 1
        result.extend(_normalize_span(work[index:end]))
        index = end

    if trailing_newline:
        result.append("")
    return result


def prune_lines(lines: List[str], target: str,
                grammar: Optional[SectionGrammar] = None) -> List[str]:
    """Remove entries referencing `target` and normalize managed sections."""
    kept = [line for line in lines if not references(line, target)]
    if len(kept) == len(lines):
        return list(lines)
    return normalize_blank_lines(kept, grammar)


def prune_references(text: str, target: str,
                     grammar: Optional[SectionGrammar] = None) -> PruneResult:
    """
    Remove every entry referencing `target` from a document.

    Args:
        text: Document text
        target: Identifier whose entries are removed
        grammar: Markers and canonical order (defaults to configuration)

    Returns:
        PruneResult with the new text and how many entries were removed
    """
    lines = split_lines(text)
    removed = sum(1 for line in lines if references(line, target))
    if removed == 0:
        return PruneResult(text=text, removed=0)
    return PruneResult(text="\n".join(prune_lines(lines, target, grammar)), removed=removed)
