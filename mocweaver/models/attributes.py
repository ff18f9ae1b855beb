"""
Typed document attributes for MOC Weaver.

Frontmatter is loosely typed YAML. This module converts it once into an
`Attributes` value so the rest of the code never performs ad hoc lookups.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


CONTAINER_TAG = "moc"


class NoteType(str, Enum):
    """Document kinds created and managed by the system."""

    MOC = "moc"
    NOTE = "note"
    RESOURCE = "resource"
    PROMPT = "prompt"


class Attributes(BaseModel):
    """
    Parsed frontmatter attributes of a document.
    """

    marker: bool = Field(
        False,
        description="True when the document is a container (tags include 'moc')"
    )

    note_type: Optional[NoteType] = Field(
        None,
        description="Value of the 'note-type' key when it names a known note type"
    )

    light_color: Optional[str] = Field(
        None,
        description="Container colour used by the light theme"
    )

    dark_color: Optional[str] = Field(
        None,
        description="Container colour used by the dark theme"
    )

    tags: List[str] = Field(
        default_factory=list,
        description="Normalised list of tags"
    )

    @classmethod
    def from_frontmatter(cls, frontmatter: Optional[Dict[str, Any]]) -> "Attributes":
        """
        Build attributes from a raw frontmatter mapping.

        Args:
            frontmatter: Mapping returned by the YAML loader (may be None)

        Returns:
            Attributes with unknown or mistyped values dropped
        """
        if not isinstance(frontmatter, dict):
            return cls()

        raw_tags = frontmatter.get("tags", [])
        if isinstance(raw_tags, str):
            raw_tags = [raw_tags]
        tags = [str(tag) for tag in raw_tags] if isinstance(raw_tags, list) else []

        note_type = None
        raw_type = frontmatter.get("note-type")
        if isinstance(raw_type, str):
            try:
                note_type = NoteType(raw_type)
            except ValueError:
                note_type = None

        def _colour(key: str) -> Optional[str]:
            value = frontmatter.get(key)
            return value if isinstance(value, str) else None

        return cls(
            marker=CONTAINER_TAG in tags,
            note_type=note_type,
            light_color=_colour("light-color"),
            dark_color=_colour("dark-color"),
            tags=tags
        )
