"""
Input validation for document and group names.

Names end up as file and folder names, so they must be valid on Windows,
macOS and Linux alike.
"""

import logging
import re
from typing import Optional, Tuple
from pydantic import BaseModel

from .config import config
from .errors import ValidationError


FORBIDDEN_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
MULTIPLE_SPACES = re.compile(r'\s{2,}')
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}
PROMPT_VERSION = re.compile(r'v(\d+)$')


class ValidationResult(BaseModel):
    """Outcome of validating a name."""

    is_valid: bool
    error: Optional[str] = None
    sanitized: Optional[str] = None


def validate_file_name(name: str) -> ValidationResult:
    """
    Validate and sanitize a file or folder name.

    Forbidden characters and a trailing period are removed (the result stays
    valid but carries a note in `error`); empty, over-long and reserved names
    are rejected.
    """
    if not name or not name.strip():
        return ValidationResult(is_valid=False, error="Name cannot be empty")

    sanitized = MULTIPLE_SPACES.sub(' ', name.strip())

    max_length = config.max_name_length
    if len(sanitized) > max_length:
        return ValidationResult(
            is_valid=False,
            error=f"Name is too long ({len(sanitized)} characters). Maximum allowed: {max_length}"
        )

    notes = []
    removed = sorted(set(FORBIDDEN_CHARS.findall(sanitized)))
    if removed:
        sanitized = FORBIDDEN_CHARS.sub('', sanitized).strip()
        notes.append('Removed forbidden characters: "' + '", "'.join(removed) + '"')

    if not sanitized:
        return ValidationResult(is_valid=False, error="Name contains only forbidden characters")

    if sanitized.upper().split('.')[0] in RESERVED_NAMES:
        return ValidationResult(
            is_valid=False,
            error=f'"{sanitized}" is a reserved system name. Please choose a different name.'
        )

    if sanitized.endswith('.'):
        sanitized = sanitized.rstrip('.')
        notes.append("Removed trailing period (can cause issues on some systems)")

    return ValidationResult(is_valid=True, error="; ".join(notes) or None, sanitized=sanitized)


def sanitize_input(value: str, context: str) -> str:
    """
    Return a clean name or raise.

    Args:
        value: User-provided name
        context: What the name is for (e.g. "MOC name"), used in messages

    Raises:
        ValidationError: If the name cannot be made valid
    """
    result = validate_file_name(value)
    if not result.is_valid or not result.sanitized:
        raise ValidationError(f"Invalid {context}: {result.error}", value)
    if result.error:
        logging.warning(f"{context} was sanitized: {result.error}")
    return result.sanitized


def ensure_moc_suffix(name: str) -> str:
    """Append ' MOC' unless the name already ends with it."""
    trimmed = name.strip()
    return trimmed if trimmed.endswith(" MOC") else f"{trimmed} MOC"


def extract_prompt_version(basename: str) -> Optional[int]:
    """Version number of a prompt iteration name such as 'Summarise v3'."""
    match = PROMPT_VERSION.search(basename)
    if match:
        version = int(match.group(1))
        if 0 < version < 10000:
            return version
    return None


def prompt_base_name(basename: str) -> str:
    """Drop the prompt emoji prefix from a hub or iteration name."""
    emoji = (config.get_note_type("prompt") or {}).get("emoji", "")
    name = basename.strip()
    if emoji and name.startswith(emoji):
        name = name[len(emoji):].strip()
    return name


def split_prompt_iteration(basename: str) -> Optional[Tuple[str, int]]:
    """
    Split an iteration name such as '🤖 Summarise v3 - shorter' into the
    prompt name and its version. Names without a version give None.
    """
    name = basename.split(" - ", 1)[0].strip()
    version = extract_prompt_version(name)
    if version is None:
        return None
    base = prompt_base_name(PROMPT_VERSION.sub("", name))
    return (base, version) if base else None
