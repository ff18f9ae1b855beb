"""
Configuration management for MOC Weaver.

This module handles loading and accessing configuration values from config.yaml.
Section names, markers and vault layout all live here so a vault using a
different header style can be handled without code changes.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging


DEFAULT_CANONICAL_ORDER = ["MOCs", "Notes", "Resources", "Prompts"]


class ConfigManager:
    """
    Manages configuration loading and access for MOC Weaver.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except Exception as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "vault": {
                "root": "vault",
                "document_extension": ".md",
                "subfolders": ["Notes", "Resources", "Prompts"]
            },
            "sections": {
                "frontmatter_delimiter": "---",
                "header_marker": "## ",
                "canonical_order": list(DEFAULT_CANONICAL_ORDER),
                "container_section": "MOCs"
            },
            "note_types": {
                "moc": {"emoji": "🔵", "section": "MOCs", "folder": ""},
                "note": {"emoji": "📝", "section": "Notes", "folder": "Notes"},
                "resource": {"emoji": "📁", "section": "Resources", "folder": "Resources"},
                "prompt": {"emoji": "🤖", "section": "Prompts", "folder": "Prompts"}
            },
            "index": {
                "path": ":memory:"
            },
            "styles": {
                "saturation_range": [60, 90],
                "lightness_range": [45, 65],
                "dark_boost": 10
            },
            "validation": {
                "max_name_length": 255
            },
            "paths": {
                "log_file": "mocweaver.log"
            },
            "git": {
                "auto_commit": False
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "vault.root")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("sections.header_marker")  # Returns "## "
            config.get("note_types.note.emoji")   # Returns "📝"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def vault_root(self) -> str:
        """Get the vault root directory."""
        return self.get("vault.root", "vault")

    @property
    def document_extension(self) -> str:
        """Get the document file extension."""
        return self.get("vault.document_extension", ".md")

    @property
    def container_subfolders(self) -> List[str]:
        """Get the sub-groups created inside each container group."""
        return self.get("vault.subfolders", ["Notes", "Resources", "Prompts"])

    @property
    def canonical_order(self) -> List[str]:
        """Get the canonical order of managed sections."""
        return list(self.get("sections.canonical_order", DEFAULT_CANONICAL_ORDER))

    @property
    def container_section(self) -> str:
        """Get the managed section that lists child containers."""
        return self.get("sections.container_section", "MOCs")

    @property
    def section_marker(self) -> str:
        """Get the section header marker."""
        return self.get("sections.header_marker", "## ")

    @property
    def frontmatter_delimiter(self) -> str:
        """Get the frontmatter delimiter line."""
        return self.get("sections.frontmatter_delimiter", "---")

    @property
    def index_path(self) -> str:
        """Get the metadata index database path."""
        return self.get("index.path", ":memory:")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "mocweaver.log")

    @property
    def max_name_length(self) -> int:
        """Get the maximum length for document and group names."""
        return self.get("validation.max_name_length", 255)

    @property
    def auto_commit(self) -> bool:
        """Whether mutations are committed to the vault repository."""
        return bool(self.get("git.auto_commit", False))

    @property
    def note_types(self) -> Dict[str, Any]:
        """Get note type definitions."""
        return self.get("note_types", self._get_default_config()["note_types"])

    def get_note_type(self, note_type: str) -> Optional[Dict[str, Any]]:
        """
        Get a specific note type definition by name.

        Args:
            note_type: Name of the note type (moc, note, resource, prompt)

        Returns:
            Note type dictionary or None if not found
        """
        return self.note_types.get(note_type)


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
