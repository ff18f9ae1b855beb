"""
Metadata index for MOC Weaver.

This module keeps document attributes and forward references in DuckDB so
membership checks ("is this a container?") and link lookups never need a
full parse of the documents involved.
"""

import duckdb
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from ..config import config
from ..errors import FrontmatterError
from ..models import Attributes, BatchReport
from ..sections.document import (
    DocumentModel, SectionGrammar, find_frontmatter_end, link_target, split_lines
)
from ..storage.base import StorageBackend, is_within, parent_path, path_name


LINK_PATTERN = re.compile(r"\[\[([^\[\]]+)\]\]")


def load_frontmatter(text: str, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse the YAML frontmatter of a document.

    Returns:
        The frontmatter mapping, empty when the document has none

    Raises:
        FrontmatterError: If the YAML is malformed or not a mapping
    """
    lines = split_lines(text)
    end = find_frontmatter_end(lines, config.frontmatter_delimiter)
    if end == 0:
        return {}
    try:
        data = yaml.safe_load("\n".join(lines[1:end - 1]))
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid frontmatter in {path or 'document'}: {e}", path) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"Frontmatter in {path or 'document'} is not a mapping", path)
    return data


def parse_frontmatter(text: str, path: Optional[str] = None) -> Dict[str, Any]:
    """Like `load_frontmatter`, but malformed YAML is logged and treated as empty."""
    try:
        return load_frontmatter(text, path)
    except FrontmatterError as e:
        logging.warning(e.message)
        return {}


def extract_links(text: str) -> List[str]:
    """Distinct link targets of a document, in order of first appearance."""
    targets: List[str] = []
    for match in LINK_PATTERN.finditer(text):
        target = link_target(match.group(1))
        if target and target not in targets:
            targets.append(target)
    return targets


def extract_entries(text: str) -> List[str]:
    """Distinct targets of the entries listed in managed sections."""
    targets: List[str] = []
    for section in DocumentModel.parse(text, SectionGrammar.from_config()).sections:
        for entry in section.entries:
            if entry.target and entry.target not in targets:
                targets.append(entry.target)
    return targets


def document_basename(path: str) -> str:
    name = path_name(path)
    extension = config.document_extension
    return name[:-len(extension)] if extension and name.endswith(extension) else name


class MetadataIndex:
    """
    Manages the DuckDB tables describing the documents of a vault.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the metadata index.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for in-process only)
        """
        self.db_path = db_path or config.index_path
        self.connection = None

    def connect(self):
        """Establish connection to the database and create the tables."""
        self.connection = duckdb.connect(self.db_path)
        self.initialize_database()

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                path VARCHAR PRIMARY KEY,
                basename VARCHAR NOT NULL,
                group_path VARCHAR NOT NULL,
                is_container BOOLEAN NOT NULL,
                note_type VARCHAR,
                attributes VARCHAR NOT NULL,
                indexed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS links (
                source_path VARCHAR NOT NULL,
                target VARCHAR NOT NULL,
                is_entry BOOLEAN NOT NULL DEFAULT FALSE,
                PRIMARY KEY (source_path, target)
            )
        """)

    def clear(self):
        """Remove every indexed document."""
        connection = self._require_connection()
        connection.execute("DELETE FROM links")
        connection.execute("DELETE FROM documents")

    def index_document(self, path: str, text: str) -> Attributes:
        """
        Add or refresh a document in the index.

        Args:
            path: Document path
            text: Current document text

        Returns:
            The typed attributes that were indexed
        """
        frontmatter = parse_frontmatter(text, path)
        attributes = Attributes.from_frontmatter(frontmatter)
        self._store(path, frontmatter, attributes, extract_links(text), extract_entries(text))
        return attributes

    def _store(self, path: str, frontmatter: Dict[str, Any], attributes: Attributes,
               links: List[str], entries: List[str]) -> None:
        connection = self._require_connection()
        self.remove_document(path)
        connection.execute("""
            INSERT INTO documents (path, basename, group_path, is_container, note_type, attributes, indexed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, [
            path,
            document_basename(path),
            parent_path(path),
            attributes.marker,
            attributes.note_type.value if attributes.note_type else None,
            json.dumps(frontmatter, default=str),
            datetime.now()
        ])
        for target in links + [target for target in entries if target not in links]:
            connection.execute(
                "INSERT INTO links (source_path, target, is_entry) VALUES (?, ?, ?)",
                [path, target, target in entries]
            )

    def remove_document(self, path: str) -> None:
        """Drop a document and its outgoing links from the index."""
        connection = self._require_connection()
        connection.execute("DELETE FROM links WHERE source_path = ?", [path])
        connection.execute("DELETE FROM documents WHERE path = ?", [path])

    def remove_group(self, group_path: str) -> List[str]:
        """Drop every document beneath a group. Returns the removed paths."""
        removed = [path for path in self.list_paths() if is_within(path, group_path)]
        for path in removed:
            self.remove_document(path)
        return removed

    def relocate(self, old_prefix: str, new_prefix: str) -> int:
        """
        Re-key documents after their storage group moved.

        Args:
            old_prefix: Former group path
            new_prefix: New group path

        Returns:
            Number of documents moved in the index
        """
        connection = self._require_connection()
        moved = 0
        for path in self.list_paths():
            if not is_within(path, old_prefix):
                continue
            new_path = new_prefix.strip("/") + path[len(old_prefix.strip("/")):]
            new_path = new_path.strip("/")
            frontmatter = self.get_attributes(path)
            links = self.get_links(path)
            entries = self.get_links(path, entries_only=True)
            self.remove_document(path)
            self._store(new_path, frontmatter, Attributes.from_frontmatter(frontmatter), links, entries)
            moved += 1
        logging.debug(f"Relocated {moved} indexed documents from {old_prefix} to {new_prefix}")
        return moved

    async def refresh(self, storage: StorageBackend) -> BatchReport:
        """
        Rebuild the index from every document in a storage backend.

        Documents that cannot be read are logged and skipped.
        """
        self.clear()
        report = BatchReport(operation="Index refresh")
        for handle in await storage.walk():
            if not handle.name.endswith(config.document_extension):
                continue
            try:
                self.index_document(handle.path, await storage.read(handle.path))
                report.succeeded.append(handle.path)
            except Exception as e:
                logging.error(f"Failed to index {handle.path}: {e}")
                report.failed[handle.path] = str(e)
        logging.info(report.summary())
        return report

    def get_attributes(self, path: str) -> Dict[str, Any]:
        """Raw frontmatter attributes of a document ({} when not indexed)."""
        connection = self._require_connection()
        result = connection.execute(
            "SELECT attributes FROM documents WHERE path = ?", [path]
        ).fetchone()
        return json.loads(result[0]) if result else {}

    def get_typed_attributes(self, path: str) -> Attributes:
        return Attributes.from_frontmatter(self.get_attributes(path))

    def has_document(self, path: str) -> bool:
        connection = self._require_connection()
        result = connection.execute(
            "SELECT 1 FROM documents WHERE path = ?", [path]
        ).fetchone()
        return result is not None

    def is_container(self, path: str) -> bool:
        connection = self._require_connection()
        result = connection.execute(
            "SELECT is_container FROM documents WHERE path = ?", [path]
        ).fetchone()
        return bool(result and result[0])

    def get_links(self, path: str, entries_only: bool = False) -> List[str]:
        """
        Forward references of a document.

        With `entries_only`, only references listed as section entries are
        returned; mentions in prose are left out.
        """
        connection = self._require_connection()
        clause = " AND is_entry" if entries_only else ""
        results = connection.execute(
            f"SELECT target FROM links WHERE source_path = ?{clause} ORDER BY target", [path]
        ).fetchall()
        return [row[0] for row in results]

    def backlinks(self, target: str, entries_only: bool = False) -> List[str]:
        """Paths of documents referencing an identifier."""
        connection = self._require_connection()
        clause = " AND is_entry" if entries_only else ""
        results = connection.execute(
            f"SELECT source_path FROM links WHERE target = ?{clause} ORDER BY source_path", [target]
        ).fetchall()
        return [row[0] for row in results]

    def resolve(self, identifier: str, source_path: Optional[str] = None) -> Optional[str]:
        """
        Resolve a link identifier to a document path.

        Several documents may share a basename; a document in the same group
        as `source_path` wins, then the shortest path.
        """
        connection = self._require_connection()
        results = connection.execute(
            "SELECT path, group_path FROM documents WHERE basename = ? ORDER BY length(path), path",
            [identifier]
        ).fetchall()
        if not results:
            return None
        if source_path is not None:
            source_group = parent_path(source_path)
            for path, group_path in results:
                if group_path == source_group:
                    return path
        return results[0][0]

    def list_paths(self, note_type: Optional[str] = None) -> List[str]:
        """
        List indexed document paths, optionally filtered by note type.
        """
        connection = self._require_connection()
        if note_type:
            results = connection.execute(
                "SELECT path FROM documents WHERE note_type = ? ORDER BY path", [note_type]
            ).fetchall()
        else:
            results = connection.execute("SELECT path FROM documents ORDER BY path").fetchall()
        return [row[0] for row in results]

    def container_paths(self) -> List[str]:
        """Paths of every container document, sorted."""
        connection = self._require_connection()
        results = connection.execute(
            "SELECT path FROM documents WHERE is_container ORDER BY path"
        ).fetchall()
        return [row[0] for row in results]

    def containers_in_group(self, group_path: str) -> List[str]:
        """Container documents held directly by a group."""
        connection = self._require_connection()
        results = connection.execute(
            "SELECT path FROM documents WHERE is_container AND group_path = ? ORDER BY path",
            [group_path]
        ).fetchall()
        return [row[0] for row in results]
