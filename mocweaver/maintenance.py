"""
Vault-wide maintenance jobs.

Every job walks documents one at a time in storage enumeration order. A
failure on one document is logged and counted, and the job moves on to the
next document.
"""

import logging
from typing import Dict, List, Optional

from .config import config
from .index import MetadataIndex, load_frontmatter
from .models import BatchReport, NoteType, VaultUpdatePlan
from .sections import SectionGrammar, find_frontmatter_end, needs_reorganization, prune_references, reorganize_text
from .sections.document import split_lines
from .storage import StorageBackend, join_path, parent_path


REORDER_SECTIONS = "Reorder managed sections"
ADD_NOTE_TYPE = "Add note-type: moc"


class VaultMaintenance:
    """
    Bulk operations over every document of a vault.
    """

    def __init__(self, storage: StorageBackend, index: MetadataIndex,
                 grammar: Optional[SectionGrammar] = None):
        self.storage = storage
        self.index = index
        self.grammar = grammar or SectionGrammar.from_config()

    async def _documents(self) -> List[str]:
        extension = config.document_extension
        return [handle.path for handle in await self.storage.walk()
                if handle.name.endswith(extension)]

    async def cleanup_broken_links(self, *identifiers: str) -> BatchReport:
        """
        Remove entries referencing any of `identifiers` from every document.

        Args:
            identifiers: Basenames of documents that no longer exist

        Returns:
            BatchReport listing updated, unchanged and failed documents
        """
        report = BatchReport(operation=f"Cleanup of links to {', '.join(identifiers)}")
        for path in await self._documents():
            try:
                original = await self.storage.read(path)
                text = original
                for identifier in identifiers:
                    text = prune_references(text, identifier, self.grammar).text
                if text == original:
                    report.unchanged.append(path)
                    continue
                await self.storage.write(path, text)
                self.index.index_document(path, text)
                report.succeeded.append(path)
            except Exception as e:
                logging.warning(f"Failed to clean links in {path}: {e}")
                report.failed[path] = str(e)

        logging.info(report.summary())
        return report

    async def plan_vault_update(self) -> VaultUpdatePlan:
        """
        Find containers that do not match the current system layout.

        Checks section order, the note-type attribute and the standard
        sub-groups of every container.
        """
        plan = VaultUpdatePlan()
        for path in self.index.container_paths():
            try:
                changes = await self._container_changes(path)
            except Exception as e:
                logging.warning(f"Skipping {path} while planning update: {e}")
                continue
            if changes:
                plan.files_to_update.append(path)
                plan.update_summary[path] = changes

        logging.info(f"Vault update plan: {len(plan.files_to_update)} files, {plan.total_changes} changes")
        return plan

    async def _container_changes(self, path: str) -> List[str]:
        changes: List[str] = []
        text = await self.storage.read(path)
        if needs_reorganization(text, self.grammar):
            changes.append(REORDER_SECTIONS)
        if self.index.get_typed_attributes(path).note_type is None:
            changes.append(ADD_NOTE_TYPE)
        group = parent_path(path)
        if group:
            for subfolder in config.container_subfolders:
                if not await self.storage.exists(join_path(group, subfolder)):
                    changes.append(f"Create missing {subfolder} folder")
        return changes

    async def apply_vault_update(self, plan: VaultUpdatePlan) -> BatchReport:
        """
        Apply a plan produced by `plan_vault_update`.

        Returns:
            BatchReport with one entry per planned document
        """
        report = BatchReport(operation="Vault update")
        for path in plan.files_to_update:
            try:
                await self._apply_changes(path, plan.update_summary.get(path, []))
                report.succeeded.append(path)
            except Exception as e:
                logging.error(f"Failed to update {path}: {e}")
                report.failed[path] = str(e)

        logging.info(report.summary())
        return report

    async def _apply_changes(self, path: str, changes: List[str]) -> None:
        text = await self.storage.read(path)
        updated = text
        if ADD_NOTE_TYPE in changes:
            updated = self._add_note_type(updated, path)
        if REORDER_SECTIONS in changes:
            updated = reorganize_text(updated, self.grammar)
        if updated != text:
            await self.storage.write(path, updated)
            self.index.index_document(path, updated)

        group = parent_path(path)
        for subfolder in config.container_subfolders:
            if f"Create missing {subfolder} folder" in changes:
                await self.storage.create_group(join_path(group, subfolder))

    def _add_note_type(self, text: str, path: str) -> str:
        load_frontmatter(text, path)
        lines = split_lines(text)
        delimiter = self.grammar.frontmatter_delimiter
        end = find_frontmatter_end(lines, delimiter)
        if end == 0:
            return "\n".join([delimiter, f"note-type: {NoteType.MOC.value}", delimiter] + lines)
        lines.insert(end - 1, f"note-type: {NoteType.MOC.value}")
        return "\n".join(lines)

    def find_system_documents(self) -> List[str]:
        """Paths of every document carrying a known note-type, sorted."""
        paths: List[str] = []
        for note_type in NoteType:
            paths.extend(self.index.list_paths(note_type.value))
        return sorted(paths)

    async def cleanup_system_files(self) -> BatchReport:
        """
        Delete every document created by the system.

        User documents without a note-type are never touched.
        """
        report = BatchReport(operation="System file cleanup")
        for path in self.find_system_documents():
            try:
                await self.storage.delete(path)
                self.index.remove_document(path)
                report.succeeded.append(path)
            except Exception as e:
                logging.error(f"Failed to delete {path}: {e}")
                report.failed[path] = str(e)

        logging.info(report.summary())
        return report

    def summarize_plan(self, plan: VaultUpdatePlan) -> Dict[str, int]:
        """Count planned changes by kind."""
        counts: Dict[str, int] = {}
        for changes in plan.update_summary.values():
            for change in changes:
                counts[change] = counts.get(change, 0) + 1
        return counts
