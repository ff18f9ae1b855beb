"""
Hierarchy graph for MOC Weaver.

Containers form a hierarchy twice over: physically, through nested storage
groups, and logically, through entries in their "MOCs" sections. Every
mutation here keeps both views in step and walks a fixed state sequence:

    IDLE -> VALIDATING -> RELOCATING -> RELINKING -> DONE
                       -> REJECTED

Validation never touches storage. Once relocation starts nothing is rolled
back; a failure reports which step it happened in.
"""

import logging
import random
from collections import deque
from typing import List, Optional, Set, Union

import yaml

from ..config import config
from ..errors import CycleError, PartialMutationError, StorageError, StructureError, ValidationError
from ..index import MetadataIndex, document_basename
from ..maintenance import VaultMaintenance
from ..models import BatchReport, Container, MutationReport, MutationState, NoteType, StorageHandle
from ..sections import SectionGrammar, add_entry, append_entry_under, has_entry, prune_references
from ..storage import StorageBackend, is_within, join_path, parent_path, path_depth, path_name
from ..styles import generate_random_color, get_random_emoji
from ..validation import ensure_moc_suffix, prompt_base_name, sanitize_input, split_prompt_iteration
from .tree import StorageTree


NO_CHANGES = "no changes needed"


class HierarchyGraph:
    """
    Reads and mutates the container hierarchy of a vault.
    """

    def __init__(self, storage: StorageBackend, index: MetadataIndex,
                 grammar: Optional[SectionGrammar] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the hierarchy graph.

        Args:
            storage: Backend holding the documents
            index: Metadata index kept in sync with every write
            grammar: Section markers (defaults to configuration)
            rng: Random source for new container emojis and colours
        """
        self.storage = storage
        self.index = index
        self.grammar = grammar or SectionGrammar.from_config()
        self.rng = rng or random.Random()
        self.maintenance = VaultMaintenance(storage, index, self.grammar)

    # Lookups

    def container(self, path: str) -> Container:
        return Container(
            path=path,
            name=document_basename(path),
            group_path=parent_path(path),
            attributes=self.index.get_typed_attributes(path)
        )

    def list_all(self) -> List[Container]:
        """Every container known to the index, sorted by path."""
        return [self.container(path) for path in self.index.container_paths()]

    def locate(self, identifier: str) -> str:
        """
        Turn a document path or basename into an indexed document path.

        Raises:
            ValidationError: If nothing matches
        """
        if self.index.has_document(identifier):
            return identifier
        resolved = self.index.resolve(identifier)
        if resolved is None:
            raise ValidationError(f"Unknown document: {identifier}", identifier)
        return resolved

    def _require_container(self, path: str) -> Container:
        if not self.index.has_document(path):
            raise ValidationError(f"Unknown document: {path}", path)
        if not self.index.is_container(path):
            raise ValidationError(f"Not a MOC: {path}", path)
        return self.container(path)

    def _require_own_group(self, container: Container) -> None:
        if not container.group_path:
            raise StructureError(
                f"MOC {container.path} sits at the vault root and has no folder of its own",
                container.path
            )

    def child_containers(self, path: str) -> List[str]:
        """Containers that `path` lists as entries in its managed sections."""
        children: List[str] = []
        for target in self.index.get_links(path, entries_only=True):
            resolved = self.index.resolve(target, path)
            if resolved and resolved != path and self.index.is_container(resolved):
                if resolved not in children:
                    children.append(resolved)
        return children

    def referencing_containers(self, container: Container) -> List[str]:
        """Containers, other than itself, that list `container` as an entry."""
        return [
            path for path in self.index.backlinks(container.name, entries_only=True)
            if path != container.path and self.index.is_container(path)
            and self.index.resolve(container.name, path) == container.path
        ]

    def detect_cycle(self, node: str, proposed_parent: str) -> bool:
        """
        True when `proposed_parent` is reachable from `node`.

        Walks forward references between containers breadth first. A parent
        reachable from the node is one of its descendants, so attaching the
        node beneath it would close a loop.
        """
        if node == proposed_parent:
            return True
        visited: Set[str] = {node}
        queue = deque([node])
        while queue:
            current = queue.popleft()
            for child in self.child_containers(current):
                if child == proposed_parent:
                    return True
                if child not in visited:
                    visited.add(child)
                    queue.append(child)
        return False

    def available_parents(self, node: str) -> List[Container]:
        """Containers `node` could be moved under without creating a cycle."""
        source = self._require_container(node)
        return [
            candidate for candidate in self.list_all()
            if candidate.path != source.path
            and not (source.group_path and is_within(candidate.group_path, source.group_path))
            and not self.detect_cycle(source.path, candidate.path)
        ]

    def find_owning_container(self, path: str) -> Optional[Container]:
        """
        Nearest container in the groups above a document.

        The search climbs at most as many groups as the path is deep. A
        container never owns itself.
        """
        group = parent_path(path)
        for _ in range(path_depth(path)):
            candidates = [candidate for candidate in self.index.containers_in_group(group)
                          if candidate != path]
            if candidates:
                # Prefer the container named after its group
                named = [candidate for candidate in candidates
                         if document_basename(candidate) == path_name(group)]
                return self.container((named or candidates)[0])
            if not group:
                break
            group = parent_path(group)
        return None

    # Mutations

    def _transition(self, report: MutationReport, state: MutationState) -> None:
        logging.debug(f"{report.node}: {report.state.value} -> {state.value}")
        report.state = state

    def _validate_move(self, report: MutationReport, node: str,
                       new_parent: Optional[str]) -> Container:
        self._transition(report, MutationState.VALIDATING)
        try:
            source = self._require_container(node)
            self._require_own_group(source)
            if new_parent is not None:
                parent = self._require_container(new_parent)
                if parent.path == source.path:
                    raise ValidationError(f"Cannot move {node} under itself", node)
                if (is_within(parent.group_path, source.group_path)
                        or self.detect_cycle(source.path, parent.path)):
                    raise CycleError(source.path, parent.path)
            return source
        except (ValidationError, StructureError, CycleError) as e:
            self._transition(report, MutationState.REJECTED)
            report.message = e.message
            logging.warning(f"Rejected mutation of {node}: {e.message}")
            raise

    async def _write_document(self, path: str, text: str) -> None:
        await self.storage.write(path, text)
        self.index.index_document(path, text)

    async def _unlink(self, source: Container, keep: Optional[str] = None) -> List[str]:
        """Remove the source's entries from every referencing container except `keep`."""
        unlinked: List[str] = []
        for path in self.referencing_containers(source):
            if path == keep:
                continue
            try:
                result = prune_references(await self.storage.read(path), source.name, self.grammar)
                if result.changed:
                    await self._write_document(path, result.text)
                    unlinked.append(path)
            except StorageError as e:
                raise e.with_step("unlink") from e
        return unlinked

    async def _relocate(self, source: Container, new_group: str) -> None:
        try:
            await self.storage.rename(source.group_path, new_group)
        except StorageError as e:
            raise e.with_step("relocate") from e
        self.index.relocate(source.group_path, new_group)

    async def move_under_parent(self, node: str, new_parent: str) -> MutationReport:
        """
        Re-parent a container beneath another container.

        Args:
            node: Path of the container to move
            new_parent: Path of the container that becomes its parent

        Returns:
            MutationReport describing what changed

        Raises:
            ValidationError: Unknown node or parent, or a self move
            StructureError: The node has no folder of its own
            CycleError: The parent is a descendant of the node
            StorageError: Unlink or relocation failed (see `step`)
            PartialMutationError: The group moved but the parent could not be linked
        """
        report = MutationReport(node=node, new_parent=new_parent)
        source = self._validate_move(report, node, new_parent)
        parent = self.container(new_parent)
        new_group = join_path(parent.group_path, path_name(source.group_path))
        report.old_group = source.group_path
        report.new_group = new_group

        container_section = config.container_section
        parent_text = await self.storage.read(parent.path)
        already_linked = has_entry(parent_text, container_section, source.name, self.grammar)
        others = [path for path in self.referencing_containers(source) if path != parent.path]
        if new_group == source.group_path and already_linked and not others:
            self._transition(report, MutationState.DONE)
            report.message = NO_CHANGES
            logging.info(f"Move of {source.name} under {parent.name}: {NO_CHANGES}")
            return report

        self._transition(report, MutationState.RELOCATING)
        report.unlinked_from = await self._unlink(source, keep=parent.path)
        relocated = new_group != source.group_path
        if relocated:
            await self._relocate(source, new_group)
        moved_path = join_path(new_group, path_name(source.path))

        self._transition(report, MutationState.RELINKING)
        try:
            parent_text = await self.storage.read(parent.path)
            updated = add_entry(parent_text, container_section, source.name, self.grammar)
            linked = updated != parent_text
            if linked:
                await self._write_document(parent.path, updated)
        except StorageError as e:
            raise PartialMutationError(
                f"Moved {source.name} to {new_group} but could not link it from "
                f"{parent.path}: {e.message}",
                path=parent.path,
                moved_to=new_group,
                operation=e.operation
            ) from e

        self._transition(report, MutationState.DONE)
        report.node = moved_path
        report.changed = bool(report.unlinked_from) or relocated or linked
        report.message = f"Moved {source.name} under {parent.name}" if report.changed else NO_CHANGES
        logging.info(report.message)
        return report

    async def promote_to_root(self, node: str) -> MutationReport:
        """
        Detach a container from its parents and move its group to the vault root.

        Raises:
            ValidationError: Unknown node
            StructureError: The node has no folder of its own
            StorageError: Unlink or relocation failed (see `step`)
        """
        report = MutationReport(node=node)
        source = self._validate_move(report, node, None)
        new_group = path_name(source.group_path)
        report.old_group = source.group_path
        report.new_group = new_group

        if new_group == source.group_path and not self.referencing_containers(source):
            self._transition(report, MutationState.DONE)
            report.message = NO_CHANGES
            logging.info(f"Promotion of {source.name}: {NO_CHANGES}")
            return report

        self._transition(report, MutationState.RELOCATING)
        report.unlinked_from = await self._unlink(source)
        relocated = new_group != source.group_path
        if relocated:
            await self._relocate(source, new_group)

        self._transition(report, MutationState.DONE)
        report.node = join_path(new_group, path_name(source.path))
        report.changed = bool(report.unlinked_from) or relocated
        report.message = f"Promoted {source.name} to a root MOC" if report.changed else NO_CHANGES
        logging.info(report.message)
        return report

    async def create_parent_and_move(self, node: str, parent_name: str) -> MutationReport:
        """
        Create a new root MOC and move `node` beneath it.

        The node is checked before anything is created, so a node that
        cannot move leaves the vault untouched.
        """
        source = self._require_container(node)
        self._require_own_group(source)
        parent = await self.create_container(parent_name)
        return await self.move_under_parent(source.path, parent.path)

    # Creation and deletion

    def _frontmatter(self, data: dict) -> str:
        delimiter = self.grammar.frontmatter_delimiter
        body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return f"{delimiter}\n{body}{delimiter}\n"

    async def _create_document(self, path: str, text: str) -> StorageHandle:
        handle = await self.storage.create(path, text)
        self.index.index_document(handle.path, text)
        return handle

    async def _link(self, parent: Container, section: str, target: str) -> None:
        text = await self.storage.read(parent.path)
        updated = add_entry(text, section, target, self.grammar)
        if updated != text:
            await self._write_document(parent.path, updated)

    async def create_container(self, name: str, parent: Optional[str] = None) -> Container:
        """
        Create a new MOC with its folder structure.

        Args:
            name: Display name; " MOC" is appended when missing
            parent: Path of the parent container, None for a root MOC

        Returns:
            The created container
        """
        moc_name = ensure_moc_suffix(sanitize_input(name, "MOC name"))
        parent_container = self._require_container(parent) if parent else None

        folder_name = f"{get_random_emoji(self.rng)} {moc_name}"
        group = join_path(parent_container.group_path if parent_container else "", folder_name)
        if await self.storage.exists(group):
            raise StorageError(f"Folder already exists: {group}", "create", group)

        await self.storage.create_group(group)
        for subfolder in config.container_subfolders:
            await self.storage.create_group(join_path(group, subfolder))

        data = {"tags": ["moc"], "note-type": NoteType.MOC.value}
        if parent_container is None:
            data["root-moc-color"] = True
        data.update(generate_random_color(self.rng).to_frontmatter())
        handle = await self._create_document(
            join_path(group, f"{folder_name}{config.document_extension}"),
            self._frontmatter(data)
        )

        if parent_container is not None:
            await self._link(parent_container, config.container_section, handle.basename)
        logging.info(f"Created MOC: {handle.path}")
        return self.container(handle.path)

    async def create_item(self, parent: str, name: str,
                          note_type: Union[NoteType, str]) -> StorageHandle:
        """
        Create a note, resource or prompt inside a container and link it.

        Prompts get a hub document listing their iterations plus a first
        iteration ("v1") in a sub-folder named after the prompt.
        """
        note_type = NoteType(note_type)
        if note_type == NoteType.MOC:
            container = await self.create_container(name, parent)
            return StorageHandle(path=container.path, name=path_name(container.path))

        clean_name = sanitize_input(name, f"{note_type.value} name")
        owner = self._require_container(parent)
        settings = config.get_note_type(note_type.value) or {}
        emoji = settings.get("emoji", "")
        folder = join_path(owner.group_path, settings.get("folder", ""))
        extension = config.document_extension
        frontmatter = self._frontmatter({"note-type": note_type.value})

        await self.storage.create_group(folder)
        if note_type == NoteType.PROMPT:
            iteration = f"{emoji} {clean_name} v1"
            hub_text = (
                f"{frontmatter}# {clean_name}\n\n"
                f"{self.grammar.header_marker}Iterations\n\n- [[{iteration}]]\n\n"
                f"{self.grammar.header_marker}LLM Links\n\n```llm-links\n\n```\n"
            )
            handle = await self._create_document(
                join_path(folder, f"{emoji} {clean_name}{extension}"), hub_text
            )
            await self._create_document(
                join_path(folder, clean_name, f"{iteration}{extension}"), frontmatter
            )
        else:
            handle = await self._create_document(
                join_path(folder, f"{emoji} {clean_name}{extension}"), frontmatter
            )

        await self._link(owner, settings.get("section", note_type.value), handle.basename)
        logging.info(f"Created {note_type.value}: {handle.path}")
        return handle

    async def duplicate_prompt_iteration(self, path: str,
                                         description: Optional[str] = None) -> StorageHandle:
        """
        Copy a prompt iteration to the next free version and list it in the hub.

        Args:
            path: Path of an iteration document such as ".../🤖 Summarise v2.md"
            description: Optional suffix, giving "🤖 Summarise v3 - description"

        Returns:
            Handle of the new iteration

        Raises:
            ValidationError: If `path` is not a prompt iteration
            StructureError: If the hub has no "## Iterations" heading
        """
        parsed = split_prompt_iteration(document_basename(path))
        if (not self.index.has_document(path) or parsed is None
                or self.index.get_typed_attributes(path).note_type != NoteType.PROMPT):
            raise ValidationError(f"Not a prompt iteration: {path}", path)
        base, _ = parsed

        folder = parent_path(path)
        extension = config.document_extension
        latest = 0
        for handle in await self.storage.list_children(folder):
            if handle.is_group or not handle.name.endswith(extension):
                continue
            sibling = split_prompt_iteration(handle.basename)
            if sibling and sibling[0] == base:
                latest = max(latest, sibling[1])

        emoji = (config.get_note_type(NoteType.PROMPT.value) or {}).get("emoji", "")
        name = f"{emoji} {base} v{latest + 1}".strip()
        if description:
            name = f"{name} - {sanitize_input(description, 'iteration description')}"
        handle = await self._create_document(
            join_path(folder, f"{name}{extension}"), await self.storage.read(path)
        )

        hub = join_path(parent_path(folder), f"{emoji} {base}{extension}".strip())
        if self.index.has_document(hub):
            text = await self.storage.read(hub)
            header = self.grammar.header_for("Iterations")
            try:
                updated = append_entry_under(text, header, handle.basename, self.grammar)
            except StructureError as e:
                raise StructureError(f"{hub}: {e.message}", hub) from e
            await self._write_document(hub, updated)
        else:
            logging.warning(f"No prompt hub at {hub}; {handle.basename} is not listed anywhere")
        logging.info(f"Created iteration: {handle.path}")
        return handle

    async def delete_container(self, node: str) -> BatchReport:
        """
        Delete a container's folder with everything in it, then remove
        references to every deleted document from the rest of the vault.
        """
        source = self._require_container(node)
        self._require_own_group(source)

        tree = await StorageTree.build(self.storage, source.group_path)
        removed = [handle.basename for handle in tree.documents(source.group_path)]
        await self.storage.delete(source.group_path)
        self.index.remove_group(source.group_path)
        logging.info(f"Deleted {source.group_path} ({len(removed)} documents)")

        if not removed:
            return BatchReport(operation=f"Deletion of {source.name}")
        report = await self.maintenance.cleanup_broken_links(*removed)
        report.operation = f"Deletion of {source.name}"
        return report

    async def delete_item(self, path: str) -> BatchReport:
        """
        Delete a note, resource or prompt, then remove references to it.

        Deleting a prompt hub also deletes the folder holding its iterations.
        """
        if not self.index.has_document(path):
            raise ValidationError(f"Unknown document: {path}", path)
        attributes = self.index.get_typed_attributes(path)
        if attributes.marker or attributes.note_type not in (NoteType.NOTE, NoteType.RESOURCE, NoteType.PROMPT):
            raise ValidationError(f"Not a note, resource or prompt: {path}", path)

        name = document_basename(path)
        removed = [name]
        await self.storage.delete(path)
        self.index.remove_document(path)

        if attributes.note_type == NoteType.PROMPT and split_prompt_iteration(name) is None:
            iterations = join_path(parent_path(path), prompt_base_name(name))
            if await self.storage.exists(iterations):
                tree = await StorageTree.build(self.storage, iterations)
                removed.extend(handle.basename for handle in tree.documents(iterations))
                await self.storage.delete(iterations)
                self.index.remove_group(iterations)
        logging.info(f"Deleted {path} ({len(removed)} documents)")

        report = await self.maintenance.cleanup_broken_links(*removed)
        report.operation = f"Deletion of {name}"
        return report
