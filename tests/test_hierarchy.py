"""
Tests for the hierarchy graph: cycle detection, re-parenting, promotion,
creation and deletion of containers.
"""

import random
import unittest
from unittest.mock import patch

from mocweaver.errors import CycleError, PartialMutationError, StorageError, StructureError, ValidationError
from mocweaver.hierarchy import HierarchyGraph, NO_CHANGES
from mocweaver.index import MetadataIndex
from mocweaver.models import MutationState, NoteType
from mocweaver.sections import SectionGrammar
from mocweaver.storage import InMemoryStorage


MOC_FRONTMATTER = "---\ntags:\n  - moc\nnote-type: moc\n---\n"

A = "A MOC/A MOC.md"
B = "A MOC/B MOC/B MOC.md"
C = "A MOC/B MOC/C MOC/C MOC.md"
D = "D MOC/D MOC.md"
NOTE = "A MOC/Notes/📝 Idea.md"


def build_vault():
    """A references B references C, nested the same way on disk; D stands alone."""
    return InMemoryStorage({
        A: MOC_FRONTMATTER + "## MOCs\n\n- [[B MOC]]\n\n## Notes\n\n- [[📝 Idea]]\n",
        B: MOC_FRONTMATTER + "## MOCs\n\n- [[C MOC]]\n",
        C: MOC_FRONTMATTER,
        D: MOC_FRONTMATTER,
        NOTE: "---\nnote-type: note\n---\nBack to [[A MOC]]\n",
    })


class HierarchyTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared fixture: indexed in-memory vault."""

    async def asyncSetUp(self):
        self.storage = build_vault()
        self.index = MetadataIndex(":memory:")
        self.index.connect()
        await self.index.refresh(self.storage)
        self.graph = HierarchyGraph(self.storage, self.index, SectionGrammar(), random.Random(7))

    async def asyncTearDown(self):
        self.index.disconnect()


class TestHierarchyQueries(HierarchyTestCase):
    """Test read-only hierarchy queries."""

    async def test_list_all(self):
        containers = self.graph.list_all()

        self.assertEqual([container.path for container in containers], [A, B, C, D])
        self.assertEqual(containers[0].name, "A MOC")
        self.assertEqual(containers[0].group_path, "A MOC")
        self.assertTrue(containers[0].is_root)
        self.assertFalse(containers[1].is_root)

    async def test_detect_cycle(self):
        # Re-parenting A under its descendant C closes a loop
        self.assertTrue(self.graph.detect_cycle(A, C))
        self.assertFalse(self.graph.detect_cycle(C, A))
        self.assertFalse(self.graph.detect_cycle(A, D))
        self.assertFalse(self.graph.detect_cycle(B, A))
        self.assertTrue(self.graph.detect_cycle(B, B))

    async def test_prose_mentions_are_not_children(self):
        text = MOC_FRONTMATTER + "See also [[C MOC]] for context.\n"
        await self.storage.write(D, text)
        self.index.index_document(D, text)

        self.assertEqual(self.graph.child_containers(D), [])
        self.assertFalse(self.graph.detect_cycle(D, C))

        report = await self.graph.move_under_parent(D, C)
        self.assertTrue(report.changed)
        self.assertTrue(await self.storage.exists("A MOC/B MOC/C MOC/D MOC/D MOC.md"))

    async def test_find_owning_container(self):
        self.assertEqual(self.graph.find_owning_container(NOTE).path, A)
        self.assertEqual(self.graph.find_owning_container(C).path, B)
        self.assertEqual(self.graph.find_owning_container(B).path, A)
        self.assertIsNone(self.graph.find_owning_container(D))

    async def test_available_parents(self):
        parents = [container.path for container in self.graph.available_parents(B)]
        self.assertEqual(parents, [A, D])

    async def test_locate(self):
        self.assertEqual(self.graph.locate("C MOC"), C)
        self.assertEqual(self.graph.locate(D), D)
        with self.assertRaises(ValidationError):
            self.graph.locate("Nope")


class TestMoveUnderParent(HierarchyTestCase):
    """Test moving containers beneath new parents."""

    async def test_move_relocates_and_relinks(self):
        report = await self.graph.move_under_parent(C, D)

        self.assertTrue(report.changed)
        self.assertEqual(report.state, MutationState.DONE)
        self.assertEqual(report.node, "D MOC/C MOC/C MOC.md")
        self.assertEqual(report.old_group, "A MOC/B MOC/C MOC")
        self.assertEqual(report.new_group, "D MOC/C MOC")
        self.assertEqual(report.unlinked_from, [B])

        self.assertFalse(await self.storage.exists("A MOC/B MOC/C MOC"))
        self.assertNotIn("[[C MOC]]", await self.storage.read(B))
        self.assertTrue((await self.storage.read(D)).endswith("## MOCs\n\n- [[C MOC]]\n"))

        self.assertTrue(self.index.is_container("D MOC/C MOC/C MOC.md"))
        self.assertEqual(self.index.get_links(D), ["C MOC"])
        self.assertEqual(self.index.get_links(B), [])

    async def test_move_rejects_reference_cycle(self):
        before = self.storage.snapshot()

        with self.assertRaises(CycleError):
            await self.graph.move_under_parent(A, C)
        with self.assertRaises(CycleError):
            await self.graph.move_under_parent(A, B)

        self.assertEqual(self.storage.snapshot(), before)

    async def test_move_rejects_physical_nesting(self):
        # D references nothing, but its group would end up inside A's
        await self.storage.rename("D MOC", "A MOC/Notes/D MOC")
        await self.index.refresh(self.storage)

        with self.assertRaises(CycleError):
            await self.graph.move_under_parent(A, "A MOC/Notes/D MOC/D MOC.md")

    async def test_move_validation(self):
        with self.assertRaises(ValidationError):
            await self.graph.move_under_parent("missing.md", A)
        with self.assertRaises(ValidationError):
            await self.graph.move_under_parent(NOTE, A)
        with self.assertRaises(ValidationError):
            await self.graph.move_under_parent(B, NOTE)
        with self.assertRaises(ValidationError):
            await self.graph.move_under_parent(B, B)

    async def test_move_rejects_container_without_folder(self):
        await self.storage.create("Loose MOC.md", MOC_FRONTMATTER)
        self.index.index_document("Loose MOC.md", MOC_FRONTMATTER)

        with self.assertRaises(StructureError):
            await self.graph.move_under_parent("Loose MOC.md", D)

    async def test_move_without_changes(self):
        before = self.storage.snapshot()
        report = await self.graph.move_under_parent(B, A)

        self.assertFalse(report.changed)
        self.assertEqual(report.message, NO_CHANGES)
        self.assertEqual(report.state, MutationState.DONE)
        self.assertEqual(self.storage.snapshot(), before)

    async def test_move_ignores_prose_backlinks(self):
        text = MOC_FRONTMATTER + "Compare with [[B MOC]].\n"
        await self.storage.write(D, text)
        self.index.index_document(D, text)
        before = self.storage.snapshot()

        report = await self.graph.move_under_parent(B, A)

        self.assertFalse(report.changed)
        self.assertEqual(report.message, NO_CHANGES)
        self.assertEqual(report.unlinked_from, [])
        self.assertEqual(self.storage.snapshot(), before)

    async def test_cycle_error_names_paths(self):
        with self.assertRaises(CycleError) as ctx:
            await self.graph.move_under_parent(A, C)

        self.assertEqual(ctx.exception.source, A)
        self.assertEqual(ctx.exception.target, C)
        self.assertIn(A, ctx.exception.message)
        self.assertIn(C, ctx.exception.message)

    async def test_unlink_failure_leaves_group_in_place(self):
        original_write = self.storage.write

        async def failing_write(path, text):
            if path == B:
                raise StorageError(f"Failed to write file: {path}", "write", path)
            await original_write(path, text)

        with patch.object(self.storage, "write", new=failing_write):
            with self.assertRaises(StorageError) as ctx:
                await self.graph.move_under_parent(C, D)

        self.assertNotIsInstance(ctx.exception, PartialMutationError)
        self.assertEqual(ctx.exception.step, "unlink")
        self.assertEqual(ctx.exception.path, B)
        self.assertTrue(await self.storage.exists(C))
        self.assertFalse(await self.storage.exists("D MOC/C MOC"))
        self.assertIn("[[C MOC]]", await self.storage.read(B))
        self.assertNotIn("[[C MOC]]", await self.storage.read(D))

    async def test_relink_failure_is_partial(self):
        original_write = self.storage.write

        async def failing_write(path, text):
            if path == D:
                raise StorageError(f"Failed to write file: {path}", "write", path)
            await original_write(path, text)

        with patch.object(self.storage, "write", new=failing_write):
            with self.assertRaises(PartialMutationError) as ctx:
                await self.graph.move_under_parent(C, D)

        self.assertEqual(ctx.exception.step, "relink")
        self.assertEqual(ctx.exception.moved_to, "D MOC/C MOC")
        self.assertEqual(ctx.exception.path, D)
        # The group stays where it was moved; nothing is rolled back
        self.assertTrue(await self.storage.exists("D MOC/C MOC/C MOC.md"))
        self.assertNotIn("[[C MOC]]", await self.storage.read(D))

    async def test_relocation_failure_stops_before_relink(self):
        async def failing_rename(old_path, new_path):
            raise StorageError(f"Cannot rename {old_path}", "rename", old_path)

        with patch.object(self.storage, "rename", new=failing_rename):
            with self.assertRaises(StorageError) as ctx:
                await self.graph.move_under_parent(C, D)

        self.assertNotIsInstance(ctx.exception, PartialMutationError)
        self.assertEqual(ctx.exception.step, "relocate")
        self.assertNotIn("[[C MOC]]", await self.storage.read(D))
        self.assertTrue(await self.storage.exists(C))


class TestPromoteToRoot(HierarchyTestCase):
    """Test promoting sub-containers to the vault root."""

    async def test_promote(self):
        report = await self.graph.promote_to_root(B)

        self.assertTrue(report.changed)
        self.assertEqual(report.node, "B MOC/B MOC.md")
        self.assertEqual(report.unlinked_from, [A])
        self.assertTrue(await self.storage.exists("B MOC/C MOC/C MOC.md"))
        self.assertNotIn("[[B MOC]]", await self.storage.read(A))
        # A keeps its other sections
        self.assertIn("- [[📝 Idea]]", await self.storage.read(A))
        self.assertEqual(
            [container.path for container in self.graph.list_all()],
            [A, "B MOC/B MOC.md", "B MOC/C MOC/C MOC.md", D]
        )

    async def test_promote_root_without_references(self):
        report = await self.graph.promote_to_root(D)

        self.assertFalse(report.changed)
        self.assertEqual(report.message, NO_CHANGES)

    async def test_promote_unknown(self):
        with self.assertRaises(ValidationError):
            await self.graph.promote_to_root("missing.md")


class TestCreateParentAndMove(HierarchyTestCase):
    """Test moving a container under a newly created parent."""

    async def test_create_parent_and_move(self):
        report = await self.graph.create_parent_and_move(D, "Optics")

        self.assertTrue(report.changed)
        new_group = report.new_group.split("/")[0]
        self.assertTrue(new_group.endswith(" Optics MOC"))
        self.assertEqual(report.node, f"{new_group}/D MOC/D MOC.md")
        self.assertFalse(await self.storage.exists("D MOC"))
        self.assertIn("## MOCs\n\n- [[D MOC]]", await self.storage.read(f"{new_group}/{new_group}.md"))
        self.assertEqual(self.graph.find_owning_container(report.node).name, new_group)

    async def test_rejected_node_creates_nothing(self):
        await self.storage.create("Loose MOC.md", MOC_FRONTMATTER)
        self.index.index_document("Loose MOC.md", MOC_FRONTMATTER)
        before = self.storage.snapshot()

        with self.assertRaises(ValidationError):
            await self.graph.create_parent_and_move(NOTE, "Optics")
        with self.assertRaises(StructureError):
            await self.graph.create_parent_and_move("Loose MOC.md", "Optics")

        self.assertEqual(self.storage.snapshot(), before)
        self.assertEqual(len(self.graph.list_all()), 5)


class TestCreateAndDelete(HierarchyTestCase):
    """Test creating containers and items, and deleting containers."""

    async def test_create_root_container(self):
        container = await self.graph.create_container("Physics")

        self.assertTrue(container.name.endswith(" Physics MOC"))
        self.assertTrue(container.is_root)
        self.assertTrue(container.attributes.marker)
        self.assertIsNotNone(container.attributes.light_color)
        self.assertIsNotNone(container.attributes.dark_color)
        for subfolder in ("Notes", "Resources", "Prompts"):
            self.assertTrue(await self.storage.exists(f"{container.group_path}/{subfolder}"))
        self.assertIn("root-moc-color: true", await self.storage.read(container.path))

    async def test_create_sub_container_links_parent(self):
        container = await self.graph.create_container("Optics MOC", parent=D)

        self.assertEqual(container.group_path.split("/")[0], "D MOC")
        self.assertTrue(container.name.endswith(" Optics MOC"))
        self.assertFalse(container.name.endswith("MOC MOC"))
        self.assertIn(f"## MOCs\n\n- [[{container.name}]]", await self.storage.read(D))
        self.assertEqual(self.graph.find_owning_container(container.path).path, D)

    async def test_create_container_rejects_bad_names(self):
        with self.assertRaises(ValidationError):
            await self.graph.create_container("CON")
        with self.assertRaises(ValidationError):
            await self.graph.create_container("   ")
        with self.assertRaises(ValidationError):
            await self.graph.create_container("Valid", parent=NOTE)

    async def test_create_note_and_prompt(self):
        note = await self.graph.create_item(D, "Light", NoteType.NOTE)
        prompt = await self.graph.create_item(D, "Summarise", "prompt")

        self.assertEqual(note.path, "D MOC/Notes/📝 Light.md")
        self.assertEqual(prompt.path, "D MOC/Prompts/🤖 Summarise.md")
        self.assertTrue(await self.storage.exists("D MOC/Prompts/Summarise/🤖 Summarise v1.md"))
        self.assertIn("## Iterations\n\n- [[🤖 Summarise v1]]", await self.storage.read(prompt.path))

        parent_text = await self.storage.read(D)
        self.assertIn("## Notes\n\n- [[📝 Light]]", parent_text)
        self.assertIn("## Prompts\n\n- [[🤖 Summarise]]", parent_text)
        self.assertLess(parent_text.index("## Notes"), parent_text.index("## Prompts"))
        self.assertEqual(self.index.get_typed_attributes(note.path).note_type, NoteType.NOTE)

    async def test_delete_container_cleans_links(self):
        report = await self.graph.delete_container(B)

        self.assertEqual(report.succeeded, [A])
        self.assertFalse(await self.storage.exists("A MOC/B MOC"))
        self.assertNotIn("[[B MOC]]", await self.storage.read(A))
        self.assertEqual([container.path for container in self.graph.list_all()], [A, D])

    async def test_duplicate_prompt_iteration(self):
        hub = await self.graph.create_item(D, "Summarise", "prompt")
        first = "D MOC/Prompts/Summarise/🤖 Summarise v1.md"
        await self.storage.write(first, "---\nnote-type: prompt\n---\nSummarise the text.\n")
        self.index.index_document(first, await self.storage.read(first))

        second = await self.graph.duplicate_prompt_iteration(first)
        third = await self.graph.duplicate_prompt_iteration(first, "shorter")

        self.assertEqual(second.path, "D MOC/Prompts/Summarise/🤖 Summarise v2.md")
        self.assertEqual(third.path, "D MOC/Prompts/Summarise/🤖 Summarise v3 - shorter.md")
        self.assertEqual(await self.storage.read(second.path), await self.storage.read(first))
        self.assertIn(
            "## Iterations\n\n- [[🤖 Summarise v1]]\n- [[🤖 Summarise v2]]\n- [[🤖 Summarise v3 - shorter]]\n\n## LLM Links",
            await self.storage.read(hub.path)
        )
        self.assertEqual(self.index.get_typed_attributes(third.path).note_type, NoteType.PROMPT)

    async def test_duplicate_rejects_other_documents(self):
        hub = await self.graph.create_item(D, "Summarise", "prompt")

        with self.assertRaises(ValidationError):
            await self.graph.duplicate_prompt_iteration(hub.path)
        with self.assertRaises(ValidationError):
            await self.graph.duplicate_prompt_iteration(NOTE)
        with self.assertRaises(ValidationError):
            await self.graph.duplicate_prompt_iteration("D MOC/Prompts/Missing v1.md")

    async def test_delete_note_cleans_links(self):
        report = await self.graph.delete_item(NOTE)

        self.assertEqual(report.operation, "Deletion of 📝 Idea")
        self.assertEqual(report.succeeded, [A])
        self.assertFalse(await self.storage.exists(NOTE))
        self.assertFalse(self.index.has_document(NOTE))
        self.assertNotIn("[[📝 Idea]]", await self.storage.read(A))
        self.assertIn("- [[B MOC]]", await self.storage.read(A))

    async def test_delete_prompt_hub_removes_iterations(self):
        hub = await self.graph.create_item(D, "Summarise", "prompt")

        await self.graph.delete_item(hub.path)

        self.assertFalse(await self.storage.exists(hub.path))
        self.assertFalse(await self.storage.exists("D MOC/Prompts/Summarise"))
        self.assertEqual(self.index.list_paths("prompt"), [])
        self.assertNotIn("[[🤖 Summarise]]", await self.storage.read(D))

    async def test_delete_item_rejects_containers(self):
        with self.assertRaises(ValidationError):
            await self.graph.delete_item(A)
        with self.assertRaises(ValidationError):
            await self.graph.delete_item("missing.md")


if __name__ == '__main__':
    unittest.main(verbosity=2)
