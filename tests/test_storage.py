"""
Tests for the storage backends and the storage tree.
"""

import asyncio
import unittest

import pytest

from mocweaver.errors import StorageError
from mocweaver.hierarchy import StorageTree
from mocweaver.storage import (
    FileSystemStorage, InMemoryStorage, is_within, join_path, parent_path, path_depth
)


class TestPathHelpers(unittest.TestCase):
    """Test POSIX path helpers."""

    def test_helpers(self):
        self.assertEqual(join_path("A", "", "B/", "/c.md"), "A/B/c.md")
        self.assertEqual(parent_path("A/B/c.md"), "A/B")
        self.assertEqual(parent_path("c.md"), "")
        self.assertEqual(path_depth(""), 0)
        self.assertEqual(path_depth("A/B/c.md"), 3)

    def test_is_within(self):
        self.assertTrue(is_within("A/B/c.md", "A"))
        self.assertTrue(is_within("A", "A"))
        self.assertTrue(is_within("anything", ""))
        self.assertFalse(is_within("AB/c.md", "A"))


class TestInMemoryStorage(unittest.IsolatedAsyncioTestCase):
    """Test the in-memory backend."""

    def setUp(self):
        self.storage = InMemoryStorage({
            "A/A.md": "root",
            "A/Notes/n.md": "note",
            "A/B/B.md": "child",
            "top.md": "top",
        })

    async def test_read_write(self):
        self.assertEqual(await self.storage.read("A/A.md"), "root")
        await self.storage.write("A/A.md", "changed")
        self.assertEqual(await self.storage.read("A/A.md"), "changed")

    async def test_missing_paths_raise(self):
        with self.assertRaises(StorageError) as ctx:
            await self.storage.read("missing.md")
        self.assertEqual(ctx.exception.operation, "read")
        self.assertEqual(ctx.exception.path, "missing.md")

        with self.assertRaises(StorageError):
            await self.storage.write("missing.md", "x")
        with self.assertRaises(StorageError):
            await self.storage.rename("missing", "other")
        with self.assertRaises(StorageError):
            await self.storage.delete("missing")

    async def test_create_fails_when_path_exists(self):
        handle = await self.storage.create("C/C.md", "new")
        self.assertEqual(handle.path, "C/C.md")
        self.assertEqual(handle.basename, "C")
        self.assertTrue(await self.storage.exists("C"))

        with self.assertRaises(StorageError):
            await self.storage.create("C/C.md", "again")

    async def test_rename_group_moves_subtree(self):
        await self.storage.rename("A/B", "B")

        self.assertFalse(await self.storage.exists("A/B"))
        self.assertEqual(await self.storage.read("B/B.md"), "child")

    async def test_rename_into_itself_rejected(self):
        with self.assertRaises(StorageError):
            await self.storage.rename("A", "A/B/A")
        self.assertTrue(await self.storage.exists("A/B/B.md"))

    async def test_delete_group_is_recursive(self):
        await self.storage.delete("A")

        self.assertFalse(await self.storage.exists("A/Notes/n.md"))
        self.assertEqual(self.storage.snapshot(), {"top.md": "top"})

    async def test_walk_is_depth_first_and_sorted(self):
        paths = [handle.path for handle in await self.storage.walk()]
        self.assertEqual(paths, ["A/A.md", "A/B/B.md", "A/Notes/n.md", "top.md"])

        with_groups = [handle.path for handle in await self.storage.walk(documents_only=False)]
        self.assertEqual(with_groups[:3], ["A", "A/A.md", "A/B"])

    async def test_storage_tree(self):
        tree = await StorageTree.build(self.storage)

        self.assertEqual(tree.ancestors("A/B/B.md"), ["A/B", "A", ""])
        self.assertEqual(
            [handle.path for handle in tree.documents("A")],
            ["A/A.md", "A/B/B.md", "A/Notes/n.md"]
        )
        self.assertIn("A/Notes", [handle.path for handle in tree.descendants("A")])
        self.assertEqual(tree.descendants("missing"), [])


def test_filesystem_storage_round_trip(tmp_path):
    storage = FileSystemStorage(str(tmp_path))

    async def scenario():
        await storage.create_group("G/Notes")
        await storage.create("G/G.md", "---\ntags: [moc]\n---\n")
        await storage.write("G/G.md", "updated")
        await storage.rename("G", "H")
        return await storage.read("H/G.md"), [handle.path for handle in await storage.walk()]

    text, paths = asyncio.run(scenario())

    assert text == "updated"
    assert paths == ["H/G.md"]
    assert (tmp_path / "H" / "Notes").is_dir()


def test_filesystem_storage_errors(tmp_path):
    storage = FileSystemStorage(str(tmp_path))
    (tmp_path / "a.md").write_text("a", encoding="utf-8")

    with pytest.raises(StorageError):
        asyncio.run(storage.create("a.md", "again"))
    with pytest.raises(StorageError):
        asyncio.run(storage.write("missing.md", "x"))
    with pytest.raises(StorageError):
        asyncio.run(storage.delete("missing"))
    with pytest.raises(StorageError):
        asyncio.run(storage.read("../outside.md"))


def test_filesystem_read_rejects_undecodable_file(tmp_path):
    storage = FileSystemStorage(str(tmp_path))
    (tmp_path / "binary.md").write_bytes(b"\xff\xfe\x00broken")

    with pytest.raises(StorageError) as excinfo:
        asyncio.run(storage.read("binary.md"))
    assert excinfo.value.operation == "read"
    assert excinfo.value.path == "binary.md"


def test_filesystem_delete_group(tmp_path):
    storage = FileSystemStorage(str(tmp_path))
    (tmp_path / "G" / "Notes").mkdir(parents=True)
    (tmp_path / "G" / "Notes" / "n.md").write_text("n", encoding="utf-8")
    (tmp_path / ".hidden").write_text("x", encoding="utf-8")

    asyncio.run(storage.delete("G"))

    assert not (tmp_path / "G").exists()
    assert asyncio.run(storage.walk()) == []
