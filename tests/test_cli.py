"""
Tests for the command line interface.
"""

import asyncio

import pytest

from main import parse_arguments, run_command
from mocweaver.errors import MOCSystemError, ValidationError
from mocweaver.models import BatchReport, MutationReport


MOC_FRONTMATTER = "---\ntags:\n  - moc\nnote-type: moc\n---\n"


@pytest.fixture
def vault(tmp_path):
    for name in ("A MOC", "B MOC"):
        (tmp_path / name).mkdir()
        (tmp_path / name / f"{name}.md").write_text(MOC_FRONTMATTER, encoding="utf-8")
    (tmp_path / "journal.md").write_text("## Notes\n- [[Gone]]\n## MOCs\n- [[A MOC]]\n", encoding="utf-8")
    return tmp_path


def run(vault, *argv):
    return asyncio.run(run_command(parse_arguments(["--vault", str(vault), *argv])))


def test_parse_arguments_defaults():
    args = parse_arguments(["create", "Physics"])

    assert args.command == "create"
    assert args.type == "moc"
    assert args.parent is None
    assert args.commit is False


def test_parse_arguments_rejects_unknown_section():
    with pytest.raises(SystemExit):
        parse_arguments(["add-entry", "A MOC", "Ideas", "X"])


def test_move_command(vault, capsys):
    result = run(vault, "move", "B MOC", "A MOC")

    assert isinstance(result, MutationReport)
    assert result.changed
    assert (vault / "A MOC" / "B MOC" / "B MOC.md").exists()
    assert "- [[B MOC]]" in (vault / "A MOC" / "A MOC.md").read_text(encoding="utf-8")
    assert "Moved" in capsys.readouterr().out


def test_list_command(vault, capsys):
    assert run(vault, "list") is None

    out = capsys.readouterr().out
    assert "A MOC  (A MOC/A MOC.md)" in out
    assert "B MOC  (B MOC/B MOC.md)" in out


def test_document_commands(vault):
    assert run(vault, "reorganize", "journal.md") == "Update journal.md"
    assert (vault / "journal.md").read_text(encoding="utf-8").startswith("## MOCs\n- [[A MOC]]\n")

    assert run(vault, "prune", "journal.md", "Gone") == "Update journal.md"
    assert "[[Gone]]" not in (vault / "journal.md").read_text(encoding="utf-8")
    assert run(vault, "prune", "journal.md", "Gone") is None

    assert run(vault, "add-entry", "A MOC", "Notes", "Idea") == "Update A MOC/A MOC.md"
    assert (vault / "A MOC" / "A MOC.md").read_text(encoding="utf-8").endswith("## Notes\n\n- [[Idea]]\n")


def test_create_commands(vault):
    assert run(vault, "create", "Light", "--type", "note", "--parent", "A MOC") == "Create 📝 Light"
    assert (vault / "A MOC" / "Notes" / "📝 Light.md").exists()

    with pytest.raises(MOCSystemError):
        run(vault, "create", "Orphan", "--type", "note")
    with pytest.raises(ValidationError):
        run(vault, "move", "Missing MOC", "A MOC")


def test_update_vault_dry_run_leaves_files(vault, capsys):
    before = (vault / "A MOC" / "A MOC.md").read_text(encoding="utf-8")

    assert run(vault, "update-vault") is None
    assert "Re-run with --apply" in capsys.readouterr().out
    assert (vault / "A MOC" / "A MOC.md").read_text(encoding="utf-8") == before

    result = run(vault, "update-vault", "--apply")
    assert isinstance(result, BatchReport)
    assert (vault / "A MOC" / "Resources").is_dir()


def test_styles_command(vault, tmp_path_factory):
    output = tmp_path_factory.mktemp("css") / "moc-styles.css"

    assert run(vault, "styles", "--output", str(output)) is None
    # The fixture containers carry no colours
    assert output.read_text(encoding="utf-8") == "\n"


def test_create_parent_command(vault):
    result = run(vault, "create-parent", "B MOC", "Physics")

    assert isinstance(result, MutationReport)
    assert result.changed
    (parent,) = [path for path in vault.iterdir() if path.name.endswith(" Physics MOC")]
    assert (parent / "B MOC" / "B MOC.md").exists()
    assert not (vault / "B MOC").exists()
    assert "- [[B MOC]]" in (parent / f"{parent.name}.md").read_text(encoding="utf-8")


def test_prompt_item_commands(vault):
    assert run(vault, "create", "Draft", "--type", "prompt", "--parent", "A MOC") == "Create 🤖 Draft"

    assert run(vault, "duplicate-prompt", "🤖 Draft v1") == "Create 🤖 Draft v2"
    assert (vault / "A MOC" / "Prompts" / "Draft" / "🤖 Draft v2.md").exists()
    assert "- [[🤖 Draft v2]]" in (vault / "A MOC" / "Prompts" / "🤖 Draft.md").read_text(encoding="utf-8")

    result = run(vault, "delete-item", "🤖 Draft")
    assert isinstance(result, BatchReport)
    assert result.operation == "Deletion of 🤖 Draft"
    assert not (vault / "A MOC" / "Prompts" / "Draft").exists()
    assert "[[🤖 Draft]]" not in (vault / "A MOC" / "A MOC.md").read_text(encoding="utf-8")

    with pytest.raises(ValidationError):
        run(vault, "delete-item", "A MOC")
