#!/usr/bin/env python3
"""
MOC Weaver - Map of Content manager

Main entry point for MOC Weaver. Each command opens the vault, indexes it,
runs one operation and optionally commits the result to Git.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Union

from mocweaver.config import config
from mocweaver.errors import MOCSystemError
from mocweaver.hierarchy import HierarchyGraph
from mocweaver.index import MetadataIndex
from mocweaver.maintenance import VaultMaintenance
from mocweaver.models import BatchReport, MutationReport, NoteType
from mocweaver.sections import SectionGrammar, add_entry, prune_references, reorganize_text
from mocweaver.storage import FileSystemStorage, path_depth
from mocweaver.styles import compute_style_rules, render_css
from mocweaver.versioning import VersionManager


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def confirm(prompt: str) -> bool:
    """
    Ask the user for a yes/no answer.

    Returns:
        True if user confirms, False otherwise
    """
    while True:
        response = input(f"\n{prompt} (yes/no): ").strip().lower()
        if response in ['yes', 'y']:
            return True
        elif response in ['no', 'n']:
            return False
        else:
            print("Please enter 'yes' or 'no'")


def print_batch(report: BatchReport):
    print(report.summary())
    for path, error in report.failed.items():
        print(f"  failed: {path}: {error}")


async def update_document(storage: FileSystemStorage, index: MetadataIndex,
                          path: str, text: str, updated: str) -> Optional[str]:
    """Write a document back when it changed. Returns a change message, if any."""
    if updated == text:
        print(f"{path}: no changes needed")
        return None
    await storage.write(path, updated)
    index.index_document(path, updated)
    print(f"Updated {path}")
    return f"Update {path}"


async def run_command(args) -> Union[MutationReport, BatchReport, str, None]:
    """
    Execute one CLI command against the vault.

    Returns:
        The report of a mutation or bulk job, a commit message for other
        changes, or None when the vault was left untouched
    """
    storage = FileSystemStorage(args.vault)
    grammar = SectionGrammar.from_config()

    with MetadataIndex() as index:
        await index.refresh(storage)
        graph = HierarchyGraph(storage, index, grammar)
        maintenance = VaultMaintenance(storage, index, grammar)

        if args.command == "list":
            for container in graph.list_all():
                indent = "  " * max(path_depth(container.group_path) - 1, 0)
                print(f"{indent}{container.name}  ({container.path})")
            return None

        if args.command in ("move", "promote", "create-parent"):
            node = graph.locate(args.node)
            if args.command == "move":
                report = await graph.move_under_parent(node, graph.locate(args.parent))
            elif args.command == "create-parent":
                report = await graph.create_parent_and_move(node, args.name)
            else:
                report = await graph.promote_to_root(node)
            print(report.message)
            return report

        if args.command == "create":
            note_type = NoteType(args.type)
            if note_type == NoteType.MOC:
                parent = graph.locate(args.parent) if args.parent else None
                container = await graph.create_container(args.name, parent)
                print(f"Created {container.path}")
                return f"Create {container.name}"
            else:
                if not args.parent:
                    raise MOCSystemError(f"A parent MOC is required to create a {note_type.value}")
                handle = await graph.create_item(graph.locate(args.parent), args.name, note_type)
                print(f"Created {handle.path}")
                return f"Create {handle.basename}"

        if args.command == "duplicate-prompt":
            handle = await graph.duplicate_prompt_iteration(graph.locate(args.iteration), args.description)
            print(f"Created iteration {handle.path}")
            return f"Create {handle.basename}"

        if args.command == "delete":
            report = await graph.delete_container(graph.locate(args.node))
            print_batch(report)
            return report

        if args.command == "delete-item":
            report = await graph.delete_item(graph.locate(args.document))
            print_batch(report)
            return report

        if args.command in ("add-entry", "prune", "reorganize"):
            path = graph.locate(args.document)
            text = await storage.read(path)
            if args.command == "add-entry":
                updated = add_entry(text, args.section, args.target, grammar)
            elif args.command == "prune":
                updated = prune_references(text, args.target, grammar).text
            else:
                updated = reorganize_text(text, grammar)
            return await update_document(storage, index, path, text, updated)

        if args.command == "cleanup-links":
            report = await maintenance.cleanup_broken_links(args.identifier)
            print_batch(report)
            return report

        if args.command == "update-vault":
            plan = await maintenance.plan_vault_update()
            if not plan.files_to_update:
                print("Vault update: no changes needed")
                return None
            for path, changes in plan.update_summary.items():
                print(path)
                for change in changes:
                    print(f"  - {change}")
            if not args.apply:
                print(f"\n{plan.total_changes} changes planned. Re-run with --apply to update.")
                return None
            report = await maintenance.apply_vault_update(plan)
            print_batch(report)
            return report

        if args.command == "cleanup-system":
            documents = maintenance.find_system_documents()
            if not documents:
                print("No MOC system files found to cleanup.")
                return None
            for path in documents:
                print(f"  {path}")
            if not args.yes and not confirm(f"Delete these {len(documents)} files?"):
                print("Cleanup cancelled.")
                return None
            report = await maintenance.cleanup_system_files()
            print_batch(report)
            return report

        if args.command == "styles":
            css = render_css(compute_style_rules(graph.list_all()))
            if args.output:
                Path(args.output).write_text(css + "\n", encoding="utf-8")
                print(f"Wrote styles to {args.output}")
            else:
                print(css)
            return None

    raise MOCSystemError(f"Unknown command: {args.command}")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MOC Weaver - Map of Content manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py list                                   # Show the MOC hierarchy
  python main.py create "Physics"                       # Create a root MOC
  python main.py create "Optics" --parent "Physics MOC" # Create a sub-MOC
  python main.py move "Optics MOC" "Science MOC"        # Re-parent a MOC
  python main.py create-parent "Optics MOC" "Physics"    # New parent for a MOC
  python main.py update-vault --apply                   # Bring old MOCs up to date
        """
    )

    parser.add_argument(
        "--vault",
        type=str,
        default=config.vault_root,
        help=f"Path to the vault directory (default: {config.vault_root})"
    )

    parser.add_argument(
        "--commit",
        action="store_true",
        help="Commit changes to Git even when git.auto_commit is off"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="MOC Weaver 0.1.0"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List every MOC")

    move = commands.add_parser("move", help="Move a MOC under another MOC")
    move.add_argument("node", help="MOC to move (name or path)")
    move.add_argument("parent", help="New parent MOC (name or path)")

    promote = commands.add_parser("promote", help="Promote a sub-MOC to a root MOC")
    promote.add_argument("node", help="MOC to promote (name or path)")

    new_parent = commands.add_parser("create-parent", help="Create a root MOC and move a MOC under it")
    new_parent.add_argument("node", help="MOC to move (name or path)")
    new_parent.add_argument("name", help="Name of the new parent MOC")

    create = commands.add_parser("create", help="Create a MOC, note, resource or prompt")
    create.add_argument("name")
    create.add_argument("--parent", help="Parent MOC (name or path)")
    create.add_argument(
        "--type",
        choices=[note_type.value for note_type in NoteType],
        default=NoteType.MOC.value,
        help="Kind of document to create (default: moc)"
    )

    delete = commands.add_parser("delete", help="Delete a MOC folder and links to its documents")
    delete.add_argument("node", help="MOC to delete (name or path)")

    delete_item = commands.add_parser("delete-item", help="Delete a note, resource or prompt and links to it")
    delete_item.add_argument("document", help="Document to delete (name or path)")

    duplicate = commands.add_parser("duplicate-prompt", help="Copy a prompt iteration to the next version")
    duplicate.add_argument("iteration", help="Prompt iteration to copy (name or path)")
    duplicate.add_argument("--description", help="Suffix for the new iteration name")

    entry = commands.add_parser("add-entry", help="Add an entry to a managed section")
    entry.add_argument("document")
    entry.add_argument("section", choices=config.canonical_order)
    entry.add_argument("target")

    prune = commands.add_parser("prune", help="Remove entries referencing a target from a document")
    prune.add_argument("document")
    prune.add_argument("target")

    reorganize = commands.add_parser("reorganize", help="Put managed sections in canonical order")
    reorganize.add_argument("document")

    cleanup = commands.add_parser("cleanup-links", help="Remove entries for a deleted document everywhere")
    cleanup.add_argument("identifier")

    update = commands.add_parser("update-vault", help="Plan (and apply) updates to older MOCs")
    update.add_argument("--apply", action="store_true", help="Apply the planned updates")

    system = commands.add_parser("cleanup-system", help="Delete every file created by MOC Weaver")
    system.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    styles = commands.add_parser("styles", help="Render folder colour CSS for every MOC")
    styles.add_argument("--output", help="Write the CSS to a file instead of stdout")

    return parser.parse_args(argv)


def main():
    """Main entry point."""
    args = parse_arguments()
    setup_logging()

    logging.info(f"MOC Weaver: {args.command} (vault: {args.vault})")

    try:
        result = asyncio.run(run_command(args))

        if result is not None and (args.commit or config.auto_commit):
            version_manager = VersionManager(args.vault)
            if version_manager.initialize_repository():
                if isinstance(result, MutationReport):
                    version_manager.record_mutation(result)
                elif isinstance(result, BatchReport):
                    version_manager.record_batch(result)
                else:
                    version_manager.commit_all(f"MOC Weaver: {result}")

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")

    except MOCSystemError as e:
        logging.error(f"{args.command} failed: {e.message}")
        print(f"\n{args.command} failed: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
