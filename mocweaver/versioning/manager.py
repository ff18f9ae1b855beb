"""
Git version management for MOC Weaver.

This module keeps an audit trail of hierarchy mutations and bulk jobs by
committing the vault after each successful run.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import git
from git import InvalidGitRepositoryError, Repo

from ..models import BatchReport, MutationReport


class VersionManager:
    """
    Manages Git operations for a vault directory.
    """

    def __init__(self, repo_path: str = "vault", author_name: str = "MOC Weaver",
                 author_email: str = "mocweaver@localhost"):
        """
        Initialize the version manager.

        Args:
            repo_path: Path to the vault (and Git repository)
            author_name: Name used for commits
            author_email: Email used for commits
        """
        self.repo_path = Path(repo_path)
        self.repo: Optional[Any] = None
        self.author = git.Actor(author_name, author_email)
        logging.info(f"Initialized VersionManager for: {self.repo_path}")

    def initialize_repository(self) -> bool:
        """
        Initialize a Git repository if it doesn't exist.

        Returns:
            True if repository was initialized or already exists, False on error
        """
        try:
            if self._is_git_repository():
                logging.info("Git repository already exists")
                self.repo = Repo(self.repo_path)
                return True

            self.repo_path.mkdir(parents=True, exist_ok=True)
            self.repo = Repo.init(self.repo_path)

            gitignore_path = self.repo_path / ".gitignore"
            if not gitignore_path.exists():
                gitignore_path.write_text("# MOC Weaver\n.obsidian/workspace*\n.trash/\n.DS_Store\nThumbs.db\n")
            self.repo.index.add([".gitignore"])
            self.repo.index.commit("Initial commit: Add .gitignore",
                                   author=self.author, committer=self.author)

            logging.info("Git repository initialized successfully")
            return True

        except (git.GitError, OSError) as e:
            logging.error(f"Failed to initialize Git repository: {e}")
            return False

    def _is_git_repository(self) -> bool:
        """Check if the path is already a Git repository."""
        try:
            if not self.repo_path.exists():
                return False
            Repo(self.repo_path)
            return True
        except InvalidGitRepositoryError:
            return False

    def commit_all(self, message: str) -> bool:
        """
        Stage every change in the vault, including moves and deletions, and commit.

        Returns:
            True if a commit was made or nothing changed, False on error
        """
        if not self.repo:
            logging.error("Repository not initialized")
            return False

        try:
            self.repo.git.add(all=True)
            if not self.repo.index.diff("HEAD"):
                logging.info("No changes to commit")
                return True

            commit = self.repo.index.commit(message, author=self.author, committer=self.author)
            logging.info(f"Created commit: {commit.hexsha[:8]} - {message.splitlines()[0]}")
            return True

        except git.GitError as e:
            logging.error(f"Failed to commit changes: {e}")
            return False

    def record_mutation(self, report: MutationReport) -> bool:
        """Commit the result of a move or promote. Unchanged reports are skipped."""
        if not report.changed:
            return True
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        details = [f"Moved folder: {report.old_group} -> {report.new_group}"]
        details.extend(f"Unlinked from: {path}" for path in report.unlinked_from)
        message = f"{report.message}\n\nRecorded by MOC Weaver on {timestamp}\n\n" + "\n".join(details)
        return self.commit_all(message)

    def record_batch(self, report: BatchReport) -> bool:
        """Commit the documents changed by a bulk job."""
        if not report.changed:
            return True
        lines: List[str] = [f"- {path}" for path in report.succeeded]
        message = f"{report.summary()}\n\n" + "\n".join(lines)
        return self.commit_all(message)

    def get_commit_history(self, limit: int = 10) -> List[dict]:
        """
        Get the commit history for the repository.

        Args:
            limit: Maximum number of commits to return

        Returns:
            List of commit information dictionaries
        """
        if not self.repo:
            logging.error("Repository not initialized")
            return []

        try:
            return [
                {
                    'hash': commit.hexsha,
                    'short_hash': commit.hexsha[:8],
                    'message': commit.message.strip(),
                    'author': str(commit.author),
                    'date': commit.committed_datetime.isoformat()
                }
                for commit in self.repo.iter_commits(max_count=limit)
            ]
        except git.GitError as e:
            logging.error(f"Failed to get commit history: {e}")
            return []
