from __future__ import annotations

from pathlib import Path
from typing import Optional

from git import Repo, InvalidGitRepositoryError, NoSuchPathError, GitError

from blockedit.logger import logger

from .base import VersionControl


class VersionControlError(RuntimeError):
    pass


class GitVersionControl(VersionControl):
    """
    Git implementation using GitPython. Operates on the repository that
    contains base_path; file paths are relative to base_path.
    """

    def __init__(self, base_path: Path):
        self._base_path = base_path.absolute()
        self._repo: Optional[Repo] = None

    def find_repo(self, path: Path) -> Optional[Path]:
        # absolute() keeps symlinked project roots as given.
        start = path.absolute()
        if not start.is_dir():
            start = start.parent
        try:
            worktree = Repo(start, search_parent_directories=True).working_tree_dir
        except (InvalidGitRepositoryError, NoSuchPathError, GitError):
            return None
        return Path(worktree) if worktree else None

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            try:
                self._repo = Repo(self._base_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise VersionControlError(
                    f"Not a git repository: {self._base_path}"
                ) from e
        return self._repo

    def _run(self, op: str, *args, **kwargs) -> str:
        try:
            return getattr(self.repo.git, op)(*args, **kwargs)
        except GitError as e:
            raise VersionControlError(f"git {op} failed: {e}") from e

    def stage(self, file_path: str) -> None:
        self._run("add", "-A", "--", str(self._base_path / file_path))
        logger.debug("staged file", file_path=file_path)

    def restore(self, file_path: str) -> None:
        self._run("restore", "--", str(self._base_path / file_path))
        logger.debug("restored file", file_path=file_path)

    def _is_tracked(self, file_path: str) -> bool:
        out = self._run("ls_files", "--", str(self._base_path / file_path))
        return bool(out.strip())

    def diff(self, file_path: str) -> str:
        abs_path = self._base_path / file_path
        if not self._is_tracked(file_path) and abs_path.exists():
            # Untracked files have no unstaged diff; compare against nothing.
            try:
                return self.repo.git.diff(
                    "--no-index", "--", "/dev/null", str(abs_path), with_exceptions=False
                )
            except GitError as e:
                raise VersionControlError(f"git diff failed: {e}") from e
        return self._run("diff", "--", str(abs_path))
