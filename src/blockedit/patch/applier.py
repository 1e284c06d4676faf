from __future__ import annotations

import difflib
import pathlib
from typing import Optional

from blockedit.errors import FileSystemError, FileSystemErrorKind
from blockedit.gateway.base import SymbolLookup
from blockedit.logger import logger
from blockedit.models import ApplyReport, EditBlock
from blockedit.settings.models import MatchSettings

from .resolver import resolve_match

DEV_NULL = "/dev/null"


def unified_diff(
    old: str, new: str, from_path: Optional[str], to_path: Optional[str]
) -> str:
    """
    Unified diff of old -> new. A None path stands for a missing side
    (/dev/null), as for created or deleted files.
    """
    fromfile = f"a/{from_path}" if from_path is not None else DEV_NULL
    tofile = f"b/{to_path}" if to_path is not None else DEV_NULL
    return "\n".join(
        difflib.unified_diff(
            old.splitlines(),
            new.splitlines(),
            fromfile=fromfile,
            tofile=tofile,
            lineterm="",
        )
    )


def deleted_file_diff(data: bytes, path: str) -> str:
    """Diff for a removed file; files with NUL bytes get git's binary notice."""
    if b"\0" in data:
        return f"Binary files a/{path} and {DEV_NULL} differ"
    return unified_diff(data.decode("utf-8", errors="replace"), "", path, None)


def replace_span(content: str, start: int, length: int, new_lines: list) -> str:
    lines = content.split("\n")
    return "\n".join(lines[:start] + list(new_lines) + lines[start + length :])


class EditApplier:
    """
    Applies single edit blocks to files under base_path. Each method returns
    a report carrying the initial diff or raises EditBlockError.
    """

    def __init__(
        self,
        base_path: pathlib.Path,
        settings: Optional[MatchSettings] = None,
        symbol_lookup: Optional[SymbolLookup] = None,
    ):
        self._base_path = base_path
        self._settings = settings or MatchSettings()
        self._symbol_lookup = symbol_lookup

    @property
    def base_path(self) -> pathlib.Path:
        return self._base_path

    def resolve_path(self, rel: str) -> pathlib.Path:
        if not rel:
            raise FileSystemError(FileSystemErrorKind.io, "Edit block has no file path")
        if rel.startswith("/") or rel.startswith("~"):
            raise FileSystemError(
                FileSystemErrorKind.io, f"Absolute paths are not allowed: {rel}"
            )
        base = self._base_path.resolve()
        path = (base / rel).resolve()
        if path != base and base not in path.parents:
            raise FileSystemError(FileSystemErrorKind.io, f"Path escapes project root: {rel}")
        return path

    def _read_bytes(self, rel: str) -> bytes:
        path = self.resolve_path(rel)
        if not path.is_file():
            raise FileSystemError(
                FileSystemErrorKind.not_found, f"File does not exist: {rel}"
            )
        try:
            return path.read_bytes()
        except OSError as e:
            raise FileSystemError(
                FileSystemErrorKind.io, f"Failed to read file {rel}: {e}"
            ) from e

    def _read(self, rel: str) -> str:
        data = self._read_bytes(rel)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FileSystemError(
                FileSystemErrorKind.io, f"File is not valid UTF-8 text: {rel}"
            ) from e

    def _write(self, rel: str, content: str) -> None:
        path = self.resolve_path(rel)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wt", encoding="utf-8", newline="") as fh:
                fh.write(content)
        except OSError as e:
            raise FileSystemError(
                FileSystemErrorKind.io, f"Failed to write file {rel}: {e}"
            ) from e

    def create(self, block: EditBlock) -> ApplyReport:
        path = self.resolve_path(block.file_path)
        if path.exists():
            raise FileSystemError(
                FileSystemErrorKind.already_exists,
                f"file already exists: {block.file_path}",
            )
        content = "\n".join(block.new_lines)
        if content.endswith("\n"):
            content = content[:-1]
        self._write(block.file_path, content)
        return ApplyReport(
            original_edit_block=block,
            applied=True,
            initial_diff=unified_diff("", content, None, block.file_path),
        )

    def update(self, block: EditBlock) -> ApplyReport:
        original = self._read(block.file_path)
        match = resolve_match(
            block, original.split("\n"), self._settings, self._symbol_lookup
        )
        modified = replace_span(original, match.index, len(match.lines), block.new_lines)
        self._write(block.file_path, modified)
        return ApplyReport(
            original_edit_block=block,
            applied=True,
            initial_diff=unified_diff(original, modified, block.file_path, block.file_path),
        )

    def append(self, block: EditBlock) -> ApplyReport:
        original = self._read(block.file_path)
        updated = original
        if updated and not updated.endswith("\n"):
            updated += "\n"
        updated += "\n".join(block.new_lines)
        self._write(block.file_path, updated)
        return ApplyReport(
            original_edit_block=block,
            applied=True,
            initial_diff=unified_diff(original, updated, block.file_path, block.file_path),
        )

    def delete(self, block: EditBlock) -> ApplyReport:
        # Deletes work on any file, text or not.
        data = self._read_bytes(block.file_path)
        try:
            self.resolve_path(block.file_path).unlink()
        except OSError as e:
            raise FileSystemError(
                FileSystemErrorKind.io, f"Failed to delete file: {block.file_path}"
            ) from e
        logger.info("deleted file", file_path=block.file_path)
        return ApplyReport(
            original_edit_block=block,
            applied=True,
            initial_diff=deleted_file_diff(data, block.file_path),
        )
