from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from blockedit.patch.resolver import MatchCandidate


class EditBlockError(ValueError):
    """Any problem applying a single edit block. Reported per block, never fatal."""


class ParseAmbiguity(EditBlockError):
    """Malformed block structure that the parser recovered from."""


class NoMatchError(EditBlockError):
    def __init__(
        self,
        old_lines: List[str],
        closest: Optional["MatchCandidate"] = None,
        max_lines: int = 5,
    ):
        self.old_lines = old_lines
        self.closest = closest
        extra = ""
        if closest is not None and closest.failed_to_match:
            extra += "\nFailed to match these lines:\n\n%s\n" % "\n".join(
                closest.failed_to_match[:max_lines]
            )
            if closest.found_instead:
                extra += "\nInstead, found these lines:\n\n%s\n" % "\n".join(
                    closest.found_instead[:max_lines]
                )
        super().__init__(
            "no good match found for the following edit block old lines:\n\n%s\n%s"
            % ("\n".join(old_lines), extra)
        )


class AmbiguousMatchError(EditBlockError):
    def __init__(self, file_path: str, candidates: List["MatchCandidate"]):
        self.file_path = file_path
        self.candidates = candidates
        entries = "\n\n".join(
            f"File: {file_path}\nLines: {c.index + 1}-{c.index + len(c.lines)}\n```\n"
            + "\n".join(c.lines)
            + "\n```"
            for c in candidates
        )
        super().__init__(
            "Multiple matches found for the given edit block SEARCH section, but "
            "expected only one match. Here are the matches with sufficient "
            "additional context from the current state of the file to "
            "disambiguate. Provide the edit block again with the specific full "
            "expanded context:\n\n" + entries
        )


class FileSystemErrorKind(str, Enum):
    already_exists = "already_exists"
    not_found = "not_found"
    io = "io"


class FileSystemError(EditBlockError):
    def __init__(self, kind: FileSystemErrorKind, msg: str):
        self.kind = kind
        super().__init__(msg)


class CheckFailure(EditBlockError):
    def __init__(self, message: str, hint: str):
        self.message = message
        self.hint = hint
        super().__init__(f"Checks failed: {message}\nHint: {hint}")


class MatchContractError(RuntimeError):
    """Internal invariant of the matcher was violated."""
