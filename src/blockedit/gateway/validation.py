from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from blockedit.errors import CheckFailure
from blockedit.logger import logger
from blockedit.models import ApplyReport, CheckResult, EditBlock, EditType

from .base import Autofixer, Checker, VersionControl

SYNTAX_ERROR_MARKER = "Syntax error(s)"

_DELIMITERS = (
    ("(", ")", "parentheses"),
    ("{", "}", "braces"),
    ("[", "]", "square brackets"),
)


def count_unbalanced(lines: List[str], opening: str, closing: str) -> int:
    return sum(line.count(opening) - line.count(closing) for line in lines)


def fix_check_hint(block: EditBlock, check_message: str = "") -> str:
    """Advice for the agent on how to redo a block whose checks failed."""
    hint = ""
    unbalanced = False
    for opening, closing, name in _DELIMITERS:
        old = count_unbalanced(block.old_lines, opening, closing)
        new = count_unbalanced(block.new_lines, opening, closing)
        if old != new:
            unbalanced = True
            hint += (
                f"The net number of unbalanced {name} should be the same in the new "
                f"lines vs old lines. But there are {old} unbalanced {name} in the "
                f"old lines and {new} in the new lines.\n"
            )
    if unbalanced:
        hint += (
            "Balance all the parentheses, braces, and square brackets within the "
            "SEARCH section - keep going until closing any delimiters opened. "
            "Do the same for the REPLACE section.\n"
        )

    if block.edit_type is EditType.update and len(block.old_lines) <= 3:
        hint += (
            "Make sure to add enough context in the old lines, more than just 2 or "
            "3 lines, at least 5 if available.\n"
        )

    if not hint:
        if SYNTAX_ERROR_MARKER in check_message:
            hint = (
                "Ensure the replacement of old lines with new lines results in good "
                "syntax, and make sure to do something different than what failed.\n"
            )
        else:
            hint = "Just make sure to do something different than what failed.\n"
    return hint


class ValidationGateway:
    """
    Post-apply pipeline for a single block: autofix, diff, check, then stage
    the file or revert it. Failures of the collaborators end up in the report.
    """

    def __init__(
        self,
        base_path: Path,
        vcs: VersionControl,
        checker: Optional[Checker] = None,
        autofixer: Optional[Autofixer] = None,
        check_edits: bool = True,
    ):
        self._base_path = base_path
        self._vcs = vcs
        self._checker = checker
        self._autofixer = autofixer
        self._check_edits = check_edits

    def process(self, report: ApplyReport) -> None:
        if not report.applied:
            return
        block = report.original_edit_block

        if block.edit_type is not EditType.delete and self._autofixer is not None:
            try:
                result = self._autofixer.run(block.file_path)
                report.autofix_output = result.output
            except Exception as e:
                report.autofix_output += f"autofix failed: {e}\n"
                logger.warning("autofix failed", file_path=block.file_path, error=str(e))

        if not self._check_edits:
            return

        try:
            report.final_diff = self._vcs.diff(block.file_path)
        except Exception as e:
            report.add_error(f"Failure when getting unstaged git diff for block: {e}")

        if block.edit_type is EditType.delete:
            # A deleted file cannot be checked; stage the removal directly.
            self._stage(report, "Failed to git add deleted file")
            return

        try:
            result = (
                self._checker.check(block.file_path)
                if self._checker is not None
                else CheckResult(success=True)
            )
        except Exception as e:
            # Unchecked edits are not kept.
            report.applied = False
            report.add_error(f"Failure when checking file: {e}")
            self._revert(report, "reverting edit block after checker failure")
            return
        report.check_result = result

        if result.success:
            self._stage(report, "Failed to git add")
            return

        # The final diff is kept so the failed change can still be shown.
        report.applied = False
        hint = fix_check_hint(block, result.message)
        report.add_error(str(CheckFailure(result.message, hint)))
        self._revert(report, "reverting edit block after failed checks")

    def _revert(self, report: ApplyReport, event: str) -> None:
        block = report.original_edit_block
        logger.info(event, file_path=block.file_path, sequence_number=block.sequence_number)
        try:
            if block.edit_type is EditType.create:
                (self._base_path / block.file_path).unlink(missing_ok=True)
            else:
                self._vcs.restore(block.file_path)
        except Exception as e:
            report.add_error(f"Failure when restoring file: {e}")

    def _stage(self, report: ApplyReport, failure_msg: str) -> None:
        try:
            self._vcs.stage(report.original_edit_block.file_path)
        except Exception as e:
            report.add_error(f"{failure_msg}: {e}")
