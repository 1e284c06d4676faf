from __future__ import annotations

import pathlib
from typing import Iterable, List, Optional

from blockedit.gateway import (
    CommandAutofixer,
    CommandChecker,
    GitVersionControl,
    SymbolLookup,
    ValidationGateway,
)
from blockedit.models import ApplyReport, EditBlock
from blockedit.settings.models import Settings

from .applier import EditApplier, unified_diff
from .batch import EDIT_HANDLERS, apply_edit_blocks, validate_and_apply_edit_blocks
from .parser import EDIT_BLOCK_SYSTEM_INSTRUCTION, parse_edit_blocks
from .ranges import LineEdit, line_edits_from_diff, merged_ranges_for_file
from .resolver import (
    MatchCandidate,
    expand_until_unambiguous,
    find_acceptable_match,
    find_closest_match,
    resolve_match,
)
from .visibility import (
    attach_visibility,
    extract_history_code_blocks,
    parse_edit_blocks_with_visibility,
    validate_edit_blocks,
)

__all__ = [
    "EDIT_BLOCK_SYSTEM_INSTRUCTION",
    "EDIT_HANDLERS",
    "EditApplier",
    "LineEdit",
    "MatchCandidate",
    "apply_edit_blocks",
    "apply_text",
    "attach_visibility",
    "build_gateway",
    "expand_until_unambiguous",
    "extract_history_code_blocks",
    "find_acceptable_match",
    "find_closest_match",
    "line_edits_from_diff",
    "merged_ranges_for_file",
    "parse_edit_blocks",
    "parse_edit_blocks_with_visibility",
    "resolve_match",
    "summarize_reports",
    "unified_diff",
    "validate_and_apply_edit_blocks",
    "validate_edit_blocks",
]


def build_gateway(base_path: pathlib.Path, settings: Settings) -> Optional[ValidationGateway]:
    """
    Validation gateway backed by git and the configured commands, or None when
    base_path is not inside a git repository.
    """
    vcs = GitVersionControl(base_path)
    if vcs.find_repo(base_path) is None:
        return None
    checker = (
        CommandChecker(settings.check_commands, base_path, settings.command_timeout_s)
        if settings.check_commands
        else None
    )
    autofixer = (
        CommandAutofixer(settings.autofix_commands, base_path, settings.command_timeout_s)
        if settings.autofix_commands
        else None
    )
    return ValidationGateway(
        base_path,
        vcs,
        checker=checker,
        autofixer=autofixer,
        check_edits=settings.check_edits,
    )


def apply_text(
    text: str,
    base_path: pathlib.Path,
    settings: Optional[Settings] = None,
    gateway: Optional[ValidationGateway] = None,
    symbol_lookup: Optional[SymbolLookup] = None,
) -> List[ApplyReport]:
    """Parse edit blocks out of text and apply them under base_path."""
    settings = settings or Settings()
    applier = EditApplier(base_path, settings.matching, symbol_lookup)
    return apply_edit_blocks(parse_edit_blocks(text), applier, gateway)


def summarize_reports(reports: Iterable[ApplyReport]) -> str:
    """One line per report, in the form fed back to the agent."""
    lines: List[str] = []
    for report in reports:
        seq = report.original_edit_block.sequence_number
        if report.applied:
            lines.append(f"- edit_block:{seq} application succeeded")
        elif report.error:
            lines.append(f"- edit_block:{seq} application failed: {report.error}")
        else:
            lines.append(f"- edit_block:{seq} application failed due to unknown reasons")
    return "\n".join(lines)
