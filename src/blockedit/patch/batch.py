from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from blockedit.errors import EditBlockError
from blockedit.gateway.validation import ValidationGateway
from blockedit.logger import logger
from blockedit.models import ApplyReport, EditBlock, EditType
from blockedit.settings.models import MatchSettings

from .applier import EditApplier
from .ranges import update_ranges_from_diff
from .visibility import validate_edit_blocks

ApplyFn = Callable[[EditApplier, EditBlock], ApplyReport]

# Every EditType has exactly one handler.
EDIT_HANDLERS: Dict[EditType, ApplyFn] = {
    EditType.create: EditApplier.create,
    EditType.update: EditApplier.update,
    EditType.append: EditApplier.append,
    EditType.delete: EditApplier.delete,
}


def _tracking_diff(report: ApplyReport) -> str:
    # The final diff includes autofix changes, but for files unknown to version
    # control it is taken against /dev/null and covers the whole file.
    if report.final_diff and "--- /dev/null" not in report.final_diff:
        return report.final_diff
    return report.initial_diff


def apply_edit_blocks(
    blocks: Iterable[EditBlock],
    applier: EditApplier,
    gateway: Optional[ValidationGateway] = None,
) -> List[ApplyReport]:
    """
    Apply blocks one at a time in ascending sequence_number order, one report
    per block. After a block is applied, the visible ranges of later blocks in
    the same file are shifted to account for its diff.
    """
    ordered = sorted(blocks, key=lambda b: b.sequence_number)
    reports: List[ApplyReport] = []

    for i, block in enumerate(ordered):
        try:
            report = EDIT_HANDLERS[block.edit_type](applier, block)
        except EditBlockError as e:
            logger.info(
                "edit block not applied",
                file_path=block.file_path,
                sequence_number=block.sequence_number,
                error_type=type(e).__name__,
            )
            reports.append(ApplyReport(original_edit_block=block, error=str(e)))
            continue

        if gateway is not None:
            gateway.process(report)
        reports.append(report)

        if not report.applied:
            continue
        logger.info(
            "edit block applied",
            file_path=block.file_path,
            sequence_number=block.sequence_number,
            edit_type=block.edit_type.value,
        )
        # Created and deleted files have no earlier lines for ranges to track.
        if block.edit_type in (EditType.update, EditType.append):
            update_ranges_from_diff(ordered[i + 1 :], block.file_path, _tracking_diff(report))

    return reports


def validate_and_apply_edit_blocks(
    blocks: Iterable[EditBlock],
    applier: EditApplier,
    gateway: Optional[ValidationGateway] = None,
    settings: Optional[MatchSettings] = None,
) -> List[ApplyReport]:
    """
    Apply only the blocks grounded in code the agent has seen; the rest get
    a failure report. Reports come back in sequence_number order.
    """
    valid, invalid = validate_edit_blocks(blocks, settings)
    reports = apply_edit_blocks(valid, applier, gateway) + invalid
    return sorted(reports, key=lambda r: r.original_edit_block.sequence_number)
