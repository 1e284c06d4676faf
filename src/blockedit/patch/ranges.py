from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from blockedit.models import EditBlock, FileRange

# Lengths are optional in unified diff headers and default to 1.
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class LineEdit:
    # 0-based line of the original file where a run of +/- lines begins
    edit_start_line_number: int
    # Negative for net deletions
    net_lines_added: int = 0


def merged_ranges_for_file(ranges: Iterable[FileRange], file_path: str) -> List[FileRange]:
    """Sort the file's ranges and join those that overlap or touch."""
    own = sorted(
        (r for r in ranges if r.file_path == file_path), key=lambda r: r.start_line
    )
    merged: List[FileRange] = []
    for r in own:
        if merged and merged[-1].end_line >= r.start_line - 1:
            last = merged[-1]
            if r.end_line > last.end_line:
                merged[-1] = FileRange(
                    file_path=file_path, start_line=last.start_line, end_line=r.end_line
                )
        else:
            merged.append(r.model_copy())
    return merged


def line_edits_from_diff(diff: str) -> List[LineEdit]:
    """
    One LineEdit per consecutive run of added/removed lines in a unified diff.
    Hunk bodies are bounded by the line counts in their headers.
    """
    edits: List[LineEdit] = []
    if not diff:
        return edits

    lines = diff.split("\n")
    i = 0
    while i < len(lines):
        m = HUNK_HEADER_RE.match(lines[i])
        i += 1
        if not m:
            continue
        old_remaining = int(m.group(2)) if m.group(2) is not None else 1
        new_remaining = int(m.group(4)) if m.group(4) is not None else 1
        orig_line = int(m.group(1)) - 1
        # "-0,0" hunks (file creation) start before the first line.
        if old_remaining == 0 and orig_line < 0:
            orig_line = 0
        current: Optional[LineEdit] = None

        while i < len(lines) and (old_remaining > 0 or new_remaining > 0):
            line = lines[i]
            if line.startswith("\\"):
                # "\ No newline at end of file"
                i += 1
                continue
            if line.startswith("+"):
                if current is None:
                    current = LineEdit(edit_start_line_number=orig_line)
                current.net_lines_added += 1
                new_remaining -= 1
            elif line.startswith("-"):
                if current is None:
                    current = LineEdit(edit_start_line_number=orig_line)
                current.net_lines_added -= 1
                old_remaining -= 1
                orig_line += 1
            else:
                if current is not None:
                    edits.append(current)
                    current = None
                old_remaining -= 1
                new_remaining -= 1
                orig_line += 1
            i += 1

        if current is not None:
            edits.append(current)

    return edits


def shift_visible_ranges(
    blocks: Iterable[EditBlock], file_path: str, edits: List[LineEdit]
) -> None:
    """
    Shift, in place, the visible ranges of blocks targeting file_path so they
    point at the same code after the edits.
    """
    if not edits:
        return
    for block in blocks:
        if block.file_path != file_path or not block.visible_file_ranges:
            continue
        for file_range in block.visible_file_ranges:
            for edit in edits:
                if file_range.start_line >= edit.edit_start_line_number:
                    file_range.start_line += edit.net_lines_added
                if file_range.end_line >= edit.edit_start_line_number:
                    file_range.end_line += edit.net_lines_added


def update_ranges_from_diff(
    blocks: Iterable[EditBlock], file_path: str, diff: str
) -> List[LineEdit]:
    edits = line_edits_from_diff(diff)
    shift_visible_ranges(blocks, file_path, edits)
    return edits
