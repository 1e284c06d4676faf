from __future__ import annotations

import re
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, List, Optional, Tuple

from blockedit.models import ApplyReport, CodeBlock, EditBlock, EditType, FileRange
from blockedit.settings.models import MatchSettings

from .parser import parse_edit_blocks
from .ranges import merged_ranges_for_file
from .resolver import (
    MatchCandidate,
    find_acceptable_match,
    find_closest_match,
    is_better_match,
)

NO_CONTEXT_MESSAGE = (
    "No code context found in the chat history that matches this edit block's "
    "old lines. You must ensure the old lines are present in the code context by "
    "using one of the tools before making an edit block."
)

_LINE_SPLIT_RE = re.compile(r"\r?\n")


def code_blocks_from_edit_block(block: EditBlock) -> List[CodeBlock]:
    """
    Code an edit block makes visible to the blocks after it. A created file
    is a real window onto the new file; other blocks give synthetic snippets.
    """
    if block.edit_type is EditType.create and block.new_lines:
        return [
            CodeBlock(
                file_path=block.file_path,
                code="\n".join(block.new_lines),
                start_line=1,
                end_line=len(block.new_lines),
            )
        ]
    out: List[CodeBlock] = []
    for lines in (block.old_lines, block.new_lines):
        if lines:
            out.append(CodeBlock(file_path=block.file_path, code="\n".join(lines)))
    return out


def extract_history_code_blocks(messages: Iterable[str]) -> List[CodeBlock]:
    """Synthetic code blocks from the edit blocks in earlier messages."""
    out: List[CodeBlock] = []
    for text in messages:
        for block in parse_edit_blocks(text):
            for lines in (block.old_lines, block.new_lines):
                if lines:
                    out.append(CodeBlock(file_path=block.file_path, code="\n".join(lines)))
    return out


def code_blocks_to_ranges(code_blocks: Iterable[CodeBlock], file_path: str) -> List[FileRange]:
    ranges = [
        FileRange(file_path=cb.file_path, start_line=cb.start_line, end_line=cb.end_line)
        for cb in code_blocks
        if not cb.synthetic and cb.start_line <= cb.end_line
    ]
    return merged_ranges_for_file(ranges, file_path)


@dataclass(frozen=True)
class _VisibilityState:
    blocks: Tuple[EditBlock, ...] = ()
    # Code blocks contributed by the blocks seen so far in this message
    prefix: Tuple[CodeBlock, ...] = ()


def attach_visibility(
    blocks: Iterable[EditBlock],
    history_code_blocks: Iterable[CodeBlock],
    include_edit_blocks: bool = True,
) -> List[EditBlock]:
    """
    Return copies of blocks with visible_code_blocks and visible_file_ranges
    set. Each block sees the history plus, when include_edit_blocks is set,
    whatever the preceding blocks of the same message showed.
    """
    history = tuple(history_code_blocks)

    def step(state: _VisibilityState, block: EditBlock) -> _VisibilityState:
        available = history + state.prefix if include_edit_blocks else history
        visible = [cb for cb in available if cb.file_path == block.file_path]
        attached = block.model_copy(
            update={
                "visible_code_blocks": visible,
                "visible_file_ranges": code_blocks_to_ranges(available, block.file_path),
            }
        )
        prefix = state.prefix
        if include_edit_blocks:
            prefix = prefix + tuple(code_blocks_from_edit_block(block))
        return _VisibilityState(blocks=state.blocks + (attached,), prefix=prefix)

    return list(reduce(step, blocks, _VisibilityState()).blocks)


def parse_edit_blocks_with_visibility(
    text: str, history: Iterable[str] = (), include_edit_blocks: bool = True
) -> List[EditBlock]:
    history_blocks = extract_history_code_blocks(history) if include_edit_blocks else []
    return attach_visibility(parse_edit_blocks(text), history_blocks, include_edit_blocks)


def _ungrounded_message(
    block: EditBlock, closest: MatchCandidate, max_lines: int
) -> str:
    extra = ""
    if closest.failed_to_match:
        extra += "\nFailed to match these lines:\n\n%s\n" % "\n".join(
            closest.failed_to_match[:max_lines]
        )
        if closest.found_instead:
            extra += (
                "\nInstead, found these lines in the closest match in the code context:\n\n%s\n"
                % "\n".join(closest.found_instead[:max_lines])
            )
    old = "\n".join(block.old_lines)
    return (
        "\nNo code context found in the chat history that matches the edit\n"
        "block's old lines, which I'll repeat here:\n\n"
        f"{old}\n{extra}\n\n"
        "You must ensure the old lines are present in the code context by using one of\n"
        "the tools before making an edit block."
    )


def validate_edit_blocks(
    blocks: Iterable[EditBlock], settings: Optional[MatchSettings] = None
) -> Tuple[List[EditBlock], List[ApplyReport]]:
    """
    Split blocks into those whose old lines can be found in code the agent
    was shown and reports for the rest. Blocks without old lines are valid.
    """
    settings = settings or MatchSettings()
    valid: List[EditBlock] = []
    invalid: List[ApplyReport] = []

    for block in blocks:
        if not block.old_lines:
            valid.append(block)
            continue

        grounded = False
        closest: Optional[MatchCandidate] = None
        for code_block in block.visible_code_blocks or []:
            code_lines = _LINE_SPLIT_RE.split(code_block.code)
            _, acceptable = find_acceptable_match(block.old_lines, code_lines, settings)
            if acceptable:
                grounded = True
                break
            current, _ = find_closest_match(block.old_lines, code_lines, settings)
            if current is not None and is_better_match(current, closest):
                closest = current

        if grounded:
            valid.append(block)
        elif closest is not None and closest.score > settings.closest_match_report_threshold:
            invalid.append(
                ApplyReport(
                    original_edit_block=block,
                    error=_ungrounded_message(block, closest, settings.max_diagnostic_lines),
                )
            )
        else:
            invalid.append(ApplyReport(original_edit_block=block, error=NO_CONTEXT_MESSAGE))
    return valid, invalid
