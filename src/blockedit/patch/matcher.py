from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from blockedit.gateway.base import SymbolLookup
from blockedit.logger import logger
from blockedit.models import EditBlock, FileRange
from blockedit.settings.models import MatchSettings

from .lines import string_similarity
from .ranges import merged_ranges_for_file


@dataclass
class PotentialMatch:
    # 0-based file line that matched the anchor
    index: int
    score: float


def find_potential_matches(
    old_lines: List[str],
    file_lines: List[str],
    anchor: int,
    settings: MatchSettings,
    visible_ranges: Optional[List[FileRange]] = None,
) -> List[PotentialMatch]:
    """
    File lines that could correspond to old_lines[anchor]. Exact matches win
    over trimmed matches, which win over similar ones. When visible_ranges is
    non-empty, a candidate must fit its whole block inside one of them.
    """
    if not old_lines:
        return []
    anchor_line = old_lines[anchor]

    found = [
        PotentialMatch(idx, 1.0) for idx, line in enumerate(file_lines) if line == anchor_line
    ]
    if not found:
        trimmed = anchor_line.strip()
        found = [
            PotentialMatch(idx, 0.999)
            for idx, line in enumerate(file_lines)
            if line.strip() == trimmed
        ]
    if not found:
        for idx, line in enumerate(file_lines):
            score = string_similarity(line, anchor_line)
            if score >= settings.similarity_threshold:
                found.append(PotentialMatch(idx, score))

    if visible_ranges:
        found = [
            m
            for m in found
            if _is_visible(m.index, len(old_lines), visible_ranges, settings)
        ]
    return found


def _is_visible(
    index: int, length: int, ranges: List[FileRange], settings: MatchSettings
) -> bool:
    for r in ranges:
        # Lines drift as other blocks are applied, so allow some slack.
        margin = min(
            (r.end_line - r.start_line) // settings.visibility_margin_divisor,
            settings.max_visibility_margin,
        )
        start = r.start_line - 1 - margin
        end = r.end_line - 1 + margin
        if start <= index and index + length - 1 <= end:
            return True
    return False


def visible_ranges_for_block(
    block: EditBlock, symbol_lookup: Optional[SymbolLookup] = None
) -> List[FileRange]:
    """
    Merged visible ranges of the block's own file, widened with the current
    location of any symbols the agent looked at.
    """
    if not block.visible_file_ranges:
        return []
    ranges = list(block.visible_file_ranges)
    if symbol_lookup is not None and block.visible_code_blocks:
        for code_block in block.visible_code_blocks:
            if not code_block.symbol or code_block.file_path != block.file_path:
                continue
            try:
                ranges.extend(symbol_lookup.resolve(block.file_path, code_block.symbol))
            except Exception as e:
                logger.warning(
                    "symbol lookup failed",
                    file_path=block.file_path,
                    symbol=code_block.symbol,
                    error=str(e),
                )
    return merged_ranges_for_file(ranges, block.file_path)
