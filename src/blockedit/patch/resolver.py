from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from blockedit.errors import AmbiguousMatchError, MatchContractError, NoMatchError
from blockedit.gateway.base import SymbolLookup
from blockedit.logger import logger
from blockedit.models import EditBlock, FileRange
from blockedit.settings.models import MatchSettings

from .lines import (
    anchor_index,
    is_whitespace,
    is_whitespace_or_closing,
    is_whitespace_or_comment,
    string_similarity,
)
from .matcher import find_potential_matches, visible_ranges_for_block

DEFAULT_MATCH_SETTINGS = MatchSettings()


@dataclass
class MatchCandidate:
    # 0-based first file line of the aligned span
    index: int
    successful: bool = False
    # File lines aligned with the old lines; this span gets replaced
    lines: List[str] = field(default_factory=list)
    score: float = 0.0
    high_score_ratio: float = 0.0
    failed_to_match: List[str] = field(default_factory=list)
    found_instead: List[str] = field(default_factory=list)

    def is_acceptable(self, settings: MatchSettings) -> bool:
        return (
            self.successful
            and self.high_score_ratio > settings.min_acceptable_high_score_ratio
        )


def _one_sided_file_filler(file_line: str, old_line: str) -> bool:
    return (is_whitespace_or_comment(file_line) and not is_whitespace_or_comment(old_line)) or (
        is_whitespace(file_line) and not is_whitespace(old_line)
    )


def _score_candidate(
    old_lines: List[str],
    file_lines: List[str],
    start: int,
    anchor: int,
    skipped: int,
    settings: MatchSettings,
) -> MatchCandidate:
    # Back up over blank/closing lines that precede the anchor in the file,
    # but never onto the first line.
    offset = 0
    while (
        offset < anchor
        and start - offset - 1 > 0
        and is_whitespace_or_closing(file_lines[start - offset - 1])
    ):
        offset += 1
    index = start - offset

    matched: List[str] = []
    failed_to_match: List[str] = []
    found_instead: List[str] = []
    total = 0.0
    scored = 0
    high = 0
    successful = True

    old_i, file_i = 0, index
    while old_i < len(old_lines):
        old_line = old_lines[old_i]
        if file_i >= len(file_lines):
            if is_whitespace_or_comment(old_line):
                old_i += 1
                file_i += 1
                continue
            successful = False
            break
        file_line = file_lines[file_i]
        score = string_similarity(file_line, old_line)

        if score < settings.similarity_threshold:
            if _one_sided_file_filler(file_line, old_line):
                matched.append(file_line)
                file_i += 1
                continue
            if _one_sided_file_filler(old_line, file_line):
                old_i += 1
                continue
            if scored == 0 and skipped > 0:
                old_i += 1
                continue

        matched.append(file_line)
        scored += 1
        if score > settings.high_score_threshold:
            high += 1
        else:
            failed_to_match.append(old_line)
            found_instead.append(file_line)
        total += score
        old_i += 1
        file_i += 1

    # Unsuccessful candidates stop early, so they share a common denominator.
    denominator = scored + skipped if successful else len(old_lines)
    return MatchCandidate(
        index=index,
        successful=successful,
        lines=matched,
        score=total / denominator if denominator else 0.0,
        high_score_ratio=high / denominator if denominator else 0.0,
        failed_to_match=failed_to_match,
        found_instead=found_instead,
    )


def is_better_match(candidate: MatchCandidate, best: Optional[MatchCandidate]) -> bool:
    if best is None:
        return candidate.successful or candidate.score > 0
    if candidate.successful and candidate.score > best.score:
        return True
    if not best.successful and candidate.successful:
        return True
    return not best.successful and candidate.score > best.score


def find_closest_match(
    old_lines: List[str],
    file_lines: List[str],
    settings: MatchSettings = DEFAULT_MATCH_SETTINGS,
    visible_ranges: Optional[List[FileRange]] = None,
) -> Tuple[Optional[MatchCandidate], List[MatchCandidate]]:
    """
    Score every candidate location of old_lines in file_lines.
    Returns (best, all_candidates); best is None when nothing scored.
    """
    if not old_lines:
        return None, []

    anchor = anchor_index(old_lines)
    potentials = find_potential_matches(
        old_lines, file_lines, anchor, settings, visible_ranges
    )
    skipped = 0
    if not potentials and anchor + 1 < len(old_lines):
        # The anchor line itself may have changed; try the next one.
        skipped = 1
        anchor = anchor + 1 + anchor_index(old_lines[anchor + 1 :])
        potentials = find_potential_matches(
            old_lines, file_lines, anchor, settings, visible_ranges
        )

    best: Optional[MatchCandidate] = None
    candidates: List[MatchCandidate] = []
    for potential in potentials:
        candidate = _score_candidate(
            old_lines, file_lines, potential.index, anchor, skipped, settings
        )
        candidates.append(candidate)
        if is_better_match(candidate, best):
            best = candidate
    logger.debug(
        "scored match candidates", candidates=len(candidates), skipped_anchor=skipped
    )
    return best, candidates


def find_acceptable_match(
    old_lines: List[str],
    file_lines: List[str],
    settings: MatchSettings = DEFAULT_MATCH_SETTINGS,
    visible_ranges: Optional[List[FileRange]] = None,
) -> Tuple[Optional[MatchCandidate], List[MatchCandidate]]:
    """
    Best match plus all acceptable matches, or (None, []) when even the best
    one is not acceptable. More than one acceptable match means ambiguity.
    """
    best, candidates = find_closest_match(old_lines, file_lines, settings, visible_ranges)
    if best is None or not best.is_acceptable(settings):
        return None, []
    return best, [c for c in candidates if c.is_acceptable(settings)]


def _is_single_acceptable_match(
    lines: List[str], file_lines: List[str], settings: MatchSettings
) -> bool:
    _, acceptable = find_acceptable_match(lines, file_lines, settings)
    if not acceptable:
        raise MatchContractError(
            "expected the expanded window to match its own file location"
        )
    return len(acceptable) == 1


def _grow(
    candidate: MatchCandidate, file_lines: List[str], rate: int
) -> MatchCandidate:
    start = max(0, candidate.index - rate)
    end = min(len(file_lines), candidate.index + len(candidate.lines) + rate)
    return replace(candidate, index=start, lines=file_lines[start:end])


def expand_until_unambiguous(
    file_lines: List[str],
    matches: List[MatchCandidate],
    settings: MatchSettings = DEFAULT_MATCH_SETTINGS,
) -> List[MatchCandidate]:
    """
    Grow each match's window with surrounding file lines until the window
    matches exactly one place in the file, then by one more step.
    """
    expanded: List[MatchCandidate] = []
    for match in matches:
        while len(match.lines) < len(file_lines) and not _is_single_acceptable_match(
            match.lines, file_lines, settings
        ):
            match = _grow(match, file_lines, settings.expand_rate)
        expanded.append(_grow(match, file_lines, settings.expand_rate))
    return expanded


def resolve_match(
    block: EditBlock,
    file_lines: List[str],
    settings: MatchSettings = DEFAULT_MATCH_SETTINGS,
    symbol_lookup: Optional[SymbolLookup] = None,
) -> MatchCandidate:
    """
    The single location in file_lines that block.old_lines refers to.
    Raises NoMatchError or AmbiguousMatchError.
    """
    ranges = visible_ranges_for_block(block, symbol_lookup)
    best, acceptable = find_acceptable_match(
        block.old_lines, file_lines, settings, ranges
    )
    fell_back = False
    if best is None and ranges and settings.visibility_fallback:
        logger.info(
            "no match within visible ranges, retrying over the whole file",
            file_path=block.file_path,
            sequence_number=block.sequence_number,
        )
        fell_back = True
        best, acceptable = find_acceptable_match(block.old_lines, file_lines, settings)

    if len(acceptable) > 1:
        logger.info(
            "ambiguous edit block match",
            file_path=block.file_path,
            matches=[m.index + 1 for m in acceptable],
        )
        raise AmbiguousMatchError(
            block.file_path, expand_until_unambiguous(file_lines, acceptable, settings)
        )

    if best is None:
        closest, _ = find_closest_match(
            block.old_lines, file_lines, settings, None if fell_back else ranges
        )
        raise NoMatchError(block.old_lines, closest, settings.max_diagnostic_lines)

    logger.debug(
        "edit block matched",
        file_path=block.file_path,
        line=best.index + 1,
        score=round(best.score, 3),
    )
    return best
