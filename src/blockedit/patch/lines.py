from __future__ import annotations

import re
from typing import List

import Levenshtein

# Blank or made only of closing delimiters, e.g. "    })" or "]".
WS_OR_CLOSING_RE = re.compile(r"^[\s})\]]*$")
WS_RE = re.compile(r"^\s*$")
# Only line comments in // and # languages are recognized.
COMMENT_RE = re.compile(r"^\s*(//|#).*$")


def is_whitespace_or_closing(line: str) -> bool:
    return WS_OR_CLOSING_RE.match(line) is not None


def is_whitespace(line: str) -> bool:
    return WS_RE.match(line) is not None


def is_comment(line: str) -> bool:
    return COMMENT_RE.match(line) is not None


def is_whitespace_or_comment(line: str) -> bool:
    return is_whitespace(line) or is_comment(line)


def anchor_index(lines: List[str]) -> int:
    """
    Index of the first line worth anchoring on: not blank and not just closing
    delimiters. Falls back to the last line.
    """
    i = 0
    while i < len(lines) - 1 and is_whitespace_or_closing(lines[i]):
        i += 1
    return i


def _remove_spacing(s: str) -> str:
    return s.replace(" ", "").replace("\t", "")


def _levenshtein_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def string_similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] tolerant of indentation and spacing changes.
    Identical strings score 1.0, strings equal after trimming 0.95, and strings
    equal once spaces and tabs are removed 0.9; otherwise edit distance decides.
    """
    if a == b:
        return 1.0
    candidates = []
    if a.strip() == b.strip():
        candidates.append(0.95)
    a_compact, b_compact = _remove_spacing(a), _remove_spacing(b)
    if a_compact == b_compact:
        candidates.append(0.9)
    sim = _levenshtein_similarity(a, b)
    sim_compact = _levenshtein_similarity(a_compact, b_compact)
    candidates.append(sim)
    candidates.append(0.4 * sim + 0.6 * sim_compact)
    return max(candidates)
