from __future__ import annotations

import re
from enum import Enum, auto
from typing import List, Optional

from blockedit.errors import ParseAmbiguity
from blockedit.logger import logger
from blockedit.models import EditBlock, EditType


EDIT_BLOCK_SYSTEM_INSTRUCTION = r"""# Edit format: edit blocks

**OUTPUT:** Emit each change as an edit block inside a fenced code block.

## Format

```<lang>
edit_block:<N>
<path/to/file>
<<<<<<< SEARCH
<contiguous lines copied from the current file content>
=======
<replacement lines>
>>>>>>> REPLACE
```

Replace `SEARCH` in the opening marker to change the kind of edit:
- `CREATE_FILE`: new file; put the whole content after `=======`, leave the section before it empty.
- `APPEND_TO_FILE`: lines added to the end of an existing file, after `=======`.
- `DELETE_FILE`: remove the file; both sections may be empty.

## Rules
1. `edit_block:<N>` numbers blocks; they are applied in ascending order.
2. The path line must be relative to the project root. Later blocks in the same fence may omit it to reuse the previous path.
3. SEARCH lines should match the current file; small whitespace or comment drift is tolerated.
4. Include enough SEARCH lines (at least 5 when available) to identify a single location.
5. Only use code you have seen; SEARCH lines must come from code shown to you.
6. Keep blocks small and non-overlapping.
"""

FENCE_RE = re.compile(r"^```")
OPEN_MARK = "<<<<<<<"
SPLIT_MARK = "======="
CLOSE_MARK = ">>>>>>>"
SEQUENCE_PREFIX = "edit_block:"

_MARKER_TYPES = (
    ("CREATE_FILE", EditType.create),
    ("APPEND_TO_FILE", EditType.append),
    ("DELETE_FILE", EditType.delete),
)


class ParserState(Enum):
    IDLE = auto()
    IN_OLD = auto()
    IN_NEW = auto()


def _edit_type_for_marker(line: str) -> EditType:
    for keyword, edit_type in _MARKER_TYPES:
        if keyword in line:
            return edit_type
    return EditType.update


def _parse_sequence_number(line: str) -> int:
    parts = line.split(":")
    if len(parts) != 2:
        return 0
    try:
        return int(parts[1])
    except ValueError:
        return 0


def parse_edit_blocks(text: str) -> List[EditBlock]:
    """
    Parse edit blocks out of free-form text. Only fenced sections are read:

    ```
    edit_block:1
    path/to/file
    <<<<<<< SEARCH
    old lines
    =======
    new lines
    >>>>>>> REPLACE
    ```

    Blocks are returned in order of appearance. Structural problems never
    raise; the parser recovers and logs them.
    """
    blocks: List[EditBlock] = []
    current: Optional[EditBlock] = None
    state = ParserState.IDLE
    in_fence = False
    last_path = ""
    pending_path = ""
    pending_sequence = 0

    for line_no, line in enumerate(text.splitlines(), start=1):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            if in_fence:
                # Nothing carries over into a new fence.
                state = ParserState.IDLE
                current = None
                last_path = ""
                pending_path = ""
            continue
        if not in_fence:
            continue

        if line.startswith(OPEN_MARK):
            path = pending_path or last_path
            last_path, pending_path = path, ""
            if not path:
                _recover(f"edit block at line {line_no} has no file path")
            current = EditBlock(
                file_path=path,
                edit_type=_edit_type_for_marker(line),
                sequence_number=pending_sequence,
            )
            pending_sequence = 0
            blocks.append(current)
            state = ParserState.IN_OLD
        elif line.startswith(SPLIT_MARK):
            if current is None:
                _recover(f"divider at line {line_no} outside of an edit block")
                continue
            state = ParserState.IN_NEW
        elif line.startswith(CLOSE_MARK):
            state = ParserState.IDLE
        elif state is ParserState.IN_OLD and current is not None:
            current.old_lines.append(line)
        elif state is ParserState.IN_NEW and current is not None:
            current.new_lines.append(line)
        elif line.startswith(SEQUENCE_PREFIX):
            pending_sequence = _parse_sequence_number(line)
        else:
            # Path for the next block; blank lines clear it.
            pending_path = line.strip()

    for block in blocks:
        if (
            block.edit_type in (EditType.create, EditType.append)
            and not block.new_lines
            and block.old_lines
        ):
            # Missing divider: the content is meant as the new lines.
            _recover(f"{block.edit_type.value} block for {block.file_path} has no divider")
            block.new_lines = block.old_lines
            block.old_lines = []

    return blocks


def _recover(msg: str) -> None:
    logger.warning("edit block parse recovery", error=str(ParseAmbiguity(msg)))
