from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class EditType(str, Enum):
    create = "create"
    update = "update"
    append = "append"
    delete = "delete"


class FileRange(BaseModel):
    """1-based, inclusive line window of a file."""

    file_path: str
    start_line: int
    end_line: int

    @model_validator(mode="after")
    def _check_bounds(self) -> "FileRange":
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line ({self.start_line}) must not exceed end_line ({self.end_line})"
            )
        return self


class CodeBlock(BaseModel):
    """
    A snippet of code the agent had in front of it when writing an edit block.
    start_line/end_line of -1 mark a synthetic block built from edit block text
    rather than read from a real file window.
    """

    file_path: str
    code: str
    start_line: int = -1
    end_line: int = -1
    symbol: Optional[str] = None

    @property
    def synthetic(self) -> bool:
        return self.start_line == -1 and self.end_line == -1


class EditBlock(BaseModel):
    file_path: str
    old_lines: List[str] = Field(default_factory=list)
    new_lines: List[str] = Field(default_factory=list)
    edit_type: EditType = EditType.update
    sequence_number: int = 0
    visible_file_ranges: Optional[List[FileRange]] = None
    visible_code_blocks: Optional[List[CodeBlock]] = None


class CheckResult(BaseModel):
    success: bool
    message: str = ""


class AutofixResult(BaseModel):
    changed: bool = False
    output: str = ""


class ApplyReport(BaseModel):
    original_edit_block: EditBlock
    applied: bool = False
    error: str = ""
    # Diff before autofixes ran
    initial_diff: str = ""
    # Diff after autofixes ran; only set when checks are enabled
    final_diff: str = ""
    check_result: Optional[CheckResult] = None
    autofix_output: str = ""

    def add_error(self, msg: str) -> None:
        self.error = f"{self.error}\n{msg}" if self.error else msg
