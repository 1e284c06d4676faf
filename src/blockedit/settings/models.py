from typing import Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class LoggingSettings(BaseModel):
    # Level for the package's own loggers unless overridden below.
    default_level: LogLevel = LogLevel.info
    # Mapping of logger name -> level override (e.g., {"git": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)
    # Render events as JSON lines instead of the console format.
    json_format: bool = False


class MatchSettings(BaseModel):
    """
    Tunables for fuzzy edit block matching. One frozen value is threaded
    through the matcher and resolver.
    - similarity_threshold: per-line similarity needed to consider lines aligned
    - high_score_threshold: per-line similarity counted as a confident match
    - min_acceptable_high_score_ratio: share of confident lines a match needs
    - expand_rate: lines added on each side per disambiguation step
    - visibility_margin_divisor / max_visibility_margin: slack around visible ranges
    - visibility_fallback: opt-in retry without visible ranges when they filter out every match
    - closest_match_report_threshold: minimum score for closest-match diagnostics
    - max_diagnostic_lines: lines shown in failed/found diagnostics
    """

    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = 0.85
    high_score_threshold: float = 0.925
    min_acceptable_high_score_ratio: float = 0.95
    expand_rate: int = Field(default=1, ge=1)
    visibility_margin_divisor: int = Field(default=8, ge=1)
    max_visibility_margin: int = Field(default=5, ge=0)
    visibility_fallback: bool = False
    closest_match_report_threshold: float = 0.2
    max_diagnostic_lines: int = Field(default=5, ge=1)


class CommandConfig(BaseModel):
    # Shell command; "{file}" is replaced with the edited file's relative path.
    command: str
    # Directory relative to the project root to run the command in.
    working_dir: Optional[str] = None


class Settings(BaseModel):
    check_edits: bool = True
    check_commands: List[CommandConfig] = Field(default_factory=list)
    autofix_commands: List[CommandConfig] = Field(default_factory=list)
    command_timeout_s: float = 120.0
    matching: MatchSettings = Field(default_factory=MatchSettings)
    logging: Optional[LoggingSettings] = None

    @field_validator("check_commands", "autofix_commands", mode="before")
    @classmethod
    def _coerce_commands(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            return v
        return [{"command": item} if isinstance(item, str) else item for item in v]
