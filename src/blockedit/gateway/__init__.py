from .base import Autofixer, Checker, SymbolLookup, VersionControl
from .commands import CommandAutofixer, CommandChecker, run_command
from .git import GitVersionControl, VersionControlError
from .validation import ValidationGateway, fix_check_hint

__all__ = [
    "Autofixer",
    "Checker",
    "SymbolLookup",
    "VersionControl",
    "CommandAutofixer",
    "CommandChecker",
    "run_command",
    "GitVersionControl",
    "VersionControlError",
    "ValidationGateway",
    "fix_check_hint",
]
