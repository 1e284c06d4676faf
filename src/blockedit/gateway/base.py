from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from blockedit.models import AutofixResult, CheckResult, FileRange


class VersionControl(ABC):
    """
    Version control operations the batch relies on to keep or revert an
    applied edit. Paths are relative to the project root.
    """

    @abstractmethod
    def find_repo(self, path: Path) -> Optional[Path]:
        """
        Return the repository root if path is inside a repository; otherwise
        None.
        """
        raise NotImplementedError

    @abstractmethod
    def stage(self, file_path: str) -> None: ...

    @abstractmethod
    def restore(self, file_path: str) -> None:
        """Reset the working tree file to its staged content."""
        ...

    @abstractmethod
    def diff(self, file_path: str) -> str:
        """Unified diff of unstaged changes to file_path."""
        ...


class Checker(ABC):
    @abstractmethod
    def check(self, file_path: str) -> CheckResult: ...


class Autofixer(ABC):
    @abstractmethod
    def run(self, file_path: str) -> AutofixResult: ...


class SymbolLookup(ABC):
    """Finds where a named symbol is currently defined in a file."""

    @abstractmethod
    def resolve(self, file_path: str, symbol: str) -> List[FileRange]: ...
