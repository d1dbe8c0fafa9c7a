"""Protocol definitions for dependency injection.

This module defines Protocol-based abstractions for the local side effects of a
remote build: logging, filesystem access and config loading. Protocols use
structural typing, so any class implementing these methods satisfies the
Protocol without explicit inheritance.

Benefits:
- Easy to mock in tests (Mock(spec=FileSystemService))
- No inheritance required
- Clear interface contracts between the orchestrator and its caller
"""

from typing import Protocol, Dict, Any, List, Union, Iterator, Tuple
from pathlib import Path


class Logger(Protocol):
    """Abstraction for logging operations.

    Replaces direct print() statements throughout the codebase.
    Remote command output is forwarded through info().
    """

    def info(self, message: str) -> None:
        """Log informational message."""
        ...

    def warning(self, message: str) -> None:
        """Log warning message."""
        ...

    def error(self, message: str) -> None:
        """Log error message."""
        ...

    def debug(self, message: str) -> None:
        """Log debug message."""
        ...


class FileSystemService(Protocol):
    """Abstraction for local filesystem operations.

    Wraps the Path and os.walk operations used by the cache guard and the
    file synchronizer so both can be tested without a real project tree.
    """

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if path exists."""
        ...

    def read_file(self, path: Union[str, Path]) -> str:
        """Read entire file as string."""
        ...

    def remove_file(self, path: Union[str, Path]) -> None:
        """Delete a single file."""
        ...

    def walk(self, path: Union[str, Path]) -> Iterator[Tuple[str, List[str], List[str]]]:
        """Top-down directory walk; callers may prune the dirnames list in place."""
        ...


class ConfigLoader(Protocol):
    """Abstraction for configuration file loading.

    Wraps YAML loading to enable testing with mock configurations
    without requiring actual config files.
    """

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML (or JSON) file and return parsed dictionary."""
        ...
