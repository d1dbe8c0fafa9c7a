"""Production implementations of dependency injection protocols.

This module provides real implementations that wrap actual local side effects
(console output, filesystem, YAML parsing). For testing, use mocks or test
doubles instead of these implementations.
"""

import os
import sys
import yaml
from pathlib import Path
from typing import Dict, Any, List, Union, Iterator, Tuple


class ConsoleLogger:
    """Production logger that prints to console (stdout/stderr)."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def info(self, message: str) -> None:
        """Print info message to stdout."""
        print(message, flush=True)

    def warning(self, message: str) -> None:
        """Print warning message to stdout."""
        print(f"Warning: {message}", flush=True)

    def error(self, message: str) -> None:
        """Print error message to stderr."""
        print(f"Error: {message}", file=sys.stderr, flush=True)

    def debug(self, message: str) -> None:
        """Print debug message to stdout, only in verbose mode."""
        if self.verbose:
            print(f"Debug: {message}", flush=True)


class RealFileSystemService:
    """Production filesystem service using real pathlib and os operations."""

    def exists(self, path: Union[str, Path]) -> bool:
        return Path(path).exists()

    def read_file(self, path: Union[str, Path]) -> str:
        with open(path, 'r') as f:
            return f.read()

    def remove_file(self, path: Union[str, Path]) -> None:
        Path(path).unlink()

    def walk(self, path: Union[str, Path]) -> Iterator[Tuple[str, List[str], List[str]]]:
        return os.walk(path)


class YamlConfigLoader:
    """Production config loader using real YAML parser."""

    def __init__(self, filesystem: 'RealFileSystemService'):
        """Initialize with filesystem service for reading files."""
        self.fs = filesystem

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file and return parsed dictionary.

        JSON is a subset of YAML, so .nsremote.config.json loads here too.
        An empty file yields an empty dict.
        """
        content = self.fs.read_file(path)
        return yaml.safe_load(content) or {}
