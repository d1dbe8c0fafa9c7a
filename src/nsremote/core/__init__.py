"""Core dependency injection infrastructure for nsremote.

Protocol-based abstractions for the local side effects of a remote build
(logging, filesystem, config loading), with production implementations.
The orchestrator receives these at construction time, so unit tests can
substitute mocks for all of them.
"""

from nsremote.core.protocols import (
    Logger,
    FileSystemService,
    ConfigLoader,
)

from nsremote.core.implementations import (
    ConsoleLogger,
    RealFileSystemService,
    YamlConfigLoader,
)

__all__ = [
    # Protocols
    "Logger",
    "FileSystemService",
    "ConfigLoader",
    # Implementations
    "ConsoleLogger",
    "RealFileSystemService",
    "YamlConfigLoader",
]
