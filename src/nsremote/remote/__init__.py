"""
Remote build subsystem.

Builds the iOS platform of a NativeScript project on a remote Mac over SSH:
    - HostSelector: first machine of the pool that accepts a session
    - RemoteSession: paramiko connection, streamed commands, SFTP
    - FileSynchronizer: filtered push, artifact pull
    - RemoteCommandRunner: install → unlock keychain → tns build
    - OutputWatcher: fatal output signatures
    - ArtifactCacheGuard: local/remote short-circuits
    - BuildOrchestrator: the build() entry point

Public API:
    - RemoteBuilder: Protocol interface
    - BuilderFactory: Build an orchestrator from a config file
    - RemoteOptions, ProjectDescriptor, BuildOptions: Inputs
    - RemoteBuildError and subclasses: Exceptions
"""

from .base import (
    BuildOptions,
    BuildState,
    CommandResult,
    ProjectDescriptor,
    PushResult,
    RemoteBuilder,
    RemoteOptions,
    SessionState,
    TransferOutcome,
)
from .cache import ArtifactCacheGuard
from .commands import CommandStep, RemoteCommandRunner
from .exceptions import (
    ArtifactMissing,
    CommandError,
    ConfigurationError,
    InvalidRemoteCredential,
    NoHostReachable,
    RemoteBuildError,
    RemoteConnectionError,
    RemoteProjectMissing,
    SessionDisposedError,
    TransferError,
)
from .factory import BuilderFactory
from .filters import DEFAULT_EXCLUDES, TransferFilter
from .hosts import HostSelector, parse_host_entry, ping_host
from .orchestrator import BuildOrchestrator
from .session import RemoteSession
from .sync import FileSynchronizer
from .watcher import OutputSignature, OutputWatcher

__all__ = [
    # Protocol and types
    "RemoteBuilder",
    "RemoteOptions",
    "ProjectDescriptor",
    "BuildOptions",
    "BuildState",
    "SessionState",
    "CommandResult",
    "PushResult",
    "TransferOutcome",

    # Components
    "HostSelector",
    "RemoteSession",
    "FileSynchronizer",
    "TransferFilter",
    "DEFAULT_EXCLUDES",
    "RemoteCommandRunner",
    "CommandStep",
    "OutputWatcher",
    "OutputSignature",
    "ArtifactCacheGuard",
    "BuildOrchestrator",
    "BuilderFactory",
    "parse_host_entry",
    "ping_host",

    # Exceptions
    "RemoteBuildError",
    "ConfigurationError",
    "RemoteConnectionError",
    "NoHostReachable",
    "SessionDisposedError",
    "InvalidRemoteCredential",
    "RemoteProjectMissing",
    "CommandError",
    "TransferError",
    "ArtifactMissing",
]
