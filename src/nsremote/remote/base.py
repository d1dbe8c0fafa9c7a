"""
Remote build types and the RemoteBuilder protocol.

Value objects shared by the session, synchronizer, cache guard and
orchestrator. Everything here is immutable for the lifetime of one build.
"""

import glob
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from .exceptions import ConfigurationError

ARTIFACT_BUILD_DIR = "build/Debug-iphoneos"
ARTIFACT_PATTERN_DIR = "build/*-iphoneos"
SIDECAR_NAME = ".nsbuildinfo"
DEFAULT_NATIVE_ROOT = "platforms/ios"
DEFAULT_REMOTE_BUILDS_DIR = "~/tmp"
DEFAULT_CONCURRENCY = 10


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISPOSED = "disposed"


class BuildState(Enum):
    IDLE = "idle"
    CHECKING_LOCAL_CACHE = "checking-local-cache"
    SELECTING_HOST = "selecting-host"
    CHECKING_REMOTE_CACHE = "checking-remote-cache"
    SYNCING = "syncing"
    BUILDING = "building"
    RETRIEVING = "retrieving"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class RemoteOptions:
    """
    Remote build settings supplied by the caller.

    Attributes:
        machines: Host pool in priority order ("host", "host:2222", "[fe80::1]:22")
        ssh_user: Login on every machine of the pool
        remote_builds_dir: Parent of all remote project directories
        keychain_password: Login keychain password for code signing (optional)
        ssh_port: Default SSH port for entries without an explicit port
        ssh_password: Password auth; agent and default keys are tried otherwise
        ssh_key_path: Explicit private key file
        connect_timeout: Per-host handshake timeout in seconds
        ping_first: Skip hosts that do not answer a single ping
        push_concurrency: Simultaneous uploads
        pull_concurrency: Simultaneous downloads
        build_command: NativeScript CLI executable on the remote
    """
    machines: Tuple[str, ...]
    ssh_user: str
    remote_builds_dir: str = DEFAULT_REMOTE_BUILDS_DIR
    keychain_password: Optional[str] = None
    ssh_port: int = 22
    ssh_password: Optional[str] = None
    ssh_key_path: Optional[str] = None
    connect_timeout: float = 1.0
    ping_first: bool = False
    push_concurrency: int = DEFAULT_CONCURRENCY
    pull_concurrency: int = DEFAULT_CONCURRENCY
    build_command: str = "tns"

    @classmethod
    def from_config(cls, section: Dict[str, Any]) -> "RemoteOptions":
        """
        Build options from the "ssh" section of .nsremote.config.json.

        Keys use the config file's camelCase names:
            {"machines": ["mac-mini", "10.42.0.2"], "sshUser": "ben",
             "keychainPassword": "...", "remoteBuildsDir": "/Users/ben/tmp"}

        Raises:
            ConfigurationError: If required keys are missing or malformed
        """
        if not isinstance(section, dict):
            raise ConfigurationError("Config section \"ssh\" must be an object")

        machines = section.get("machines")
        if isinstance(machines, str):
            machines = [machines]
        if not machines or not all(isinstance(m, str) and m for m in machines):
            raise ConfigurationError(
                "Config key \"ssh.machines\" must be a non-empty list of host names"
            )

        ssh_user = section.get("sshUser")
        if not ssh_user:
            raise ConfigurationError("Config key \"ssh.sshUser\" is required")

        try:
            return cls(
                machines=tuple(machines),
                ssh_user=ssh_user,
                remote_builds_dir=section.get("remoteBuildsDir") or DEFAULT_REMOTE_BUILDS_DIR,
                keychain_password=section.get("keychainPassword"),
                ssh_port=int(section.get("sshPort", 22)),
                ssh_password=section.get("sshPassword"),
                ssh_key_path=section.get("sshKeyPath"),
                connect_timeout=float(section.get("connectTimeout", 1.0)),
                ping_first=bool(section.get("pingFirst", False)),
                push_concurrency=max(1, int(section.get("pushConcurrency", DEFAULT_CONCURRENCY))),
                pull_concurrency=max(1, int(section.get("pullConcurrency", DEFAULT_CONCURRENCY))),
                build_command=section.get("buildCommand") or "tns",
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value in config section \"ssh\": {e}")


@dataclass(frozen=True)
class ProjectDescriptor:
    """
    Local project and the remote location it is built in.

    remote_project_dir is stable for a given (host, project) pair, which is
    what lets a second build reuse a remote artifact.
    """
    project_dir: Path
    project_name: str
    native_project_root: Optional[Path] = None
    remote_builds_dir: str = DEFAULT_REMOTE_BUILDS_DIR

    def __post_init__(self):
        project_dir = Path(self.project_dir)
        object.__setattr__(self, "project_dir", project_dir)
        native = Path(self.native_project_root) if self.native_project_root else Path(DEFAULT_NATIVE_ROOT)
        if not native.is_absolute():
            native = project_dir / native
        object.__setattr__(self, "native_project_root", native)
        if not self.project_name:
            raise ConfigurationError("Project name must not be empty")

    @property
    def native_relative_root(self) -> str:
        try:
            return self.native_project_root.relative_to(self.project_dir).as_posix()
        except ValueError:
            raise ConfigurationError(
                f"Native project root {self.native_project_root} is not inside "
                f"project directory {self.project_dir}"
            )

    @property
    def remote_project_dir(self) -> str:
        return posixpath.join(self.remote_builds_dir, self.project_name)

    @property
    def remote_native_root(self) -> str:
        return posixpath.join(self.remote_project_dir, self.native_relative_root)

    @property
    def local_artifact_path(self) -> Path:
        return self.native_project_root / ARTIFACT_BUILD_DIR / f"{self.project_name}.ipa"

    @property
    def artifact_pattern(self) -> str:
        """Artifact glob relative to the native root (Debug and Release device builds); the name is matched literally."""
        return f"{ARTIFACT_PATTERN_DIR}/{glob.escape(self.project_name)}.ipa"

    @property
    def sidecar_path(self) -> str:
        return f"{ARTIFACT_BUILD_DIR}/{SIDECAR_NAME}"


@dataclass(frozen=True)
class BuildOptions:
    """
    Per-invocation build switches.

    Attributes:
        force_clean: Delete the local artifact and the remote project directory first
        extra_args: Passed through to the remote build command
    """
    force_clean: bool = False
    extra_args: Tuple[str, ...] = ()


@dataclass
class CommandResult:
    """Outcome of one remote command. exit_code is None when the process was signalled."""
    command: str
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    signal: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class TransferOutcome:
    """Result of one file transfer; error is None on success."""
    path: str
    error: Optional[str] = None


@dataclass
class PushResult:
    copied: int = 0
    failed: list = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


@runtime_checkable
class RemoteBuilder(Protocol):
    """
    Interface for remote build strategies.

    build() either returns None with the artifact present at
    ProjectDescriptor.local_artifact_path, or raises RemoteBuildError.
    Session teardown is the builder's responsibility on every path.

    Example:
        builder = BuilderFactory.from_project("path/to/app")
        builder.build(BuildOptions(force_clean=True))
    """

    def build(self, build_options: Optional[BuildOptions] = None) -> None:
        ...
