"""
Remote build exceptions.

Custom exceptions for remote build failures with actionable error messages.
Every error the orchestrator lets escape derives from RemoteBuildError.
"""

from typing import Optional, Sequence


class RemoteBuildError(Exception):
    """
    Base class for all remote build failures.

    Examples:
        - No build host reachable
        - Remote command exited non-zero
        - Artifact could not be retrieved
    """
    pass


class ConfigurationError(RemoteBuildError):
    """Raised when the remote build configuration is missing or malformed."""
    pass


class RemoteConnectionError(RemoteBuildError):
    """Raised when an SSH handshake with a single host fails or times out."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"Could not connect to {host}: {reason}")


class NoHostReachable(RemoteBuildError):
    """Raised when every host of the pool failed to accept a session."""

    def __init__(self, hosts: Sequence[str], reasons: Optional[dict] = None):
        self.hosts = list(hosts)
        self.reasons = dict(reasons or {})
        details = "\n".join(
            f"  - {host}: {self.reasons.get(host, 'not attempted')}" for host in self.hosts
        ) or "  (host pool is empty)"
        super().__init__(
            f"No build machine accepted an SSH session (machines = {self.hosts})\n"
            f"{details}\n\n"
            f"Troubleshooting:\n"
            f"  1. Check the machine is awake and on the network: ping <host>\n"
            f"  2. Verify SSH access: ssh <user>@<host>\n"
            f"  3. Check the \"machines\" list in your config file"
        )


class SessionDisposedError(RemoteBuildError):
    """Raised when an operation is attempted on a disposed or unconnected session."""
    pass


class InvalidRemoteCredential(RemoteBuildError):
    """Raised when the remote keychain refused the configured password."""

    def __init__(self, config_path: Optional[str] = None, output: str = ""):
        self.config_path = config_path
        self.output = output
        where = config_path or "your .nsremote.config.json"
        super().__init__(
            f"Incorrect keychain password on the build machine.\n"
            f"Update \"keychainPassword\" in {where} and run again."
        )


class RemoteProjectMissing(RemoteBuildError):
    """Raised when the remote build tool reports that no project exists where expected."""

    def __init__(self, remote_dir: Optional[str] = None, output: str = ""):
        self.remote_dir = remote_dir
        self.output = output
        location = f" in {remote_dir}" if remote_dir else ""
        super().__init__(
            f"Project not found on remote{location}. Disconnected.\n"
            f"Remote output: {output.strip()[-500:]}\n\n"
            f"Re-run with --clean to push the project again."
        )


class CommandError(RemoteBuildError):
    """Raised when a remote command exits non-zero or is terminated by a signal."""

    def __init__(
        self,
        command: str,
        exit_code: Optional[int],
        signal: Optional[str] = None,
        stderr: str = ""
    ):
        self.command = command
        self.exit_code = exit_code
        self.signal = signal
        self.stderr = stderr
        if exit_code is None:
            status = f"terminated by signal {signal or 'unknown'}"
        else:
            status = f"exit code {exit_code}"
        message = f"Remote command failed ({status}): {command}"
        if stderr.strip():
            message += f"\n\nLast lines of output:\n{stderr.strip()[-1000:]}"
        super().__init__(message)


class TransferError(RemoteBuildError):
    """Raised when a file cannot be copied between local and remote."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Transfer failed for {path}: {reason}")


class ArtifactMissing(RemoteBuildError):
    """Raised when the build finished but no artifact could be retrieved."""

    def __init__(self, remote_dir: str, pattern: str):
        self.remote_dir = remote_dir
        self.pattern = pattern
        super().__init__(
            f"No build artifact matching {pattern} found in {remote_dir}\n\n"
            f"Check the remote build output above, or re-run with --clean."
        )
