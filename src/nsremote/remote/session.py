"""
RemoteSession - one authenticated SSH connection to a build machine.

Owns the paramiko client, the SFTP channels opened on it and their teardown.
Every remote command sources the login profile first so PATH and toolchain
variables are identical between commands of the same build.
"""

import codecs
import fnmatch
import os
import posixpath
import queue
import shlex
import stat
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import paramiko
from paramiko.hostkeys import InvalidHostKey

from .base import CommandResult, DEFAULT_CONCURRENCY, SessionState, TransferOutcome
from .exceptions import (
    CommandError,
    RemoteBuildError,
    RemoteConnectionError,
    SessionDisposedError,
    TransferError,
)
from .filters import TransferFilter, WalkFunction, walk_tree
from .watcher import OutputWatcher

PROFILE_BOOTSTRAP = "[ -f /etc/profile ] && . /etc/profile; [ -f ~/.profile ] && . ~/.profile; "
BUFFER_SIZE = 32768
POLL_INTERVAL = 0.05

Sink = Callable[[str], None]


class _SFTPPool:
    """
    Fixed set of SFTP channels shared by transfer workers.

    Opens up to `size` channels; a server refusing more sessions (OpenSSH
    MaxSessions) just leaves a smaller pool, as long as one channel opened.
    """

    def __init__(self, client: paramiko.SSHClient, size: int, debug: Callable[[str], None]):
        self._debug = debug
        self._channels: "queue.Queue[paramiko.SFTPClient]" = queue.Queue()
        self._opened: List[paramiko.SFTPClient] = []
        for _ in range(max(1, size)):
            try:
                sftp = client.open_sftp()
            except paramiko.SSHException:
                if not self._opened:
                    raise
                break
            self._opened.append(sftp)
            self._channels.put(sftp)

    @property
    def size(self) -> int:
        return len(self._opened)

    def acquire(self) -> paramiko.SFTPClient:
        return self._channels.get()

    def release(self, sftp: paramiko.SFTPClient) -> None:
        self._channels.put(sftp)

    def close(self) -> None:
        for sftp in self._opened:
            try:
                sftp.close()
            except (OSError, paramiko.SSHException) as e:
                self._debug(f"Closing transfer channel failed: {e}")
        self._opened = []

    def __enter__(self) -> "_SFTPPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class RemoteSession:
    """
    SSH session wrapper: command execution and SFTP transfers.

    Lifecycle: UNCONNECTED -> CONNECTING -> CONNECTED -> DISPOSED.
    A failed connect() returns to UNCONNECTED; DISPOSED is terminal.
    """

    def __init__(
        self,
        host: str,
        username: str,
        port: int = 22,
        password: Optional[str] = None,
        key_filename: Optional[str] = None,
        logger=None
    ):
        self.host = host
        self.username = username
        self.port = port
        self.password = password
        self.key_filename = key_filename
        self.log = logger
        self.state = SessionState.UNCONNECTED
        self._client: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._home: Optional[str] = None

    @property
    def address(self) -> str:
        suffix = f":{self.port}" if self.port != 22 else ""
        return f"{self.username}@{self.host}{suffix}"

    def _debug(self, message: str) -> None:
        if self.log is not None:
            self.log.debug(message)

    # -- connection -----------------------------------------------------

    def connect(self, timeout: float = 1.0) -> "RemoteSession":
        """
        Open the SSH connection.

        Args:
            timeout: Bound for TCP connect, SSH banner and authentication

        Raises:
            RemoteConnectionError: On refused/timed-out connection or failed auth
            SessionDisposedError: If the session was already disposed
        """
        if self.state is SessionState.DISPOSED:
            raise SessionDisposedError(f"Session to {self.address} was disposed")
        if self.state is SessionState.CONNECTED:
            return self

        self.state = SessionState.CONNECTING
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs = {
            "hostname": self.host,
            "port": self.port,
            "username": self.username,
            "timeout": timeout,
            "banner_timeout": timeout,
            "auth_timeout": timeout,
        }
        if self.password:
            connect_kwargs["password"] = self.password
        if self.key_filename:
            connect_kwargs["key_filename"] = os.path.expanduser(self.key_filename)

        try:
            client.load_system_host_keys()
            client.connect(**connect_kwargs)
        except (paramiko.SSHException, InvalidHostKey, OSError) as e:
            client.close()
            self.state = SessionState.UNCONNECTED
            raise RemoteConnectionError(self.address, str(e) or e.__class__.__name__)

        self._client = client
        self.state = SessionState.CONNECTED
        return self

    def dispose(self) -> None:
        """Close SFTP and SSH. Idempotent; never raises."""
        if self.state is SessionState.DISPOSED:
            return
        self.state = SessionState.DISPOSED

        if self._sftp is not None:
            try:
                self._sftp.close()
            except Exception as e:
                self._debug(f"Closing SFTP channel to {self.address} failed: {e}")
            self._sftp = None
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                self._debug(f"Closing SSH connection to {self.address} failed: {e}")
            self._client = None

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def _require_client(self) -> paramiko.SSHClient:
        if self.state is not SessionState.CONNECTED or self._client is None:
            raise SessionDisposedError(
                f"Session to {self.address} is {self.state.value}; no remote operations allowed"
            )
        return self._client

    def _get_sftp(self) -> paramiko.SFTPClient:
        client = self._require_client()
        if self._sftp is None:
            self._sftp = client.open_sftp()
        return self._sftp

    @property
    def home(self) -> str:
        """Remote home directory, resolved once per session."""
        if self._home is None:
            self._home = self._get_sftp().normalize(".")
        return self._home

    def expand_path(self, path: str) -> str:
        """Expand a leading ~ to the remote home (quoted paths get no shell expansion)."""
        if path == "~":
            return self.home
        if path.startswith("~/"):
            return posixpath.join(self.home, path[2:])
        return path

    # -- commands -------------------------------------------------------

    def _wrap(self, command: str, cwd: Optional[str]) -> str:
        prefix = PROFILE_BOOTSTRAP
        if cwd:
            prefix += f"cd {shlex.quote(self.expand_path(cwd))} && "
        return prefix + command

    def execute(
        self,
        command: str,
        cwd: Optional[str] = None,
        on_stdout: Optional[Sink] = None,
        on_stderr: Optional[Sink] = None,
        watcher: Optional[OutputWatcher] = None,
        check: bool = True,
        display: Optional[str] = None
    ) -> CommandResult:
        """
        Run a command and stream its output.

        Output is decoded incrementally and handed to the sinks as it arrives.
        If a watcher signature matches, "exit" is written to the remote stdin,
        the session is disposed and the signature's error is raised; the
        command's exit status is then never consulted.

        Args:
            command: Shell command, run after the profile bootstrap
            cwd: Remote working directory (~ allowed)
            on_stdout: Receives decoded stdout chunks
            on_stderr: Receives decoded stderr chunks
            watcher: Fatal-output detector
            check: Raise CommandError on non-zero or signalled exit
            display: Text used for the command in logs and errors (redaction)

        Raises:
            CommandError: If check and the command did not exit 0
            RemoteBuildError: Whatever the watcher's matched signature raises
        """
        client = self._require_client()
        label = display or command
        remote_command = self._wrap(command, cwd)
        self._debug(f"[{self.host}] $ {label}")

        stdout_decoder = codecs.getincrementaldecoder("utf-8")("replace")
        stderr_decoder = codecs.getincrementaldecoder("utf-8")("replace")
        stdout_parts: List[str] = []
        stderr_parts: List[str] = []

        channel = client.get_transport().open_session()
        try:
            channel.exec_command(remote_command)

            while True:
                received = self._drain(channel, stdout_decoder, stderr_decoder,
                                       stdout_parts, stderr_parts, on_stdout, on_stderr, watcher)
                if received:
                    continue
                if channel.exit_status_ready():
                    break
                time.sleep(POLL_INTERVAL)

            # Data that raced the exit status
            while self._drain(channel, stdout_decoder, stderr_decoder,
                              stdout_parts, stderr_parts, on_stdout, on_stderr, watcher):
                pass
            self._emit(channel, stdout_decoder.decode(b"", final=True), stdout_parts, on_stdout, watcher)
            self._emit(channel, stderr_decoder.decode(b"", final=True), stderr_parts, on_stderr, watcher)

            exit_status = channel.recv_exit_status()
        finally:
            channel.close()

        exit_code = None if exit_status < 0 else exit_status
        result = CommandResult(
            command=label,
            exit_code=exit_code,
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts),
        )
        if check and not result.ok:
            raise CommandError(label, result.exit_code, result.signal, result.stderr or result.stdout)
        return result

    def _drain(self, channel, stdout_decoder, stderr_decoder,
               stdout_parts, stderr_parts, on_stdout, on_stderr, watcher) -> bool:
        received = False
        if channel.recv_ready():
            received = True
            text = stdout_decoder.decode(channel.recv(BUFFER_SIZE))
            self._emit(channel, text, stdout_parts, on_stdout, watcher)
        if channel.recv_stderr_ready():
            received = True
            text = stderr_decoder.decode(channel.recv_stderr(BUFFER_SIZE))
            self._emit(channel, text, stderr_parts, on_stderr, watcher)
        return received

    def _emit(self, channel, text: str, parts: List[str],
              sink: Optional[Sink], watcher: Optional[OutputWatcher]) -> None:
        if not text:
            return
        parts.append(text)
        if sink is not None:
            sink(text)
        if watcher is None:
            return
        signature = watcher.check(text)
        if signature is None:
            return

        self._debug(f"Remote output matched '{signature.name}'. Disconnecting from {self.address}...")
        try:
            channel.sendall(b"exit\n")
        except (OSError, paramiko.SSHException) as e:
            self._debug(f"Could not send exit to {self.address}: {e}")
        error = signature.to_error("".join(parts))
        self.dispose()
        raise error

    # -- filesystem -----------------------------------------------------

    def exists(self, remote_path: str) -> bool:
        try:
            self._get_sftp().stat(self.expand_path(remote_path))
            return True
        except FileNotFoundError:
            return False

    def mkdir_p(self, remote_path: str) -> None:
        """Create remote directory and parents if they don't exist."""
        sftp = self._get_sftp()
        remote_path = self.expand_path(remote_path)
        current = "/" if remote_path.startswith("/") else ""

        for part in remote_path.split("/"):
            if not part:
                continue
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
            except FileNotFoundError:
                sftp.mkdir(current)

    def glob(self, remote_root: str, pattern: str) -> List[str]:
        """
        Match pattern segment by segment under remote_root.

        Only segments containing * ? or [ list a directory; literal segments
        are a single stat. Returns sorted POSIX paths relative to remote_root.
        """
        sftp = self._get_sftp()
        root = self.expand_path(remote_root)
        matches = [""]

        for segment in [s for s in pattern.split("/") if s]:
            next_matches = []
            for rel in matches:
                base = posixpath.join(root, rel) if rel else root
                if any(c in segment for c in "*?["):
                    try:
                        entries = sftp.listdir(base)
                    except FileNotFoundError:
                        continue
                    next_matches.extend(
                        posixpath.join(rel, name) if rel else name
                        for name in entries if fnmatch.fnmatchcase(name, segment)
                    )
                else:
                    candidate = posixpath.join(rel, segment) if rel else segment
                    if self.exists(posixpath.join(root, candidate)):
                        next_matches.append(candidate)
            matches = next_matches

        return sorted(m for m in matches if m)

    def remove_tree(self, remote_path: str) -> CommandResult:
        """rm -rf the remote path; the result is returned, never raised."""
        target = posixpath.normpath(self.expand_path(remote_path))
        if target in ("/", ".", "") or target == posixpath.normpath(self.home):
            raise RemoteBuildError(f"Refusing to delete remote directory {target}")
        return self.execute(f"rm -rf -- {shlex.quote(target)}", check=False)

    # -- transfers ------------------------------------------------------

    def put_file(self, local_path: str, remote_path: str) -> None:
        remote_path = self.expand_path(remote_path)
        self.mkdir_p(posixpath.dirname(remote_path))
        try:
            self._put_with(self._get_sftp(), str(local_path), remote_path)
        except (OSError, paramiko.SSHException) as e:
            raise TransferError(str(local_path), str(e))

    def get_file(self, remote_path: str, local_path: str) -> None:
        """Download one file, creating local parent directories."""
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._get_sftp().get(self.expand_path(remote_path), str(local_path))
        except (OSError, paramiko.SSHException) as e:
            raise TransferError(remote_path, str(e))

    @staticmethod
    def _is_remote_dir(sftp: paramiko.SFTPClient, remote_path: str) -> bool:
        try:
            return stat.S_ISDIR(sftp.stat(remote_path).st_mode or 0)
        except FileNotFoundError:
            return False

    @staticmethod
    def _put_with(sftp: paramiko.SFTPClient, local_path: str, remote_path: str) -> None:
        sftp.put(local_path, remote_path)
        # Keep executable bits (build scripts)
        sftp.chmod(remote_path, stat.S_IMODE(os.stat(local_path).st_mode))

    def put_tree(
        self,
        local_dir: str,
        remote_dir: str,
        transfer_filter: Optional[TransferFilter] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        walk: WalkFunction = os.walk
    ) -> List[TransferOutcome]:
        """
        Mirror a filtered local tree under remote_dir.

        Directories are created first (parents before children), then files
        are uploaded by up to `concurrency` workers. A failing file never
        stops the others.

        Returns:
            One TransferOutcome per file or directory that was attempted
        """
        sftp = self._get_sftp()
        remote_root = self.expand_path(remote_dir)
        directories, files = walk_tree(str(local_dir), transfer_filter, walk)

        self.mkdir_p(remote_root)
        outcomes: List[TransferOutcome] = []
        for rel in directories:
            target = posixpath.join(remote_root, rel)
            try:
                sftp.mkdir(target)
            except OSError as e:
                if not self._is_remote_dir(sftp, target):
                    outcomes.append(TransferOutcome(rel, f"could not create remote directory {target}: {e}"))

        jobs = [
            (rel, str(Path(local_dir) / rel), posixpath.join(remote_root, rel))
            for rel in files
        ]
        outcomes.extend(self._transfer_many(jobs, concurrency, upload=True))
        return sorted(outcomes, key=lambda o: o.path)

    def get_files(
        self,
        pairs: Sequence[Tuple[str, str]],
        concurrency: int = DEFAULT_CONCURRENCY
    ) -> List[TransferOutcome]:
        """Download (remote_path, local_path) pairs in parallel."""
        jobs = []
        for remote_path, local_path in pairs:
            Path(local_path).parent.mkdir(parents=True, exist_ok=True)
            jobs.append((remote_path, self.expand_path(remote_path), str(local_path)))
        return self._transfer_many(jobs, concurrency, upload=False)

    def _transfer_many(self, jobs, concurrency: int, upload: bool) -> List[TransferOutcome]:
        """jobs: (label, source, destination) triples."""
        if not jobs:
            return []
        client = self._require_client()

        def transfer(pool: _SFTPPool, source: str, destination: str) -> Optional[str]:
            sftp = pool.acquire()
            try:
                if upload:
                    self._put_with(sftp, source, destination)
                else:
                    sftp.get(source, destination)
                return None
            except (OSError, paramiko.SSHException) as e:
                return str(e) or e.__class__.__name__
            finally:
                pool.release(sftp)

        outcomes = []
        with _SFTPPool(client, min(concurrency, len(jobs)), self._debug) as pool:
            with ThreadPoolExecutor(max_workers=pool.size) as executor:
                futures = {
                    executor.submit(transfer, pool, source, destination): label
                    for label, source, destination in jobs
                }
                for future in as_completed(futures):
                    outcomes.append(TransferOutcome(futures[future], future.result()))
        return outcomes
