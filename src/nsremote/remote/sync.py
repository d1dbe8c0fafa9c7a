"""
FileSynchronizer - push the project to the build machine, pull artifacts back.

Push is filtered and tolerant: a file that fails to upload is reported and the
rest continue. Pull is strict for artifacts and best-effort for the sidecar
metadata file.
"""

import posixpath
from pathlib import Path
from typing import List, Optional

import paramiko

from nsremote.core.protocols import FileSystemService, Logger

from .base import DEFAULT_CONCURRENCY, PushResult, TransferOutcome
from .exceptions import RemoteBuildError, TransferError
from .filters import TransferFilter
from .session import RemoteSession


class FileSynchronizer:
    """
    Moves files between the local project and one remote session.

    Args:
        filesystem: Filesystem operations abstraction (tree walk)
        logger: Logging abstraction
        transfer_filter: Exclusions for push (defaults to DEFAULT_EXCLUDES)
        push_concurrency: Simultaneous uploads
        pull_concurrency: Simultaneous downloads
    """

    def __init__(
        self,
        filesystem: FileSystemService,
        logger: Logger,
        transfer_filter: Optional[TransferFilter] = None,
        push_concurrency: int = DEFAULT_CONCURRENCY,
        pull_concurrency: int = DEFAULT_CONCURRENCY
    ):
        self.fs = filesystem
        self.log = logger
        self.transfer_filter = transfer_filter or TransferFilter()
        self.push_concurrency = push_concurrency
        self.pull_concurrency = pull_concurrency

    def push(
        self,
        session: RemoteSession,
        local_root: Path,
        remote_root: str,
        transfer_filter: Optional[TransferFilter] = None
    ) -> PushResult:
        """
        Upload local_root to remote_root, skipping excluded relative paths.

        Returns:
            PushResult with the number copied and every per-file failure
        """
        transfer_filter = transfer_filter or self.transfer_filter
        self.log.info(f"Sending app files to {session.address}:{remote_root}")

        outcomes = session.put_tree(
            str(local_root),
            remote_root,
            transfer_filter,
            concurrency=self.push_concurrency,
            walk=self.fs.walk
        )

        result = PushResult()
        for outcome in outcomes:
            if outcome.error is None:
                result.copied += 1
            else:
                result.failed.append(outcome)

        self.log.info(f"Sent {result.copied} file(s)")
        if result.failed:
            self.log.warning(
                f"{len(result.failed)} file(s) could not be sent:\n{summarize_failures(result.failed)}"
            )
        return result

    def pull(
        self,
        session: RemoteSession,
        remote_root: str,
        pattern: str,
        local_root: Path
    ) -> List[Path]:
        """
        Download every remote file matching pattern (relative to remote_root).

        Each match keeps its relative path under local_root.

        Raises:
            TransferError: If any matched file fails to download
        """
        matches = session.glob(remote_root, pattern)
        if not matches:
            return []

        pairs = [
            (posixpath.join(remote_root, rel), str(Path(local_root) / rel))
            for rel in matches
        ]
        self.log.info(f"Retrieving {len(pairs)} file(s) {remote_root}/{pattern} --> {local_root}")
        outcomes = session.get_files(pairs, concurrency=self.pull_concurrency)

        failed = [o for o in outcomes if o.error is not None]
        if failed:
            raise TransferError(failed[0].path, failed[0].error)

        return [Path(local_root) / rel for rel in matches]

    def pull_sidecar(
        self,
        session: RemoteSession,
        remote_root: str,
        relative_path: str,
        local_root: Path
    ) -> Optional[Path]:
        """
        Best-effort download of one metadata file.

        Returns:
            Local path written, or None (missing or failed, logged as a warning)
        """
        remote_path = posixpath.join(remote_root, relative_path)
        local_path = Path(local_root) / relative_path
        try:
            if not session.exists(remote_path):
                self.log.warning(f"Build metadata {remote_path} not found on remote; skipping")
                return None
            session.get_file(remote_path, str(local_path))
        except (RemoteBuildError, OSError, paramiko.SSHException) as e:
            self.log.warning(f"Could not retrieve build metadata {remote_path}: {e}")
            return None
        return local_path


def summarize_failures(failed: List[TransferOutcome], limit: int = 10) -> str:
    """Human readable list of failed transfers, truncated to limit lines."""
    lines = [f"  {o.path}: {o.error}" for o in failed[:limit]]
    if len(failed) > limit:
        lines.append(f"  ... and {len(failed) - limit} more")
    return "\n".join(lines)
