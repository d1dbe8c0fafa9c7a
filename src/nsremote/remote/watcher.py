"""
OutputWatcher - detect fatal conditions in live remote output.

The watcher is a declarative table of signature -> error. RemoteSession.execute
feeds it every decoded chunk; on the first match the session writes "exit" to
the remote stdin, disposes itself and raises the signature's error, so the
normal exit-status path is never reached.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .exceptions import InvalidRemoteCredential, RemoteBuildError, RemoteProjectMissing

# Characters of the previous chunk kept so a signature split across two reads still matches
TAIL_CHARS = 256


@dataclass(frozen=True)
class OutputSignature:
    """
    One row of the watcher table.

    Attributes:
        name: Short identifier used in logs
        pattern: Compiled regex, matched with search()
        error_factory: Builds the error from the matched output text
    """
    name: str
    pattern: "re.Pattern[str]"
    error_factory: Callable[[str], RemoteBuildError]

    def to_error(self, output: str) -> RemoteBuildError:
        return self.error_factory(output)


def default_signatures(
    config_path: Optional[str] = None,
    remote_dir: Optional[str] = None
) -> List[OutputSignature]:
    """Fatal signatures of the NativeScript CLI and the macOS security tool."""
    return [
        OutputSignature(
            name="project-missing",
            pattern=re.compile(r"no project found", re.IGNORECASE),
            error_factory=lambda output: RemoteProjectMissing(remote_dir, output),
        ),
        OutputSignature(
            name="keychain-password",
            pattern=re.compile(r"user name or passphrase .*not correct", re.IGNORECASE),
            error_factory=lambda output: InvalidRemoteCredential(config_path, output),
        ),
    ]


class OutputWatcher:
    """Evaluates streamed output against a signature table."""

    def __init__(self, signatures: Sequence[OutputSignature]):
        self.signatures = list(signatures)
        self._tail = ""
        self.fired: Optional[OutputSignature] = None

    @classmethod
    def for_build(cls, config_path: Optional[str] = None, remote_dir: Optional[str] = None) -> "OutputWatcher":
        return cls(default_signatures(config_path, remote_dir))

    def check(self, text: str) -> Optional[OutputSignature]:
        """
        Return the first signature matching text (joined with the previous tail), else None.

        Once a signature has fired, every later call returns None so that a
        single run never reports two errors.
        """
        if self.fired is not None:
            return None
        window = self._tail + text
        self._tail = window[-TAIL_CHARS:]
        for signature in self.signatures:
            if signature.pattern.search(window):
                self.fired = signature
                return signature
        return None

    def reset(self) -> None:
        """Forget the tail and any fired signature before watching a new command."""
        self._tail = ""
        self.fired = None
