"""
RemoteCommandRunner - the fixed command chain that produces an iOS build.

Steps (each runs to completion before the next, in the remote project dir):
    1. Dependency install, only if a lockfile exists locally
    2. Login keychain unlock for code signing, only if a password is configured
    3. NativeScript device build
"""

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from nsremote.core.protocols import FileSystemService, Logger

from .base import BuildOptions, ProjectDescriptor, RemoteOptions
from .session import RemoteSession
from .watcher import OutputWatcher

# First match wins
LOCKFILE_INSTALLERS: Tuple[Tuple[str, str], ...] = (
    ("package-lock.json", "npm install"),
    ("yarn.lock", "yarn install"),
    ("pnpm-lock.yaml", "pnpm install"),
)

BUILD_FLAGS = ("build", "ios", "--for-device", "--env.sourceMap")
REDACTED = "********"


@dataclass(frozen=True)
class CommandStep:
    """
    One remote command of the build chain.

    Attributes:
        name: Short label for logs
        command: Exact shell command sent to the remote
        display: Same command with secrets redacted, for logs and errors
    """
    name: str
    command: str
    display: str


class LineLogger:
    """Output sink that forwards complete lines of a chunked stream to a logger."""

    def __init__(self, emit):
        self.emit = emit
        self._pending = ""

    def __call__(self, chunk: str) -> None:
        self._pending += chunk
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            line = line.rstrip("\r")
            if line.strip():
                self.emit(line)

    def flush(self) -> None:
        if self._pending.strip():
            self.emit(self._pending.rstrip())
        self._pending = ""


class RemoteCommandRunner:
    """
    Builds and runs the remote build chain.

    Args:
        filesystem: Filesystem operations abstraction (lockfile detection)
        logger: Logging abstraction; remote output is forwarded at info level
        options: Remote options (keychain password, build command)
    """

    def __init__(self, filesystem: FileSystemService, logger: Logger, options: RemoteOptions):
        self.fs = filesystem
        self.log = logger
        self.options = options

    def install_command(self, project: ProjectDescriptor) -> Optional[str]:
        for lockfile, command in LOCKFILE_INSTALLERS:
            if self.fs.exists(Path(project.project_dir) / lockfile):
                return command
        return None

    def build_steps(self, project: ProjectDescriptor, build_options: BuildOptions) -> List[CommandStep]:
        steps: List[CommandStep] = []

        install = self.install_command(project)
        if install:
            steps.append(CommandStep("install", install, install))
        else:
            self.log.debug("No lockfile found locally, skipping dependency install")

        password = self.options.keychain_password
        if password:
            template = "security -v unlock-keychain -p {} login.keychain"
            steps.append(CommandStep(
                "unlock-keychain",
                template.format(shlex.quote(password)),
                template.format(REDACTED),
            ))

        build = " ".join(
            [shlex.quote(self.options.build_command), *BUILD_FLAGS]
            + [shlex.quote(arg) for arg in build_options.extra_args]
        )
        steps.append(CommandStep("build", build, build))
        return steps

    def run(
        self,
        session: RemoteSession,
        steps: Sequence[CommandStep],
        cwd: str,
        watcher: OutputWatcher
    ) -> None:
        """
        Run steps in order with the watcher attached.

        Raises:
            CommandError: First step that exits non-zero; later steps never run
            RemoteBuildError: Whatever the watcher raises
        """
        for index, step in enumerate(steps, 1):
            self.log.info(f"[{index}/{len(steps)}] {step.display}")
            out = LineLogger(self.log.info)
            err = LineLogger(self.log.info)
            watcher.reset()
            try:
                session.execute(
                    step.command,
                    cwd=cwd,
                    on_stdout=out,
                    on_stderr=err,
                    watcher=watcher,
                    display=step.display
                )
            finally:
                out.flush()
                err.flush()

    def run_build(
        self,
        session: RemoteSession,
        project: ProjectDescriptor,
        build_options: BuildOptions,
        config_path: Optional[str] = None
    ) -> None:
        """Build the chain for project and run it in the remote project directory."""
        watcher = OutputWatcher.for_build(config_path, project.remote_project_dir)
        steps = self.build_steps(project, build_options)
        self.run(session, steps, project.remote_project_dir, watcher)
