"""
BuildOrchestrator - build an iOS app on a remote Mac and fetch the .ipa.

Strategy: local cache check → host selection → remote cache check →
SFTP push → remote build → SFTP pull.

The connected session is a local value threaded through every step; it never
outlives a build() call.
"""

from dataclasses import replace
from typing import Callable, Optional

from nsremote.core.protocols import FileSystemService, Logger

from .base import BuildOptions, BuildState, ProjectDescriptor, RemoteOptions
from .cache import ArtifactCacheGuard
from .commands import RemoteCommandRunner
from .exceptions import ArtifactMissing
from .filters import TransferFilter
from .hosts import HostSelector, ping_host
from .session import RemoteSession
from .sync import FileSynchronizer


class BuildOrchestrator:
    """
    Builds on the first reachable machine of the pool: push → build → pull.

    Target machines: macOS with Xcode, Node.js and the NativeScript CLI
    Requirements: SSH server (Remote Login), login keychain with signing identity

    Args:
        filesystem: Filesystem operations abstraction
        logger: Logging abstraction
        remote_options: Host pool, credentials and transfer tuning
        project: Local project description; remote_builds_dir is taken from remote_options
        config_path: Config file named in credential errors
        session_factory: Creates unconnected sessions (RemoteSession in production)
        transfer_filter: Push exclusions (DEFAULT_EXCLUDES if omitted)
        pinger: Reachability probe for remote_options.ping_first
    """

    def __init__(
        self,
        filesystem: FileSystemService,
        logger: Logger,
        remote_options: RemoteOptions,
        project: ProjectDescriptor,
        config_path: Optional[str] = None,
        session_factory: Callable[..., RemoteSession] = RemoteSession,
        transfer_filter: Optional[TransferFilter] = None,
        pinger: Callable[[str], bool] = ping_host
    ):
        self.fs = filesystem
        self.log = logger
        self.options = remote_options
        self.project = replace(project, remote_builds_dir=remote_options.remote_builds_dir)
        self.config_path = config_path
        self.state = BuildState.IDLE

        self.selector = HostSelector(remote_options, logger, session_factory, pinger)
        self.cache = ArtifactCacheGuard(filesystem, logger, self.project)
        self.sync = FileSynchronizer(
            filesystem,
            logger,
            transfer_filter,
            push_concurrency=remote_options.push_concurrency,
            pull_concurrency=remote_options.pull_concurrency
        )
        self.runner = RemoteCommandRunner(filesystem, logger, remote_options)

    def _enter(self, state: BuildState) -> None:
        self.state = state
        self.log.debug(f"Build state: {state.value}")

    def build(self, build_options: Optional[BuildOptions] = None) -> None:
        """
        Produce the local artifact, building remotely only when needed.

        Steps:
            1. Skip everything if the local .ipa exists (unless force_clean)
            2. Connect to the first reachable machine
            3. force_clean: delete the remote project directory
            4. Remote .ipa already present → jump to step 7
            5. Push the filtered project tree
            6. Install dependencies, unlock keychain, tns build
            7. Pull the .ipa and the .nsbuildinfo sidecar

        Raises:
            NoHostReachable: No machine accepted a session
            CommandError: A build step failed
            InvalidRemoteCredential: Keychain password rejected
            RemoteProjectMissing: Remote CLI found no project
            ArtifactMissing: Nothing to retrieve after the build
        """
        build_options = build_options or BuildOptions()
        self._enter(BuildState.IDLE)

        try:
            self._enter(BuildState.CHECKING_LOCAL_CACHE)
            if self.cache.local_artifact_ready(build_options):
                self._enter(BuildState.DONE)
                return

            self._enter(BuildState.SELECTING_HOST)
            session = self.selector.select()
        except BaseException:
            self._enter(BuildState.ABORTED)
            raise

        try:
            self._build_in_session(session, build_options)
        except BaseException:
            self._enter(BuildState.ABORTED)
            raise
        finally:
            session.dispose()

        self._enter(BuildState.DONE)
        self.log.info(f"Build ready at {self.project.local_artifact_path}")

    def _build_in_session(self, session: RemoteSession, build_options: BuildOptions) -> None:
        project = self.project

        self._enter(BuildState.CHECKING_REMOTE_CACHE)
        remote_hit = []
        if build_options.force_clean and not self.cache.clean_remote(session):
            # A leftover artifact must not short-circuit a clean build
            self.log.warning("Remote cache ignored because the clean did not complete")
        else:
            remote_hit = self.cache.find_remote_artifacts(session)

        if not remote_hit:
            self._enter(BuildState.SYNCING)
            self.log.info(f"Making parent directories {project.remote_project_dir}")
            session.mkdir_p(project.remote_project_dir)
            self.sync.push(session, project.project_dir, project.remote_project_dir)

            self._enter(BuildState.BUILDING)
            self.runner.run_build(session, project, build_options, self.config_path)
            self.log.info("Uploading and building finished")

        self._enter(BuildState.RETRIEVING)
        pulled = self.sync.pull(
            session,
            project.remote_native_root,
            project.artifact_pattern,
            project.native_project_root
        )
        if not pulled:
            raise ArtifactMissing(project.remote_native_root, project.artifact_pattern)
        for path in pulled:
            self.log.info(f"Retrieved {path}")

        self.sync.pull_sidecar(
            session,
            project.remote_native_root,
            project.sidecar_path,
            project.native_project_root
        )
