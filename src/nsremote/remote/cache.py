"""
ArtifactCacheGuard - skip work that an existing artifact makes redundant.

Local: an artifact already on disk means no rebuild unless a clean build is
forced, because the remote round-trip is expensive.
Remote: an artifact already in the remote project directory (a previous run
that built but failed to retrieve) means skip push and build, retrieve only.
"""

from typing import List

from nsremote.core.protocols import FileSystemService, Logger

from .base import BuildOptions, ProjectDescriptor
from .session import RemoteSession


class ArtifactCacheGuard:
    """Local and remote artifact checks for one project."""

    def __init__(self, filesystem: FileSystemService, logger: Logger, project: ProjectDescriptor):
        self.fs = filesystem
        self.log = logger
        self.project = project

    def local_artifact_ready(self, build_options: BuildOptions) -> bool:
        """
        True when the whole build can be skipped.

        With force_clean an existing local artifact is deleted and False returned.
        """
        artifact = self.project.local_artifact_path
        if not self.fs.exists(artifact):
            return False

        if build_options.force_clean:
            self.log.info(f"Clean build requested, removing {artifact}")
            self.fs.remove_file(artifact)
            return False

        self.log.info(f"{artifact} already exists, skipping remote build (use --clean to rebuild)")
        return True

    def clean_remote(self, session: RemoteSession) -> bool:
        """
        Delete the remote project directory.

        Failure is not fatal: it is logged with the remote error text so a
        permission problem stays visible.

        Returns:
            True if the directory is gone afterwards
        """
        remote_dir = self.project.remote_project_dir
        self.log.info(f"Clean build requested, deleting {session.address}:{remote_dir}")
        result = session.remove_tree(remote_dir)
        if not session.exists(remote_dir):
            return True

        reason = (result.stderr or result.stdout).strip() or f"exit code {result.exit_code}"
        self.log.warning(f"Could not delete remote directory {remote_dir}: {reason}")
        return False

    def find_remote_artifacts(self, session: RemoteSession) -> List[str]:
        """Artifacts already built in the remote project, relative to the remote native root."""
        found = session.glob(self.project.remote_native_root, self.project.artifact_pattern)
        if found:
            self.log.info(
                f"Found existing build on {session.address}: "
                + ", ".join(found)
            )
        else:
            self.log.info(f"No existing build found on {session.address}. Proceeding with build...")
        return found
