"""
BuilderFactory - build a ready BuildOrchestrator from a project's config file.

Config file (.nsremote.config.json in the project root, JSON or YAML):

    {
        "ssh": {
            "machines": ["mac-mini", "10.42.0.2", "192.168.1.198:2222"],
            "sshUser": "ben",
            "keychainPassword": "...",
            "remoteBuildsDir": "/Users/ben/tmp"
        }
    }

NSREMOTE_KEYCHAIN_PASSWORD in the environment overrides "keychainPassword"
so the password does not have to live in the project tree.
"""

import os
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from nsremote.core.implementations import ConsoleLogger, RealFileSystemService, YamlConfigLoader
from nsremote.core.protocols import ConfigLoader, FileSystemService, Logger

from .base import ProjectDescriptor, RemoteOptions
from .exceptions import ConfigurationError
from .orchestrator import BuildOrchestrator

CONFIG_FILE_NAME = ".nsremote.config.json"
KEYCHAIN_PASSWORD_ENV = "NSREMOTE_KEYCHAIN_PASSWORD"


class BuilderFactory:
    """Factory for turning a project directory into a remote builder."""

    @staticmethod
    def config_path_for(project_dir: Union[str, Path], config_path: Optional[Union[str, Path]] = None) -> Path:
        if config_path:
            return Path(config_path)
        return Path(project_dir) / CONFIG_FILE_NAME

    @staticmethod
    def load_remote_options(
        config_path: Union[str, Path],
        filesystem: Optional[FileSystemService] = None,
        config_loader: Optional[ConfigLoader] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> RemoteOptions:
        """
        Read the "ssh" section of a config file.

        Raises:
            ConfigurationError: If the file is missing, unparsable or lacks "ssh"
        """
        filesystem = filesystem or RealFileSystemService()
        config_loader = config_loader or YamlConfigLoader(filesystem)
        environ = os.environ if environ is None else environ

        if not filesystem.exists(config_path):
            raise ConfigurationError(
                f"Missing config file {config_path}\n"
                f"Create it with an \"ssh\" section, for example:\n"
                f"  {{\"ssh\": {{\"machines\": [\"my-mac\"], \"sshUser\": \"me\", "
                f"\"remoteBuildsDir\": \"/Users/me/tmp\"}}}}"
            )

        try:
            config = config_loader.load_yaml(str(config_path))
        except (yaml.YAMLError, OSError) as e:
            raise ConfigurationError(f"Could not parse {config_path}: {e}")

        if not isinstance(config, dict) or "ssh" not in config:
            raise ConfigurationError(f"Config json from {config_path} missing key \"ssh\"")

        section = dict(config["ssh"] or {})
        if environ.get(KEYCHAIN_PASSWORD_ENV):
            section["keychainPassword"] = environ[KEYCHAIN_PASSWORD_ENV]
        return RemoteOptions.from_config(section)

    @staticmethod
    def from_project(
        project_dir: Union[str, Path],
        config_path: Optional[Union[str, Path]] = None,
        project_name: Optional[str] = None,
        native_project_root: Optional[Union[str, Path]] = None,
        filesystem: Optional[FileSystemService] = None,
        logger: Optional[Logger] = None,
        config_loader: Optional[ConfigLoader] = None
    ) -> BuildOrchestrator:
        """
        Create an orchestrator for the project at project_dir.

        Args:
            project_dir: NativeScript project root
            config_path: Config file (default: project_dir/.nsremote.config.json)
            project_name: Remote directory and .ipa name (default: directory name)
            native_project_root: iOS platform dir (default: project_dir/platforms/ios)

        Raises:
            ConfigurationError: If the configuration is missing or invalid
        """
        project_dir = Path(project_dir).resolve()
        filesystem = filesystem or RealFileSystemService()
        logger = logger or ConsoleLogger()
        path = BuilderFactory.config_path_for(project_dir, config_path)

        options = BuilderFactory.load_remote_options(path, filesystem, config_loader)
        project = ProjectDescriptor(
            project_dir=project_dir,
            project_name=project_name or project_dir.name,
            native_project_root=Path(native_project_root) if native_project_root else None,
            remote_builds_dir=options.remote_builds_dir,
        )
        return BuildOrchestrator(filesystem, logger, options, project, config_path=str(path))
