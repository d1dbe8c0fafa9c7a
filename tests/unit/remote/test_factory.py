"""Unit tests for BuilderFactory config loading."""

import json
from pathlib import Path

import pytest
from unittest.mock import Mock

from nsremote.core.implementations import RealFileSystemService, YamlConfigLoader
from nsremote.core.protocols import Logger
from nsremote.remote.base import RemoteBuilder
from nsremote.remote.exceptions import ConfigurationError
from nsremote.remote.factory import CONFIG_FILE_NAME, KEYCHAIN_PASSWORD_ENV, BuilderFactory
from nsremote.remote.orchestrator import BuildOrchestrator

SSH_SECTION = {
    "machines": ["mac-mini", "10.42.0.2"],
    "sshUser": "ben",
    "keychainPassword": "from-file",
    "remoteBuildsDir": "/Users/ben/tmp",
}


def write_config(directory, content):
    path = directory / CONFIG_FILE_NAME
    path.write_text(content if isinstance(content, str) else json.dumps(content))
    return path


class TestConfigPath:

    def test_default_is_inside_project(self):
        assert BuilderFactory.config_path_for("/work/App") == Path("/work/App/.nsremote.config.json")

    def test_explicit_path_wins(self):
        assert BuilderFactory.config_path_for("/work/App", "/etc/nsremote.json") == Path("/etc/nsremote.json")


class TestLoadRemoteOptions:

    def test_reads_ssh_section(self, tmp_path):
        path = write_config(tmp_path, {"ssh": SSH_SECTION})

        options = BuilderFactory.load_remote_options(path, environ={})

        assert options.machines == ("mac-mini", "10.42.0.2")
        assert options.keychain_password == "from-file"
        assert options.remote_builds_dir == "/Users/ben/tmp"

    def test_environment_overrides_keychain_password(self, tmp_path):
        path = write_config(tmp_path, {"ssh": SSH_SECTION})

        options = BuilderFactory.load_remote_options(path, environ={KEYCHAIN_PASSWORD_ENV: "from-env"})

        assert options.keychain_password == "from-env"

    def test_yaml_config_is_accepted(self, tmp_path):
        path = write_config(tmp_path, "ssh:\n  machines: [mac-mini]\n  sshUser: ben\n")

        options = BuilderFactory.load_remote_options(path, environ={})

        assert options.machines == ("mac-mini",)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            BuilderFactory.load_remote_options(tmp_path / CONFIG_FILE_NAME, environ={})

        assert "Missing config file" in str(exc_info.value)

    def test_missing_ssh_key(self, tmp_path):
        path = write_config(tmp_path, {"android": {}})

        with pytest.raises(ConfigurationError) as exc_info:
            BuilderFactory.load_remote_options(path, environ={})

        assert "missing key \"ssh\"" in str(exc_info.value)

    def test_unparsable_file(self, tmp_path):
        path = write_config(tmp_path, "{\"ssh\": [unclosed")

        with pytest.raises(ConfigurationError):
            BuilderFactory.load_remote_options(path, environ={})

    def test_uses_injected_loader(self):
        fs = Mock(spec=RealFileSystemService)
        fs.exists.return_value = True
        loader = Mock(spec=YamlConfigLoader)
        loader.load_yaml.return_value = {"ssh": SSH_SECTION}

        options = BuilderFactory.load_remote_options("/work/App/.nsremote.config.json", fs, loader, environ={})

        loader.load_yaml.assert_called_once_with("/work/App/.nsremote.config.json")
        assert options.ssh_user == "ben"


class TestFromProject:

    def test_builds_orchestrator(self, tmp_path, monkeypatch):
        monkeypatch.delenv(KEYCHAIN_PASSWORD_ENV, raising=False)
        project_dir = tmp_path / "MyApp"
        project_dir.mkdir()
        write_config(project_dir, {"ssh": SSH_SECTION})

        builder = BuilderFactory.from_project(project_dir, logger=Mock(spec=Logger))

        assert isinstance(builder, BuildOrchestrator)
        assert isinstance(builder, RemoteBuilder)
        assert builder.project.project_name == "MyApp"
        assert builder.project.remote_project_dir == "/Users/ben/tmp/MyApp"
        assert builder.config_path == str(project_dir.resolve() / CONFIG_FILE_NAME)

    def test_project_name_and_native_root_overrides(self, tmp_path, monkeypatch):
        monkeypatch.delenv(KEYCHAIN_PASSWORD_ENV, raising=False)
        write_config(tmp_path, {"ssh": SSH_SECTION})

        builder = BuilderFactory.from_project(
            tmp_path, project_name="Shop", native_project_root="native/ios", logger=Mock(spec=Logger)
        )

        assert builder.project.local_artifact_path == (
            tmp_path.resolve() / "native" / "ios" / "build" / "Debug-iphoneos" / "Shop.ipa"
        )
        assert builder.project.remote_native_root == "/Users/ben/tmp/Shop/native/ios"
