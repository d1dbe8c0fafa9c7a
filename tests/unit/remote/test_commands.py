"""Unit tests for the remote build command chain."""

from pathlib import Path

import pytest
from unittest.mock import Mock

from nsremote.core.protocols import FileSystemService, Logger
from nsremote.remote.base import BuildOptions, ProjectDescriptor, RemoteOptions
from nsremote.remote.commands import LineLogger, REDACTED, RemoteCommandRunner
from nsremote.remote.exceptions import CommandError, RemoteProjectMissing
from nsremote.remote.session import RemoteSession
from nsremote.remote.watcher import OutputWatcher

PROJECT = ProjectDescriptor(Path("/work/App"), "App", remote_builds_dir="/Users/ben/tmp")


def make_runner(lockfiles=(), **options):
    fs = Mock(spec=FileSystemService)
    fs.exists.side_effect = lambda path: Path(path).name in lockfiles
    values = {"machines": ("mac-mini",), "ssh_user": "ben"}
    values.update(options)
    return RemoteCommandRunner(fs, Mock(spec=Logger), RemoteOptions(**values))


class TestBuildSteps:

    def test_full_chain_order(self):
        runner = make_runner(lockfiles={"package-lock.json"}, keychain_password="s3cret")

        steps = runner.build_steps(PROJECT, BuildOptions())

        assert [s.name for s in steps] == ["install", "unlock-keychain", "build"]
        assert steps[0].command == "npm install"
        assert steps[2].command == "tns build ios --for-device --env.sourceMap"

    def test_install_skipped_without_lockfile(self):
        runner = make_runner()

        steps = runner.build_steps(PROJECT, BuildOptions())

        assert [s.name for s in steps] == ["build"]

    @pytest.mark.parametrize("lockfile,command", [
        ("yarn.lock", "yarn install"),
        ("pnpm-lock.yaml", "pnpm install"),
    ])
    def test_install_follows_lockfile(self, lockfile, command):
        runner = make_runner(lockfiles={lockfile})

        assert runner.install_command(PROJECT) == command

    def test_npm_lockfile_takes_precedence(self):
        runner = make_runner(lockfiles={"package-lock.json", "yarn.lock"})

        assert runner.install_command(PROJECT) == "npm install"

    def test_keychain_password_is_quoted_and_redacted(self):
        runner = make_runner(keychain_password="pa ss'word")

        unlock = runner.build_steps(PROJECT, BuildOptions())[0]

        assert unlock.command == "security -v unlock-keychain -p 'pa ss'\"'\"'word' login.keychain"
        assert "pa ss" not in unlock.display
        assert REDACTED in unlock.display

    def test_extra_args_are_appended_quoted(self):
        runner = make_runner(build_command="ns")

        build = runner.build_steps(PROJECT, BuildOptions(extra_args=("--env.production", "--team-id", "A B")))[-1]

        assert build.command == "ns build ios --for-device --env.sourceMap --env.production --team-id 'A B'"


class TestRun:

    def test_steps_run_in_remote_project_dir(self):
        runner = make_runner(lockfiles={"package-lock.json"})
        session = Mock(spec=RemoteSession)

        runner.run_build(session, PROJECT, BuildOptions(), config_path="/work/App/.nsremote.config.json")

        commands = [c.args[0] for c in session.execute.call_args_list]
        assert commands == ["npm install", "tns build ios --for-device --env.sourceMap"]
        for call in session.execute.call_args_list:
            assert call.kwargs["cwd"] == "/Users/ben/tmp/App"
            assert isinstance(call.kwargs["watcher"], OutputWatcher)

    def test_stops_at_first_failure(self):
        runner = make_runner(lockfiles={"package-lock.json"})
        session = Mock(spec=RemoteSession)
        session.execute.side_effect = CommandError("npm install", 1)

        with pytest.raises(CommandError):
            runner.run_build(session, PROJECT, BuildOptions())

        assert session.execute.call_count == 1

    def test_watcher_error_propagates(self):
        runner = make_runner()
        session = Mock(spec=RemoteSession)
        session.execute.side_effect = RemoteProjectMissing("/Users/ben/tmp/App", "No project found")

        with pytest.raises(RemoteProjectMissing):
            runner.run_build(session, PROJECT, BuildOptions())

    def test_redacted_text_is_what_gets_logged(self):
        runner = make_runner(keychain_password="s3cret")
        session = Mock(spec=RemoteSession)

        runner.run_build(session, PROJECT, BuildOptions())

        logged = " ".join(c.args[0] for c in runner.log.info.call_args_list)
        assert "s3cret" not in logged
        unlock_call = session.execute.call_args_list[0]
        assert "s3cret" in unlock_call.args[0]
        assert "s3cret" not in unlock_call.kwargs["display"]

    def test_remote_output_is_forwarded_line_by_line(self):
        runner = make_runner()
        session = Mock(spec=RemoteSession)

        def fake_execute(command, **kwargs):
            kwargs["on_stdout"]("Preparing project...\nProject succ")
            kwargs["on_stdout"]("essfully built.")

        session.execute.side_effect = fake_execute

        runner.run_build(session, PROJECT, BuildOptions())

        logged = [c.args[0] for c in runner.log.info.call_args_list]
        assert "Preparing project..." in logged
        assert "Project successfully built." in logged

    def test_output_of_one_step_never_completes_a_signature_in_the_next(self):
        runner = make_runner(lockfiles={"package-lock.json"})
        session = Mock(spec=RemoteSession)
        matches = []

        def fake_execute(command, **kwargs):
            text = "added 812 packages. No project" if command == "npm install" else " found in cache? no: fine\n"
            matches.append(kwargs["watcher"].check(text))

        session.execute.side_effect = fake_execute

        runner.run_build(session, PROJECT, BuildOptions())

        assert matches == [None, None]


class TestLineLogger:

    def test_splits_chunks_into_lines(self):
        emitted = []
        sink = LineLogger(emitted.append)

        sink("first\nsec")
        sink("ond\r\n\nthird")
        sink.flush()

        assert emitted == ["first", "second", "third"]

    def test_flush_without_pending_emits_nothing(self):
        emitted = []
        sink = LineLogger(emitted.append)

        sink("done\n")
        sink.flush()

        assert emitted == ["done"]
