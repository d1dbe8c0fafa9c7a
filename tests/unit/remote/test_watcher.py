"""Unit tests for the OutputWatcher signature table."""

import re

from nsremote.remote.exceptions import InvalidRemoteCredential, RemoteProjectMissing
from nsremote.remote.watcher import OutputSignature, OutputWatcher, default_signatures


class TestDefaultSignatures:

    def test_project_missing_is_case_insensitive(self):
        watcher = OutputWatcher.for_build()

        signature = watcher.check("Error: No project found at or above '/Users/ben/tmp/App'")

        assert signature is not None
        assert signature.name == "project-missing"
        assert isinstance(signature.to_error("No project found"), RemoteProjectMissing)

    def test_keychain_password_error_names_config_file(self):
        watcher = OutputWatcher.for_build(config_path="/work/App/.nsremote.config.json")

        signature = watcher.check(
            "security: SecKeychainUnlock login.keychain: "
            "The user name or passphrase you entered is not correct."
        )
        error = signature.to_error("...")

        assert isinstance(error, InvalidRemoteCredential)
        assert "/work/App/.nsremote.config.json" in str(error)

    def test_normal_output_does_not_match(self):
        watcher = OutputWatcher(default_signatures())

        assert watcher.check("Project successfully built.\n") is None
        assert watcher.fired is None


class TestOutputWatcher:

    def test_signature_split_across_chunks(self):
        watcher = OutputWatcher.for_build()

        assert watcher.check("Searching... No proj") is None
        assert watcher.check("ect found\n").name == "project-missing"

    def test_fires_only_once(self):
        watcher = OutputWatcher.for_build()

        assert watcher.check("No project found") is not None
        assert watcher.check("No project found") is None
        assert watcher.fired.name == "project-missing"

    def test_reset_clears_state(self):
        watcher = OutputWatcher.for_build()
        watcher.check("No project found")

        watcher.reset()

        assert watcher.fired is None
        assert watcher.check("No project found") is not None

    def test_custom_table_first_row_wins(self):
        first = OutputSignature("first", re.compile("boom"), lambda out: RemoteProjectMissing(None, out))
        second = OutputSignature("second", re.compile("boom"), lambda out: RemoteProjectMissing(None, out))
        watcher = OutputWatcher([first, second])

        assert watcher.check("boom") is first
