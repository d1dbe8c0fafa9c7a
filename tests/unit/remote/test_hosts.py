"""Unit tests for host pool parsing, ping and HostSelector."""

import subprocess
import pytest
from unittest.mock import Mock, patch

from nsremote.core.protocols import Logger
from nsremote.remote.base import RemoteOptions
from nsremote.remote.exceptions import NoHostReachable, RemoteConnectionError
from nsremote.remote.hosts import HostSelector, parse_host_entry, ping_host
from nsremote.remote.session import RemoteSession


class TestParseHostEntry:

    def test_plain_host(self):
        assert parse_host_entry("mac-mini") == ("mac-mini", 22)

    def test_host_with_port(self):
        assert parse_host_entry("10.42.0.2:2222") == ("10.42.0.2", 2222)

    def test_default_port_is_used(self):
        assert parse_host_entry("mac-mini", default_port=2200) == ("mac-mini", 2200)

    def test_bracketed_ipv6(self):
        assert parse_host_entry("[fe80::1]") == ("fe80::1", 22)
        assert parse_host_entry("[fe80::1]:2222") == ("fe80::1", 2222)

    def test_bare_ipv6_keeps_default_port(self):
        assert parse_host_entry("fe80::1") == ("fe80::1", 22)

    def test_malformed_entries(self):
        with pytest.raises(ValueError):
            parse_host_entry("[fe80::1")
        with pytest.raises(ValueError):
            parse_host_entry("mac-mini:ssh")


class TestPingHost:

    @patch('nsremote.remote.hosts.subprocess.run')
    @patch('nsremote.remote.hosts.platform.system', return_value='Linux')
    def test_linux_single_echo(self, mock_system, mock_run):
        mock_run.return_value = Mock(returncode=0)

        assert ping_host("mac-mini", timeout=4) is True
        assert mock_run.call_args.args[0] == ["ping", "-c", "1", "-W", "4", "mac-mini"]

    @patch('nsremote.remote.hosts.subprocess.run')
    @patch('nsremote.remote.hosts.platform.system', return_value='Windows')
    def test_windows_timeout_in_milliseconds(self, mock_system, mock_run):
        mock_run.return_value = Mock(returncode=1)

        assert ping_host("mac-mini", timeout=4) is False
        assert mock_run.call_args.args[0] == ["ping", "-n", "1", "-w", "4000", "mac-mini"]

    @patch('nsremote.remote.hosts.subprocess.run')
    @patch('nsremote.remote.hosts.platform.system', return_value='Darwin')
    def test_timeout_counts_as_unreachable(self, mock_system, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ping", timeout=5)

        assert ping_host("mac-mini") is False

    @patch('nsremote.remote.hosts.subprocess.run', side_effect=FileNotFoundError("ping"))
    def test_missing_ping_binary(self, mock_run):
        assert ping_host("mac-mini") is False


def make_options(**overrides):
    values = {"machines": ("mac-a", "mac-b", "mac-c"), "ssh_user": "ben"}
    values.update(overrides)
    return RemoteOptions(**values)


class FakeSessions:
    """Session factory recording every session it hands out."""

    def __init__(self, reachable):
        self.reachable = set(reachable)
        self.created = []

    def __call__(self, host, username, **kwargs):
        session = Mock(spec=RemoteSession)
        session.host = host
        session.address = f"{username}@{host}"
        session.kwargs = kwargs
        if host not in self.reachable:
            session.connect.side_effect = RemoteConnectionError(session.address, "Connection refused")
        self.created.append(session)
        return session


class TestHostSelector:

    def setup_method(self):
        self.logger = Mock(spec=Logger)

    def test_first_reachable_host_wins(self):
        factory = FakeSessions(reachable={"mac-b", "mac-c"})
        selector = HostSelector(make_options(), self.logger, session_factory=factory)

        session = selector.select()

        assert session.host == "mac-b"
        # mac-c is never contacted
        assert [s.host for s in factory.created] == ["mac-a", "mac-b"]

    def test_failed_sessions_are_disposed(self):
        factory = FakeSessions(reachable={"mac-c"})
        selector = HostSelector(make_options(), self.logger, session_factory=factory)

        session = selector.select()

        failed = factory.created[:2]
        assert all(s.dispose.called for s in failed)
        session.dispose.assert_not_called()

    def test_no_host_reachable_lists_reasons(self):
        factory = FakeSessions(reachable=set())
        selector = HostSelector(make_options(), self.logger, session_factory=factory)

        with pytest.raises(NoHostReachable) as exc_info:
            selector.select()

        assert exc_info.value.hosts == ["mac-a", "mac-b", "mac-c"]
        assert exc_info.value.reasons["mac-b"] == "Connection refused"
        assert all(s.dispose.called for s in factory.created)

    def test_empty_pool(self):
        selector = HostSelector(make_options(), self.logger, session_factory=FakeSessions(set()))

        with pytest.raises(NoHostReachable) as exc_info:
            selector.select(hosts=[])

        assert "host pool is empty" in str(exc_info.value)

    def test_session_gets_credentials_and_port(self):
        factory = FakeSessions(reachable={"10.42.0.2"})
        options = make_options(machines=("10.42.0.2:2222",), ssh_password="pw", ssh_key_path="~/.ssh/id_mac")
        selector = HostSelector(options, self.logger, session_factory=factory)

        session = selector.select()

        assert session.kwargs["port"] == 2222
        assert session.kwargs["password"] == "pw"
        assert session.kwargs["key_filename"] == "~/.ssh/id_mac"
        session.connect.assert_called_once_with(timeout=1.0)

    def test_ping_first_skips_silent_hosts(self):
        factory = FakeSessions(reachable={"mac-a", "mac-b"})
        pinger = Mock(side_effect=lambda host: host == "mac-b")
        selector = HostSelector(make_options(ping_first=True), self.logger,
                                session_factory=factory, pinger=pinger)

        session = selector.select()

        assert session.host == "mac-b"
        assert [s.host for s in factory.created] == ["mac-b"]

    def test_ping_not_used_by_default(self):
        factory = FakeSessions(reachable={"mac-a"})
        pinger = Mock(return_value=False)
        selector = HostSelector(make_options(), self.logger, session_factory=factory, pinger=pinger)

        selector.select()

        pinger.assert_not_called()

    def test_malformed_entry_is_skipped(self):
        factory = FakeSessions(reachable={"mac-b"})
        selector = HostSelector(make_options(machines=("[broken", "mac-b")), self.logger,
                                session_factory=factory)

        session = selector.select()

        assert session.host == "mac-b"
        self.logger.warning.assert_called_once()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
