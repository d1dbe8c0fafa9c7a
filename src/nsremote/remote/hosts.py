"""
HostSelector - pick the first usable build machine from the pool.

Hosts are tried strictly in pool order. A host is usable when a real SSH
handshake (with authentication) succeeds within the connect timeout; an
optional single ping is a cheaper pre-filter in front of the handshake.
"""

import platform
import subprocess
from typing import Callable, Dict, Optional, Sequence, Tuple

from .base import RemoteOptions
from .exceptions import NoHostReachable, RemoteConnectionError
from .session import RemoteSession

PING_TIMEOUT = 4

SessionFactory = Callable[..., RemoteSession]


def parse_host_entry(entry: str, default_port: int = 22) -> Tuple[str, int]:
    """
    Split a host pool entry into (host, port).

    Formats:
        mac-mini             → ("mac-mini", default_port)
        10.42.0.2:2222       → ("10.42.0.2", 2222)
        [fe80::1]            → ("fe80::1", default_port)
        [fe80::1]:2222       → ("fe80::1", 2222)

    Raises:
        ValueError: If brackets are unbalanced or the port is not a number
    """
    entry = entry.strip()
    if entry.startswith('['):
        bracket_end = entry.find(']')
        if bracket_end == -1:
            raise ValueError(f"Malformed IPv6 address: {entry}")
        host = entry[1:bracket_end]
        remainder = entry[bracket_end + 1:]
        port = int(remainder[1:]) if remainder.startswith(':') else default_port
        return host, port

    # A bare IPv6 address has several colons and no port
    if entry.count(':') == 1:
        host, port_str = entry.rsplit(':', 1)
        return host, int(port_str)
    return entry, default_port


def ping_host(host: str, timeout: int = PING_TIMEOUT) -> bool:
    """
    Send a single ICMP echo with a bounded timeout.

    Returns:
        True if the host answered; False on no answer, timeout or missing ping binary
    """
    system = platform.system()
    if system == "Windows":
        cmd = ["ping", "-n", "1", "-w", str(timeout * 1000), host]
    elif system == "Darwin":
        cmd = ["ping", "-c", "1", "-t", str(timeout), host]
    else:
        cmd = ["ping", "-c", "1", "-W", str(timeout), host]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout + 1)
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return False
    return result.returncode == 0


class HostSelector:
    """
    Resolves a HostPool to exactly one connected RemoteSession.

    Args:
        options: Remote options (user, credentials, timeouts, ping_first)
        logger: Logging abstraction
        session_factory: Builds an unconnected session (RemoteSession in production)
        pinger: Reachability probe used when options.ping_first is set
    """

    def __init__(
        self,
        options: RemoteOptions,
        logger,
        session_factory: SessionFactory = RemoteSession,
        pinger: Callable[[str], bool] = ping_host
    ):
        self.options = options
        self.log = logger
        self.session_factory = session_factory
        self.pinger = pinger

    def select(self, hosts: Optional[Sequence[str]] = None) -> RemoteSession:
        """
        Return a connected session to the first host that accepts one.

        Failed sessions are disposed before the next host is tried, so at most
        one session is ever alive and none is on failure.

        Raises:
            NoHostReachable: If every host failed the ping or the handshake
        """
        hosts = list(self.options.machines if hosts is None else hosts)
        reasons: Dict[str, str] = {}

        for entry in hosts:
            try:
                host, port = parse_host_entry(entry, self.options.ssh_port)
            except ValueError as e:
                reasons[entry] = str(e)
                self.log.warning(f"Skipping malformed machine entry {entry!r}: {e}")
                continue

            if self.options.ping_first:
                self.log.info(f"Pinging {host}...")
                if not self.pinger(host):
                    reasons[entry] = "no reply to ping"
                    continue

            session = self.session_factory(
                host,
                self.options.ssh_user,
                port=port,
                password=self.options.ssh_password,
                key_filename=self.options.ssh_key_path,
                logger=self.log
            )
            self.log.info(f"Attempting SSH login {session.address}...")
            try:
                session.connect(timeout=self.options.connect_timeout)
            except RemoteConnectionError as e:
                session.dispose()
                reasons[entry] = e.reason
                self.log.debug(f"{session.address} unavailable: {e.reason}")
                continue

            self.log.info(f"Connected to {session.address}")
            return session

        raise NoHostReachable(hosts, reasons)
