"""Report which build machines of the pool are reachable"""
from nsremote.core import ConsoleLogger
from nsremote.remote import (
    BuilderFactory,
    RemoteConnectionError,
    RemoteBuildError,
    RemoteSession,
    parse_host_entry,
    ping_host,
)


def setup_parser(parser):
    """Setup argument parser for hosts command"""
    parser.add_argument(
        '--project-dir',
        default='.',
        help='NativeScript project root (default: current directory)'
    )
    parser.add_argument(
        '--config',
        default=None,
        help='Config file (default: <project-dir>/.nsremote.config.json)'
    )
    parser.add_argument(
        '--no-ping',
        action='store_true',
        help='Skip the ping probe, only try SSH'
    )


def check_host(entry, options, logger, pinger=ping_host, session_factory=RemoteSession):
    """Ping and SSH-check one pool entry. Returns (pinged, ssh_ok, detail)."""
    host, port = parse_host_entry(entry, options.ssh_port)
    pinged = pinger(host) if pinger else None

    session = session_factory(
        host,
        options.ssh_user,
        port=port,
        password=options.ssh_password,
        key_filename=options.ssh_key_path,
        logger=logger
    )
    try:
        session.connect(timeout=options.connect_timeout)
        return pinged, True, "ok"
    except RemoteConnectionError as e:
        return pinged, False, e.reason
    finally:
        session.dispose()


def execute(args):
    """Execute hosts command"""
    logger = ConsoleLogger()
    config_path = BuilderFactory.config_path_for(args.project_dir, args.config)

    try:
        options = BuilderFactory.load_remote_options(config_path)
    except RemoteBuildError as e:
        logger.error(str(e))
        return 1

    available = 0
    for entry in options.machines:
        try:
            pinged, ssh_ok, detail = check_host(
                entry, options, logger, pinger=None if args.no_ping else ping_host
            )
        except ValueError as e:
            logger.info(f"  ✗ {entry}: {e}")
            continue

        ping_status = "-" if pinged is None else ("yes" if pinged else "no")
        mark = "✓" if ssh_ok else "✗"
        logger.info(f"  {mark} {entry}  ping={ping_status}  ssh={detail}")
        available += int(ssh_ok)

    logger.info(f"\n{available}/{len(options.machines)} machine(s) available")
    return 0 if available else 1
