"""
nsremote - Remote iOS builds for NativeScript projects

Builds the iOS platform on a Mac reachable over SSH when the local machine
cannot, and brings the .ipa back.
"""
import argparse
import sys

__version__ = "1.0.0"


def main():
    """Main CLI entry point"""
    from nsremote.commands import build, hosts

    parser = argparse.ArgumentParser(
        prog='nsremote',
        description='nsremote: build NativeScript iOS apps on a remote Mac',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  nsremote build                       # Build ./ on the first reachable Mac
  nsremote build --clean               # Discard local and remote build output first
  nsremote build -- --env.production   # Pass extra arguments to "tns build"
  nsremote hosts                       # Check which machines are reachable
        '''
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Build command
    build_parser = subparsers.add_parser('build', help='Build on a remote Mac')
    build.setup_parser(build_parser)

    # Hosts command
    hosts_parser = subparsers.add_parser('hosts', help='Check build machines')
    hosts.setup_parser(hosts_parser)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Dispatch to command handler
    try:
        if args.command == 'build':
            sys.exit(build.execute(args))
        elif args.command == 'hosts':
            sys.exit(hosts.execute(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
