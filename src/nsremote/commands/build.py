"""Build the iOS platform of a project on a remote Mac"""
import argparse

from nsremote.core import ConsoleLogger
from nsremote.remote import BuilderFactory, BuildOptions, RemoteBuildError


def setup_parser(parser):
    """Setup argument parser for build command"""
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
        '--project-name',
        default=None,
        help='Remote directory and .ipa name (default: project directory name)'
    )
    parser.add_argument(
        '--native-root',
        default=None,
        help='iOS platform directory, relative to the project (default: platforms/ios)'
    )
    parser.add_argument(
        '--clean',
        action='store_true',
        help='Delete local and remote build output before building'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug output'
    )
    parser.add_argument(
        'build_args',
        nargs=argparse.REMAINDER,
        help='Extra arguments for the remote build command (after --)'
    )


def execute(args):
    """Execute build command"""
    logger = ConsoleLogger(verbose=args.verbose)
    extra = list(args.build_args or [])
    if extra and extra[0] == '--':
        extra = extra[1:]

    try:
        builder = BuilderFactory.from_project(
            args.project_dir,
            config_path=args.config,
            project_name=args.project_name,
            native_project_root=args.native_root,
            logger=logger
        )
        builder.build(BuildOptions(force_clean=args.clean, extra_args=tuple(extra)))
    except RemoteBuildError as e:
        logger.error(str(e))
        return 1

    return 0
