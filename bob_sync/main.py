#!/usr/bin/env python3
"""
bob-sync - BOB planner ↔ Apple Reminders synchronization.
"""

import argparse
import logging

from .core.config import load_config, get_default_config_path, get_log_dir
from .core.paths import PathManager
from .commands import SyncCommand, CompleteCommand

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(verbose: bool = False, log_file: bool = False) -> None:
    """Console logging, plus a file under the working directory when asked."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if log_file:
        path = get_log_dir() / PathManager.LOG_FILE
        handler = logging.FileHandler(path, encoding='utf-8')
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bob-sync',
        description="Two-way sync between BOB tasks/stories and Apple Reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bob-sync sync                      # Run one sync pass for the configured owner
  bob-sync sync --owner UID          # Sync a specific owner
  bob-sync complete REMINDER-ID      # Push one reminder's completion to BOB
        """
    )

    default_config = get_default_config_path()

    parser.add_argument(
        '--config',
        help=f'Path to configuration file (default: {default_config})',
        default=None
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    parser.add_argument(
        '--log-file',
        action='store_true',
        help='Also write logs to the bob-sync log directory'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    sync_parser = subparsers.add_parser('sync', help='Run one full sync pass')
    sync_parser.add_argument(
        '--owner',
        help='Owner uid to sync (overrides the config file)'
    )

    complete_parser = subparsers.add_parser(
        'complete',
        help="Report a reminder's completion state to BOB"
    )
    complete_parser.add_argument('reminder_id', help='Reminder identifier')
    complete_parser.add_argument(
        '--owner',
        help='Owner uid (overrides the config file)'
    )

    return parser


def main(argv=None):
    """Main entry point for bob-sync."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose, args.log_file)

    if not args.command:
        parser.print_help()
        return 1

    config = load_config(args.config)

    if args.verbose:
        actual_config_path = args.config if args.config else get_default_config_path()
        print(f"Using config: {actual_config_path}")

    try:
        if args.command == 'sync':
            cmd = SyncCommand(config, verbose=args.verbose)
            success = cmd.run(owner=args.owner)

        elif args.command == 'complete':
            cmd = CompleteCommand(config, verbose=args.verbose)
            success = cmd.run(args.reminder_id, owner=args.owner)

        else:
            print(f"Unknown command '{args.command}'.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130


if __name__ == '__main__':
    raise SystemExit(main())
