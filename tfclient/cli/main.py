"""Main CLI entry point for tfclient."""

import argparse
import sys
from typing import Optional

from .commands import run_command, COMMAND_NAMES


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the tfclient CLI."""
    parser = argparse.ArgumentParser(
        prog='tfclient',
        description='Run Terraform commands as fail-fast pipelines'
    )

    parser.add_argument(
        'command',
        choices=COMMAND_NAMES,
        help='Terraform operation to run'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='Path to client YAML config file'
    )
    parser.add_argument(
        '--dir',
        type=str,
        dest='working_directory',
        help='Terraform working directory (overrides config)'
    )
    parser.add_argument(
        '--executable',
        type=str,
        help='Terraform binary to run (overrides config)'
    )
    parser.add_argument(
        '--inherit-io',
        action='store_true',
        help='Let terraform write directly to this terminal'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='Cancel the operation after this many seconds'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='warn',
        help='Set log level'
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    return run_command(parsed_args)


if __name__ == '__main__':
    sys.exit(main())
