"""CLI command handlers."""

from .run import run_command, COMMAND_NAMES

__all__ = ['run_command', 'COMMAND_NAMES']
