"""Command implementation shared by every tfclient operation."""

import json
import logging
import sys
from argparse import Namespace
from concurrent.futures import TimeoutError as FuturesTimeoutError
from pathlib import Path
from typing import Any

from tfclient.client import TerraformClient
from tfclient.config import ClientConfig, load_config
from tfclient.pipeline import PipelineRun
from tfclient.exceptions import (
    ConfigurationError,
    ConfigValidationError,
    ShutdownError,
    TerraformClientError,
)


logger = logging.getLogger(__name__)

COMMAND_NAMES = ['version', 'init', 'plan', 'apply', 'destroy', 'output']

EXIT_TIMEOUT = 124
EXIT_INTERRUPTED = 130


def configure_logging(args: Namespace) -> None:
    """Set up logging from --log-level and the debug/quiet/verbose switches."""
    level_name = 'warning' if args.log_level == 'warn' else args.log_level
    log_level = getattr(logging, level_name.upper())
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def build_config(args: Namespace) -> ClientConfig:
    """Load the config file (if any) and apply command-line overrides."""
    config = load_config(Path(args.config)) if args.config else ClientConfig()
    if args.working_directory:
        config.working_directory = Path(args.working_directory)
    if args.executable:
        config.executable = [args.executable]
    if args.inherit_io:
        config.inherit_io = True
    return config


def _print_stdout(line: str) -> None:
    print(line, flush=True)


def _print_stderr(line: str) -> None:
    print(line, file=sys.stderr, flush=True)


def report_result(command: str, run: PipelineRun, result: Any) -> int:
    """Print the operation result where needed and map it to an exit code."""
    if command == 'output':
        print(json.dumps(result, indent=2, sort_keys=True))
        return 0 if run.steps and all(step.succeeded for step in run.steps) else 1
    if command == 'version':
        return 0 if result is not None else 1
    return 0 if result else 1


def run_command(args: Namespace) -> int:
    """
    Run one Terraform operation and wait for it.

    Exit codes: 0 success, 1 failure, 2 configuration error,
    124 timed out, 130 interrupted.
    """
    configure_logging(args)

    try:
        config = build_config(args)
    except ConfigValidationError as e:
        for error in e.errors:
            logger.error(f"Validation error: {error.message}")
        return e.exit_code

    quiet_stdout = args.quiet or args.command == 'output'
    try:
        client = TerraformClient.from_config(
            config,
            output_observer=None if quiet_stdout else _print_stdout,
            error_observer=_print_stderr,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        operation = getattr(client, args.command)
        logger.info(f"Running {args.command} in {config.working_directory or Path.cwd()}")
        run = operation()
        try:
            result = run.result(timeout=args.timeout)
        except FuturesTimeoutError:
            logger.error(f"{args.command} timed out after {args.timeout} seconds, cancelling")
            run.cancel()
            run.result()
            return EXIT_TIMEOUT
        except KeyboardInterrupt:
            logger.warning(f"Interrupted, cancelling {args.command}")
            run.cancel()
            run.result()
            return EXIT_INTERRUPTED
        return report_result(args.command, run, result)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except TerraformClientError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        try:
            client.shutdown()
        except ShutdownError as e:
            logger.error(f"Shutdown error: {e}")
