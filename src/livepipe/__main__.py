"""Entry point for python -m livepipe."""

import argparse
import logging
import sys
from typing import TextIO

from prompt_toolkit.input import create_input

from livepipe.app import PreviewApp
from livepipe.buffer import CaptureBuffer, Notifier
from livepipe.cli import run_init
from livepipe.config import Settings, find_settings
from livepipe.exceptions import CaptureError, ConfigError, UsageError
from livepipe.logs import setup_logging

logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"
USAGE_HINT = (
    "livepipe requires some data piped on standard input, "
    "e.g.: `echo hello world | livepipe`"
)


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="livepipe",
        description="Pipe data in, type a shell command, and watch its output as you edit it.",
    )
    parser.add_argument("--config", help="Settings file (default: ~/.livepipe/settings.yaml)")
    parser.add_argument("--shell", help="Shell used to run the command (default: bash)")
    parser.add_argument(
        "--buffer-size",
        type=int,
        help="Maximum bytes captured from stdin and from each command run",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init", help="Initialize ~/.livepipe settings")
    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    """Load settings and apply command-line overrides."""
    settings = find_settings(args.config)
    if args.shell:
        settings.shell = args.shell
    if args.buffer_size is not None:
        if args.buffer_size <= 0:
            raise ConfigError(f"Invalid buffer size: {args.buffer_size}. Must be positive")
        settings.buffer_size = args.buffer_size
    return settings


def run_preview(settings: Settings, stdin: TextIO | None = None) -> int:
    """Capture stdin in the background and run the preview UI.

    Raises:
        UsageError: If stdin is a terminal or no terminal is available for keys.
        CaptureError: If reading stdin fails.
    """
    stdin = stdin if stdin is not None else sys.stdin
    if stdin.isatty():
        raise UsageError(USAGE_HINT)

    notifier = Notifier()
    input_buffer = CaptureBuffer(settings.buffer_size, notifier=notifier)
    input_buffer.collect_in_background(stdin.buffer, name="livepipe-input")

    # stdin carries the data, so keys come from the controlling terminal.
    try:
        tty = open(TTY_PATH)
    except OSError as e:
        raise UsageError(f"cannot open {TTY_PATH} for keyboard input: {e}") from e

    with tty:
        app = PreviewApp(settings, input_buffer, notifier, input=create_input(stdin=tty))
        status = app.run()

    if app.saved_script is not None:
        print(f"livepipe: wrote {app.saved_script}", file=sys.stderr)
    return status


def main(argv: list[str] | None = None) -> int:
    """Run the CLI or the preview UI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        run_init()
        return 0

    try:
        settings = _load_settings(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    try:
        setup_logging(settings)
    except OSError as e:
        print(f"Config error: cannot open log file: {e}", file=sys.stderr)
        return 1

    try:
        return run_preview(settings)
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except CaptureError as e:
        logger.error("input capture failed: %s", e)
        print(f"livepipe: reading standard input failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
