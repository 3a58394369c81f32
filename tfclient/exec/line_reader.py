"""
Line-oriented draining of captured child streams.

Each captured stream (stdout, stderr) is drained by its own task so a child
blocked on one full pipe never waits on a reader busy with the other.
Lines are delivered in the order written, with CRLF/LF terminators removed.
"""

import logging
from typing import Callable, IO, Optional

from ..exceptions import IOCaptureError


logger = logging.getLogger(__name__)

LineObserver = Callable[[str], None]


def strip_terminator(line: str) -> str:
    """Remove a trailing LF or CRLF."""
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def drain_lines(
    stream: Optional[IO[str]],
    observer: Optional[LineObserver],
    stream_name: str = "stdout",
) -> int:
    """
    Read a text stream to end-of-stream, delivering each line to observer.

    Args:
        stream: Text-mode pipe from the child process
        observer: Callback receiving each line (None discards lines)
        stream_name: Stream label for logging

    Returns:
        Number of lines read

    Raises:
        IOCaptureError: If the stream is missing or reading fails
    """
    if stream is None:
        raise IOCaptureError(f"No {stream_name} pipe available for capture")

    count = 0
    try:
        for raw_line in stream:
            count += 1
            if observer is None:
                continue
            line = strip_terminator(raw_line)
            try:
                observer(line)
            except Exception:
                # Keep draining so the child never blocks on a full pipe
                logger.exception(f"{stream_name} observer raised on line {count}")
    except (OSError, ValueError) as e:
        raise IOCaptureError(f"Failed reading {stream_name}: {e}") from e
    finally:
        try:
            stream.close()
        except OSError:
            logger.debug(f"Error closing {stream_name} pipe", exc_info=True)

    logger.debug(f"Drained {count} {stream_name} lines")
    return count
