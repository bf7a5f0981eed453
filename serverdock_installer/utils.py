"""Logging and subprocess helpers for the ServerDock installer."""

import logging
import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

LOGGER_NAME = "serverdock-installer"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(debug: bool = False) -> logging.Logger:
    """Configure logging for the installer.

    Args:
        debug: Enable debug-level logging

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if debug else logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    installer_logger = logging.getLogger(LOGGER_NAME)
    installer_logger.setLevel(level)
    # setup_logging may run more than once per process (tests, re-entry)
    installer_logger.handlers = [handler]

    return installer_logger


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for diagnostics."""
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part and part.strip())


class CommandError(RuntimeError):
    """A checked command exited non-zero."""

    def __init__(self, result: CmdResult):
        self.result = result
        super().__init__(f"Command failed ({result.returncode}): {format_argv(result.argv)}\n{result.stderr}")


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = False,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> CmdResult:
    """Run a command with consistent logging.

    The command line is logged before it runs; output is logged at debug
    level and returned for diagnostics.

    Args:
        argv: Command and arguments
        check: Raise CommandError on a non-zero exit
        env: Extra environment variables layered over os.environ
        cwd: Working directory

    Returns:
        CmdResult with exit status and captured output
    """
    argv_list = list(argv)
    logger.info(f"CMD {format_argv(argv_list)}")

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except OSError as e:
        # Missing or non-executable program, reported like a shell would
        logger.warning(f"Cannot run {argv_list[0]}: {e}")
        result = CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))
    else:
        if p.stdout:
            logger.debug(f"STDOUT {p.stdout.strip()}")
        if p.stderr:
            logger.debug(f"STDERR {p.stderr.strip()}")
        result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "")

    if check and not result.ok:
        raise CommandError(result)
    return result


def format_bytes(size: int) -> str:
    """Format a byte count for log lines (e.g. "48.8 KiB")."""
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"
