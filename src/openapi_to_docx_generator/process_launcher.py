"""Blocking launch of external renderers such as kgt or librsvg."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def build_command(
    command: str,
    args: str,
    arg_replacements: Optional[Mapping[str, str]] = None,
) -> list[str]:
    """Substitute ``%key%`` placeholders in ``args`` and split into argv."""
    for key, value in (arg_replacements or {}).items():
        args = args.replace(key, value)
    return [command, *shlex.split(args)]


def run_process(
    *,
    command: str,
    args: str,
    input_lines: Optional[Iterable[str]] = None,
    work_dir: Optional[Path] = None,
    arg_replacements: Optional[Mapping[str, str]] = None,
) -> list[str]:
    """Run a command to completion and return its standard output lines.

    Args:
        command (str): Executable to start.
        args (str): Argument string, split like a POSIX shell would.
        input_lines (Optional[Iterable[str]]): Lines fed to standard input.
        work_dir (Optional[Path]): Working directory of the process.
        arg_replacements (Optional[Mapping[str, str]]): Placeholders replaced
            in ``args`` before splitting.

    Returns:
        list[str]: Output lines; empty if the process could not be started or
        exited with a non-zero status.
    """
    argv = build_command(command, args, arg_replacements)
    stdin_text = None if input_lines is None else "".join(f"{line}\n" for line in input_lines)
    logger.info("Starting process: %s", shlex.join(argv))
    try:
        completed = subprocess.run(
            argv,
            input=stdin_text,
            cwd=str(work_dir) if work_dir is not None else None,
            check=True,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        logger.warning("Failed to start %s: %s", command, exc)
        return []
    except subprocess.CalledProcessError as exc:
        error_text = (exc.stderr or "").strip() or (exc.stdout or "").strip() or str(exc)
        logger.warning("%s exited with status %s: %s", command, exc.returncode, error_text)
        return []
    for line in completed.stderr.splitlines():
        logger.debug("%s: %s", command, line)
    return completed.stdout.splitlines()
