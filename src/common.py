"""Common utilities and types for the package driver."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """Result returned by a package script run."""
    success: bool
    message: str = ''
    duration: float = 0.0
    returncode: Optional[int] = None


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = None,
    input_text: Optional[str] = None,
    env: Optional[dict] = None,
    stdout: Optional[int] = None
) -> tuple[int, str]:
    """Run a command, feeding input_text to its stdin.

    Output is not captured; the child writes straight to the terminal,
    or to the file descriptor given as stdout.

    Returns:
        (returncode, error) tuple. error is empty unless the command
        could not be run or timed out, in which case returncode is -1.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            input=input_text,
            stdout=stdout,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, ''
    except subprocess.TimeoutExpired:
        return -1, f'Command timed out after {timeout}s'
    except OSError as e:
        return -1, str(e)
