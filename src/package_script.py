"""External package script interface.

Each package operation runs the configured shell with a generated script
on its standard input. The script sources the shared package logic, binds
PACKAGE to the entry's name, replays the entry's directives and finally
calls build_package or install_package.
"""

import logging
import time
from typing import Optional

from common import PackageResult, run_command
from config import DEFAULT_SCRIPT, PackageConfig

logger = logging.getLogger(__name__)

OPERATIONS = ('build', 'install')


def build_script(name: str, operation: str, directives: str, script: str = DEFAULT_SCRIPT) -> str:
    """Return the text fed to the shell for one package operation."""
    if operation not in OPERATIONS:
        raise ValueError(f"Unknown operation '{operation}'")
    return (
        f'. {script}\n'
        f'PACKAGE="{name}"\n'
        f'{directives}'
        f'{operation}_package\n'
    )


def run_package_script(
    name: str,
    operation: str,
    directives: str,
    config: PackageConfig,
    stdout: Optional[int] = None
) -> PackageResult:
    """Run one package operation through the shell.

    Args:
        name: Package name
        operation: 'build' or 'install'
        directives: Directive text (indent stripped, newline-terminated lines)
        config: Run configuration (shell, script, exported variables)
        stdout: File descriptor for the shell's stdout (None = inherit)

    Returns:
        PackageResult with success=False when the shell exits non-zero,
        times out, or cannot be started
    """
    script_text = build_script(name, operation, directives, config.script)
    logger.debug(f"Script for {name}:\n{script_text}")

    start = time.time()
    rc, error = run_command(
        [config.shell],
        input_text=script_text,
        timeout=config.timeout,
        env=config.script_env(),
        stdout=stdout,
    )
    duration = time.time() - start

    if rc == 0:
        return PackageResult(success=True, duration=duration, returncode=rc)
    message = error or f"{operation}_package exited with status {rc}"
    return PackageResult(success=False, message=message, duration=duration, returncode=rc)
