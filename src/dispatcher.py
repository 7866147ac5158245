"""Manifest dispatch for build and install runs.

Walks the manifest in file order and hands each selected entry to the
package script, one package at a time. The next package starts only
after the previous script has exited.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from common import PackageResult
from config import ConfigError, PackageConfig
from manifest import ManifestReader, open_manifest
from package_script import OPERATIONS, build_script, run_package_script
from reporting import PackageOutcome, RunReport

logger = logging.getLogger(__name__)


class ScriptRunner(Protocol):
    """Callable that runs one package operation."""

    def __call__(self, name: str, operation: str, directives: str,
                 config: PackageConfig, stdout: Optional[int] = None) -> PackageResult:
        """Run the operation and report the result."""


@dataclass
class Dispatcher:
    """Runs one operation over the manifest's packages.

    Attributes:
        config: Run configuration
        operation: 'build' or 'install'
        on_failure: Failure policy override (defaults to config.on_failure)
        dry_run: Log each package's script instead of running it
        stdout: File descriptor for package scripts' stdout (None = inherit)
        runner: Package script runner
    """
    config: PackageConfig
    operation: str
    on_failure: Optional[str] = None
    dry_run: bool = False
    stdout: Optional[int] = None
    runner: ScriptRunner = run_package_script
    report: RunReport = field(init=False)
    _stopped: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.operation not in OPERATIONS:
            raise ValueError(f"Unknown operation '{self.operation}'")
        if self.on_failure is None:
            self.on_failure = self.config.on_failure
        self.report = RunReport(operation=self.operation)

    @property
    def stopped(self) -> bool:
        """True if a failure under the 'stop' policy ended the run early."""
        return self._stopped

    def run(self, names: Optional[list[str]] = None) -> RunReport:
        """Run the operation on every package, or only on those named.

        The report is kept up to date even when a fatal error ends the run,
        so packages already processed are still reported.

        Raises:
            ConfigError: If the manifest cannot be opened or is malformed
        """
        self.report.selection = list(names or [])
        self.report.start()
        try:
            with open_manifest(self.config.manifest_path) as reader:
                if names:
                    self.operate_on_packages_named(reader, names)
                else:
                    self.operate_on_all_packages(reader)
        except ConfigError as e:
            self.report.error = str(e)
            raise
        finally:
            self.report.finish(not self._stopped and not self.report.failed and not self.report.error)
        for name in self.report.missing:
            logger.warning(f"Package not found in manifest: {name}")
        return self.report

    def operate_on_all_packages(self, reader: ManifestReader) -> None:
        """Run the operation on every entry in file order.

        After a stop, the remaining entries are read without running and
        recorded as unreached.
        """
        logger.info("Compiling all packages...")
        while (name := reader.next_name()) is not None:
            if self._stopped:
                self._skip_unreached(reader, name)
            else:
                self.operate_on_package(reader, name)
        logger.info("Done compiling all packages!")

    def operate_on_packages_named(self, reader: ManifestReader, names: list[str]) -> None:
        """Run the operation on entries whose name is in names.

        Entries not selected have their directive lines consumed and
        discarded. Selected names never seen in the manifest are recorded
        as missing.
        """
        wanted = set(names)
        found = set()
        while (name := reader.next_name()) is not None:
            if name not in wanted:
                logger.debug(f"Skipping {name}")
                reader.skip_directives()
                continue
            found.add(name)
            if self._stopped:
                self._skip_unreached(reader, name)
            else:
                self.operate_on_package(reader, name)
        self.report.missing = [name for name in names if name not in found]

    def _skip_unreached(self, reader: ManifestReader, name: str) -> None:
        reader.skip_directives()
        self.report.unreached.append(name)

    def operate_on_package(self, reader: ManifestReader, name: str) -> None:
        """Run the operation on the entry whose header was just read."""
        logger.info(f"Operating on {name}...")
        directives = ''.join(reader.read_directives())

        if self.dry_run:
            script = build_script(name, self.operation, directives, self.config.script)
            logger.info(f"[dry-run] {self.config.shell} <<EOF\n{script}EOF")
            self.report.record(PackageOutcome(name=name, status='dry-run'))
        else:
            result = self.runner(name, self.operation, directives, self.config, stdout=self.stdout)
            self._record(name, result)

        logger.info(f"Done with {name}!")

    def _record(self, name: str, result: PackageResult) -> None:
        status = 'passed' if result.success else 'failed'
        self.report.record(PackageOutcome(
            name=name,
            status=status,
            message=result.message,
            duration=result.duration,
            returncode=result.returncode,
        ))
        if result.success:
            return
        if self.on_failure == 'warn':
            logger.warning(f"{name}: {result.message}")
        elif self.on_failure == 'stop':
            logger.error(f"{name}: {result.message}; stopping")
            self._stopped = True
        else:
            logger.debug(f"{name}: {result.message} (ignored)")
