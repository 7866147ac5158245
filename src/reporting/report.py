"""Run reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class PackageOutcome:
    """Result of one package operation."""
    name: str
    status: str  # 'passed', 'failed', 'dry-run'
    message: str = ''
    duration: float = 0.0
    returncode: Optional[int] = None


@dataclass
class RunReport:
    """Collects per-package outcomes for a build or install run."""
    operation: str
    selection: list[str] = field(default_factory=list)
    packages: list[PackageOutcome] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    success: bool = False
    missing: list[str] = field(default_factory=list)  # selected, not in manifest
    unreached: list[str] = field(default_factory=list)  # left unrun by the stop policy
    error: str = ''  # fatal error that ended the run

    def start(self):
        """Mark run start."""
        self.started_at = datetime.now()

    def record(self, outcome: PackageOutcome):
        """Record one package outcome."""
        self.packages.append(outcome)

    def finish(self, success: bool):
        """Mark run end."""
        self.finished_at = datetime.now()
        self.success = success

    @property
    def failed(self) -> list[PackageOutcome]:
        """Outcomes whose script failed."""
        return [p for p in self.packages if p.status == 'failed']

    def to_dict(self) -> dict:
        """Return report as dictionary for JSON output."""
        duration = (self.finished_at - self.started_at).total_seconds() if self.finished_at and self.started_at else 0

        result = {
            'operation': self.operation,
            'success': self.success,
            'duration_seconds': round(duration, 1),
            'packages': [
                {
                    'name': p.name,
                    'status': p.status,
                    'duration': round(p.duration, 1),
                    'returncode': p.returncode,
                }
                for p in self.packages
            ]
        }

        # Include the fatal error, else the first package failure
        if self.error:
            result['error'] = self.error
        else:
            for p in self.failed:
                if p.message:
                    result['error'] = p.message
                    break

        if self.missing:
            result['missing'] = self.missing
        if self.unreached:
            result['unreached'] = self.unreached

        return result
