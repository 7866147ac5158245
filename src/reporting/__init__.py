"""Run reporting."""

from reporting.report import PackageOutcome, RunReport

__all__ = ['PackageOutcome', 'RunReport']
