"""Shared pytest fixtures for package driver tests."""

import logging
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import PackageConfig  # noqa: E402

# Two packages whose directives and package functions append to calls.log
PACKAGES = """\
foo
  echo "directive $PACKAGE" >> "$PACKAGE_DIRECTORY/calls.log"

bar
  echo "directive $PACKAGE" >> "$PACKAGE_DIRECTORY/calls.log"
  echo "second $PACKAGE" >> "$PACKAGE_DIRECTORY/calls.log"

"""

PACKAGE_SH = """\
build_package() {
  echo "build $PACKAGE $TARGET $ROOT" >> "$PACKAGE_DIRECTORY/calls.log"
}

install_package() {
  echo "install $PACKAGE $TARGET $ROOT" >> "$PACKAGE_DIRECTORY/calls.log"
}
"""


@pytest.fixture
def package_dir(tmp_path):
    """Create a package directory with a PACKAGES manifest.

    Creates:
    - PACKAGES (entries foo and bar)
    - package/package.sh (shared package logic, sourced relative to cwd)
    """
    (tmp_path / 'PACKAGES').write_text(PACKAGES)
    (tmp_path / 'package').mkdir()
    (tmp_path / 'package' / 'package.sh').write_text(PACKAGE_SH)
    return tmp_path


@pytest.fixture
def package_env(package_dir, monkeypatch):
    """Point the environment at package_dir and run from inside it."""
    monkeypatch.setenv('PACKAGE_DIRECTORY', str(package_dir))
    monkeypatch.setenv('TARGET', 'x86_64')
    monkeypatch.setenv('ROOT', '/mnt/root')
    monkeypatch.chdir(package_dir)
    return package_dir


@pytest.fixture
def package_config(package_dir):
    """PackageConfig for package_dir."""
    return PackageConfig(package_directory=package_dir, target='x86_64', root='/mnt/root')


def read_calls(package_dir: Path) -> list[str]:
    """Return the lines written to calls.log by the fake package script."""
    log = package_dir / 'calls.log'
    if not log.exists():
        return []
    return log.read_text().splitlines()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop the handler cli.main() installs so it never outlives capsys."""
    yield
    import cli
    root_logger = logging.getLogger()
    if cli._handler is not None:
        root_logger.removeHandler(cli._handler)
        cli._handler = None
    root_logger.setLevel(logging.WARNING)
