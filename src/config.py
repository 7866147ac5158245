"""Driver configuration.

Configuration is read once at startup:
- Environment: PACKAGE_DIRECTORY, TARGET, ROOT (defaulted when unset)
- package.yaml: Optional settings file inside PACKAGE_DIRECTORY

The process environment is never modified. The three environment values
are exported only into each package script's own environment.
"""

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


DEFAULT_PACKAGE_DIRECTORY = '/etc/package'
DEFAULT_SCRIPT = 'package/package.sh'
DEFAULT_SHELL = '/bin/sh'
DEFAULT_ON_FAILURE = 'warn'

MANIFEST_FILENAME = 'PACKAGES'
SETTINGS_FILENAME = 'package.yaml'

# What to do when a package script exits non-zero
FAILURE_POLICIES = ('ignore', 'warn', 'stop')


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class PackageConfig:
    """Settings shared by every package operation in a run.

    Attributes:
        package_directory: Directory holding PACKAGES and package.yaml
        target: Target machine architecture, exported as TARGET
        root: Install root, exported as ROOT
        script: Shared package-logic script sourced by every package
        shell: Interpreter that receives the package script on stdin
        on_failure: Failure policy (ignore, warn, stop)
        timeout: Per-package timeout in seconds (None = no limit)
    """
    package_directory: Path
    target: str
    root: str = ''
    script: str = DEFAULT_SCRIPT
    shell: str = DEFAULT_SHELL
    on_failure: str = DEFAULT_ON_FAILURE
    timeout: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.package_directory, str):
            self.package_directory = Path(self.package_directory)
        if self.on_failure not in FAILURE_POLICIES:
            raise ConfigError(
                f"Invalid on_failure '{self.on_failure}'. "
                f"Expected one of: {', '.join(FAILURE_POLICIES)}"
            )

    @property
    def manifest_path(self) -> Path:
        """Path to the PACKAGES manifest."""
        return self.package_directory / MANIFEST_FILENAME

    @property
    def settings_path(self) -> Path:
        """Path to the optional package.yaml settings file."""
        return self.package_directory / SETTINGS_FILENAME

    def script_env(self, base: Optional[dict] = None) -> dict:
        """Return a child environment with the package variables exported."""
        env = dict(os.environ if base is None else base)
        env['PACKAGE_DIRECTORY'] = str(self.package_directory)
        env['TARGET'] = self.target
        env['ROOT'] = self.root
        return env


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a YAML object (dict)")
    return data


def load_settings(package_directory: Path) -> dict:
    """Load package.yaml from the package directory, or {} if absent."""
    settings_file = package_directory / SETTINGS_FILENAME
    if not settings_file.exists():
        return {}
    return _parse_yaml(settings_file)


def _setting(settings: dict, key: str, default):
    """Return settings[key], treating a missing or null value as unset."""
    value = settings.get(key)
    return default if value is None else value


def load_config(environ: Optional[dict] = None) -> PackageConfig:
    """Build the run configuration from the environment and package.yaml.

    Args:
        environ: Environment mapping to read (defaults to os.environ)

    Raises:
        ConfigError: If package.yaml is invalid
    """
    if environ is None:
        environ = os.environ

    # An empty value joins as "/PACKAGES", so it names the filesystem root
    package_directory = Path(environ.get('PACKAGE_DIRECTORY', DEFAULT_PACKAGE_DIRECTORY) or '/')
    settings = load_settings(package_directory)

    timeout = settings.get('timeout')
    if timeout is not None:
        try:
            timeout = int(timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid timeout '{timeout}' in {package_directory / SETTINGS_FILENAME}")

    return PackageConfig(
        package_directory=package_directory,
        target=environ.get('TARGET', platform.machine()),
        root=environ.get('ROOT', ''),
        script=str(_setting(settings, 'script', DEFAULT_SCRIPT)),
        shell=str(_setting(settings, 'shell', DEFAULT_SHELL)),
        on_failure=str(_setting(settings, 'on_failure', DEFAULT_ON_FAILURE)),
        timeout=timeout,
    )
