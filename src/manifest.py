"""PACKAGES manifest parsing.

The manifest is a flat text file of package entries:

    packagename
      directive line 1
      directive line 2

    nextpackage
      directive

A header line holds the package name. Directive lines begin with a
two-character indentation marker which is stripped before use. A blank
line ends the entry.

The reader is forward-only: it never seeks, so the same stream can be
handed from the scanner to the package processor and back.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterator, Optional

from config import ConfigError

logger = logging.getLogger(__name__)

INDENT = '  '


class ManifestError(ConfigError):
    """Malformed manifest."""


@dataclass
class PackageEntry:
    """One package: its name and its directive block.

    Attributes:
        name: Package name from the header line
        directives: Directive lines with the indent stripped, newline-terminated
        line: 1-based line number of the header
    """
    name: str
    directives: list[str] = field(default_factory=list)
    line: int = 0

    @property
    def body(self) -> str:
        """Directive text as forwarded to the package script."""
        return ''.join(self.directives)


def _is_directive(line: str) -> bool:
    return line.startswith(' ')


def _is_blank(line: str) -> bool:
    return line in ('\n', '\r\n')


class ManifestReader:
    """Forward-only reader over an open manifest stream.

    Lines are read whole, so names and directives have no length limit.
    End of file is detected from the read result (an empty string), never
    from a flag set after a failed read.
    """

    def __init__(self, stream: IO[str]):
        self._stream = stream
        self._pending: Optional[str] = None
        self.line_number = 0

    def _readline(self) -> str:
        if self._pending is not None:
            line, self._pending = self._pending, None
        else:
            line = self._stream.readline()
        if line:
            self.line_number += 1
        return line

    def _unread(self, line: str) -> None:
        self._pending = line
        self.line_number -= 1

    def next_name(self) -> Optional[str]:
        """Read up to the next header line and return the package name.

        Blank separator lines are skipped. Returns None at end of file.

        Raises:
            ManifestError: If a directive line appears with no header
        """
        while True:
            line = self._readline()
            if not line:
                return None
            if _is_blank(line):
                continue
            if _is_directive(line):
                raise ManifestError(
                    f"Line {self.line_number}: directive line with no package header"
                )
            return line.rstrip('\r\n')

    def read_directives(self) -> Iterator[str]:
        """Yield the current entry's directive lines, indent stripped.

        Stops after consuming the blank separator line, or before the next
        header if the separator is missing, or at end of file.
        """
        while True:
            line = self._readline()
            if not line:
                return
            if _is_blank(line):
                return
            if not _is_directive(line):
                self._unread(line)
                return
            directive = line[len(INDENT):]
            if not directive.endswith('\n'):
                directive += '\n'
            yield directive

    def skip_directives(self) -> None:
        """Consume the current entry's directive lines without using them."""
        for _ in self.read_directives():
            pass

    def read_entry(self) -> Optional[PackageEntry]:
        """Read the next whole entry, or None at end of file."""
        name = self.next_name()
        if name is None:
            return None
        line = self.line_number
        return PackageEntry(name=name, directives=list(self.read_directives()), line=line)

    def __iter__(self) -> Iterator[PackageEntry]:
        while (entry := self.read_entry()) is not None:
            yield entry


@contextmanager
def open_manifest(path: Path) -> Iterator[ManifestReader]:
    """Open the manifest for reading and close it on exit.

    Raises:
        ConfigError: If the manifest is missing or unreadable
    """
    if not path.is_file():
        raise ConfigError(f"Manifest not found: {path}")
    try:
        f = open(path, encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Cannot open manifest {path}: {e}")
    logger.debug(f"Opened manifest {path}")
    with f:
        yield ManifestReader(f)


def load_entries(path: Path) -> list[PackageEntry]:
    """Read every entry from the manifest at path."""
    with open_manifest(path) as reader:
        return list(reader)


def validate_manifest(path: Path) -> list[str]:
    """Check manifest framing and return a list of problems.

    Checks for:
    - Directive lines with no package header
    - Headers not separated by a blank line
    - Directive lines not indented by exactly two spaces
    - Duplicate package names

    Raises:
        ConfigError: If the manifest is missing or unreadable
    """
    if not path.is_file():
        raise ConfigError(f"Manifest not found: {path}")
    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        raise ConfigError(f"Cannot open manifest {path}: {e}")

    errors = []
    seen: dict[str, int] = {}
    in_entry = False
    for number, line in enumerate(lines, 1):
        if not line:
            in_entry = False
            continue
        if _is_directive(line):
            if not in_entry:
                errors.append(f"Line {number}: directive line with no package header")
            elif not line.startswith(INDENT):
                errors.append(f"Line {number}: directive line must be indented by two spaces")
            continue
        if line[0] == '\t':
            errors.append(f"Line {number}: tab-indented line read as package name '{line.strip()}'")
        if in_entry:
            errors.append(f"Line {number}: missing blank line before package '{line}'")
        if line in seen:
            errors.append(f"Line {number}: duplicate package '{line}' (first on line {seen[line]})")
        else:
            seen[line] = number
        in_entry = True
    return errors
