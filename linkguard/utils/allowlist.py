"""Host list files: one host (or URL) per line, ``#`` starts a comment."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from .domains import extract_hostname

logger = logging.getLogger(__name__)


def parse_host_lines(lines: Iterable[str]) -> set[str]:
    """Collect normalized hosts from list-file lines."""
    hosts: set[str] = set()
    for lineno, line in enumerate(lines, start=1):
        value = line.split("#", 1)[0].strip()
        if not value:
            continue
        host = extract_hostname(value)
        if not host:
            logger.warning(f"Ignoring unparseable host list entry on line {lineno}: {value!r}")
            continue
        hosts.add(host)
    return hosts


def read_allowlist(path: Path) -> set[str]:
    """Read a host list file. A missing file is an empty list."""
    path = Path(path)
    if not path.exists():
        return set()
    return parse_host_lines(path.read_text().splitlines())
