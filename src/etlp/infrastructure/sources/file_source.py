"""
File source adapter for ETLP.

Reads journal text exported with ``journalctl -u etserver > console.log``.
"""

import logging
from datetime import datetime
from pathlib import Path

from etlp.core.cancellation import CancellationToken
from etlp.core.exceptions import LogSourceError
from etlp.domain.timestamps import TimeNormalizer
from etlp.parsers.journal import JournalLineSplitter

__all__ = ["JournalFileLogSource"]

logger = logging.getLogger(__name__)


class JournalFileLogSource:
    """
    Historical console lines from an exported journal file.

    Reads the file line by line. With ``apply_window`` on, only lines
    stamped inside the requested window are returned; lines whose stamp
    does not parse are kept, since nothing says they are outside it.

    Example:
        source = JournalFileLogSource("/var/backups/etserver.log")
        lines = source.fetch(since, until, CancellationToken())
    """

    # Lines read between cancellation checks
    CHECK_INTERVAL = 1000

    def __init__(
        self,
        path: str | Path,
        encoding: str = "utf-8",
        errors: str = "replace",
        apply_window: bool = True,
        normalizer: TimeNormalizer | None = None,
    ):
        """
        Initialize file source.

        Args:
            path: Path to the exported journal
            encoding: File encoding (default: utf-8)
            errors: How to handle encoding errors (default: replace)
            apply_window: Drop lines stamped outside the requested window
            normalizer: Resolves stamps when filtering by window

        Raises:
            LogSourceError: If the file does not exist
        """
        self.path = Path(path)
        self.encoding = encoding
        self.errors = errors
        self.apply_window = apply_window
        self.normalizer = normalizer or TimeNormalizer()
        self.splitter = JournalLineSplitter()

        if not self.path.exists():
            raise LogSourceError(f"File not found: {self.path}")

    def fetch(self, since: datetime, until: datetime, token: CancellationToken) -> list[str]:
        """
        Read the lines of one window.

        Returns an empty list when cancelled.

        Raises:
            LogSourceError: If the file cannot be read
        """
        lines: list[str] = []
        try:
            with open(self.path, "r", encoding=self.encoding, errors=self.errors) as f:
                for index, line in enumerate(f):
                    if index % self.CHECK_INTERVAL == 0 and token.cancelled:
                        return []
                    line = line.rstrip("\n\r")
                    if not self.apply_window or self._in_window(line, since, until):
                        lines.append(line)
        except OSError as e:
            raise LogSourceError(f"Cannot read {self.path}: {e}")

        logger.debug("Read %d lines from %s", len(lines), self.path)
        return lines

    def _in_window(self, line: str, since: datetime, until: datetime) -> bool:
        raw = self.splitter.split(line)
        if raw is None:
            return False
        instant = self.normalizer.parse(raw.timestamp, until)
        if instant is None:
            return True
        return since <= instant <= until

    def metadata(self) -> dict[str, str]:
        """Get source metadata."""
        stat = self.path.stat()
        return {
            "type": "file",
            "path": str(self.path.absolute()),
            "name": self.path.name,
            "size_bytes": str(stat.st_size),
        }
