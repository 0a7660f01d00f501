"""
journalctl source adapter for ETLP.

Runs ``journalctl`` for the game server unit, locally or on the game host
over SSH, and returns its output lines.
"""

import logging
import shlex
import subprocess
import time
from datetime import datetime

from etlp.core.cancellation import CancellationToken
from etlp.core.config import SourceSettings
from etlp.core.exceptions import LogSourceError

__all__ = ["JournalctlLogSource"]

logger = logging.getLogger(__name__)


class JournalctlLogSource:
    """
    Historical console lines from the systemd journal.

    The subprocess is polled rather than waited on, so a cancelled query
    kills it promptly instead of holding the caller until the timeout.

    Example:
        source = JournalctlLogSource(unit="etserver", ssh_host="admin@game.example.org")
        lines = source.fetch(since, until, CancellationToken())
    """

    def __init__(
        self,
        unit: str = "etserver",
        ssh_host: str | None = None,
        timeout: float = 30.0,
        poll_interval: float = 0.1,
        journalctl: str = "journalctl",
        ssh: str = "ssh",
    ):
        """
        Initialize the source.

        Args:
            unit: systemd unit of the game server
            ssh_host: ``user@host`` to run journalctl on; None runs it locally
            timeout: Seconds before the command is killed
            poll_interval: Seconds between cancellation checks
            journalctl: journalctl executable
            ssh: ssh executable
        """
        self.unit = unit
        self.ssh_host = ssh_host
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.journalctl = journalctl
        self.ssh = ssh

    @classmethod
    def from_settings(cls, settings: SourceSettings) -> "JournalctlLogSource":
        return cls(unit=settings.journal_unit, ssh_host=settings.ssh_host, timeout=settings.timeout_seconds)

    def build_command(self, since: datetime, until: datetime) -> list[str]:
        """Build the argv for one window; times are passed as epoch seconds."""
        args = [
            self.journalctl,
            "-u", self.unit,
            "--since", f"@{int(since.timestamp())}",
            "--until", f"@{int(until.timestamp())}",
            "--utc",
            "--no-pager",
            "-o", "short",
        ]
        if not self.ssh_host:
            return args
        return [
            self.ssh,
            "-o", "BatchMode=yes",
            "-o", "ConnectTimeout=10",
            self.ssh_host,
            shlex.join(args),
        ]

    def fetch(self, since: datetime, until: datetime, token: CancellationToken) -> list[str]:
        """
        Run journalctl and return its output lines.

        Returns an empty list when cancelled.

        Raises:
            LogSourceError: If the command cannot start, times out, or
                            fails without output
        """
        command = self.build_command(since, until)
        logger.info("Running %s", shlex.join(command))

        try:
            proc = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise LogSourceError(f"Cannot run {command[0]}: {e}", command=command)

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if token.cancelled:
                    logger.info("Cancelled, killing %s", command[0])
                    self._kill(proc)
                    return []
                if time.monotonic() >= deadline:
                    self._kill(proc)
                    raise LogSourceError(
                        f"Command timed out after {self.timeout:g}s",
                        command=command,
                    )

        # journalctl exits non-zero on some warnings but still prints the logs
        if proc.returncode != 0 and not stdout:
            raise LogSourceError(
                f"Command failed with exit code {proc.returncode}",
                command=command,
                stderr=(stderr or "").strip() or None,
                returncode=proc.returncode,
            )
        if proc.returncode != 0:
            logger.warning("%s exited with %d: %s", command[0], proc.returncode, (stderr or "").strip()[:200])

        lines = stdout.splitlines()
        logger.debug("Fetched %d lines", len(lines))
        return lines

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        proc.communicate()

    def metadata(self) -> dict[str, str]:
        """Get source metadata."""
        return {
            "type": "journalctl",
            "unit": self.unit,
            "host": self.ssh_host or "local",
        }
