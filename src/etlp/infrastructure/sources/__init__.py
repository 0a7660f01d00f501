"""
Source adapters for ETLP.

These implement the LogSourcePort interface for historical console output.
"""

from etlp.infrastructure.sources.journalctl_source import JournalctlLogSource
from etlp.infrastructure.sources.file_source import JournalFileLogSource

__all__ = [
    "JournalctlLogSource",
    "JournalFileLogSource",
]
