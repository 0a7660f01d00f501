"""
Custom exceptions for ETLP.
"""

__all__ = [
    "ETLPError",
    "LogSourceError",
    "FeedError",
    "ConfigurationError",
]


class ETLPError(Exception):
    """Base exception for all ETLP errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class LogSourceError(ETLPError):
    """Raised when the historical log source cannot be read."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str | None = None,
        returncode: int | None = None,
    ):
        details = {}
        if command is not None:
            details["command"] = " ".join(command)
        if stderr:
            details["stderr"] = stderr[:200] + "..." if len(stderr) > 200 else stderr
        if returncode is not None:
            details["returncode"] = returncode
        super().__init__(message, details)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


class FeedError(ETLPError):
    """Raised when the live console feed misbehaves."""

    def __init__(self, message: str, url: str | None = None):
        details = {}
        if url is not None:
            details["url"] = url
        super().__init__(message, details)
        self.url = url


class ConfigurationError(ETLPError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, config_key: str | None = None):
        details = {}
        if config_key is not None:
            details["config_key"] = config_key
        super().__init__(message, details)
        self.config_key = config_key
