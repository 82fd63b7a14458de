"""Error kinds reported by a synchronization cycle."""


class SyncError(Exception):
    """Base class for all errors reported by a synchronization cycle."""

    pass


class ConfigError(SyncError):
    """Raised when the sync target is missing or invalid."""

    pass


class NetworkError(SyncError):
    """Raised when a GitHub request fails at the transport or HTTP level."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        """Initializes the exception with the failing URL and HTTP status, when known."""
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(SyncError):
    """Raised when a GitHub API response body is not valid structured data."""

    pass


class MissingFieldError(SyncError):
    """Raised when a GitHub API response lacks an expected field."""

    def __init__(self, field: str) -> None:
        """Initializes the exception with the name of the missing field."""
        super().__init__(f"Response is missing required field: {field}")
        self.field = field


class CorruptArchiveError(SyncError):
    """Raised when a downloaded archive cannot be opened as a zip file."""

    pass


class UnexpectedArchiveLayoutError(SyncError):
    """Raised when an archive does not contain exactly one root directory."""

    pass


class InstallError(SyncError):
    """Raised when the destination directory could not be replaced."""

    pass
