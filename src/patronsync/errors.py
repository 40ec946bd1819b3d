"""Exception hierarchy for patronsync.

Setup errors abort a run; everything else is attributed to a single row
and the run continues.
"""

__all__ = [
    "PatronSyncError",
    "SetupError",
    "ConfigError",
    "DataFileError",
    "SchemaMismatchError",
    "AuthenticationError",
    "DirectoryError",
    "MatchUnavailableError",
    "PayloadError",
]


class PatronSyncError(Exception):
    """Base class for all patronsync errors."""


class SetupError(PatronSyncError):
    """Raised when the run cannot start or must abort."""


class ConfigError(SetupError):
    """Raised when the configuration file is unreadable or invalid."""


class DataFileError(SetupError):
    """Raised when the data file cannot be read."""


class SchemaMismatchError(SetupError):
    """Raised when CSV columns do not match the client schema."""

    def __init__(self, message: str, positions: list[int] | None = None) -> None:
        """Initialize schema mismatch error.

        Parameters
        ----------
        message : str
            Error message.
        positions : list[int] | None, optional
            0-based column positions that did not match.
        """
        super().__init__(message)
        self.positions = positions or []


class AuthenticationError(SetupError):
    """Raised when the directory login fails."""


class DirectoryError(PatronSyncError):
    """Raised when a directory call fails at transport or HTTP level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize directory error.

        Parameters
        ----------
        message : str
            Error message or response body.
        status_code : int | None, optional
            HTTP status code, None for transport exceptions.
        """
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is None:
            return message
        return f"{self.status_code}: {message}"


class MatchUnavailableError(PatronSyncError):
    """Raised when every match strategy failed at transport level."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class PayloadError(PatronSyncError):
    """Raised when a payload cannot be sent.

    A defaulted, fixed or derived field failed its rule, or the matched
    record key is unusable. Retrying never helps.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
