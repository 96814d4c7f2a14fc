"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class StationHubError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(StationHubError):
    """Raised for issues related to preferences loading or validation."""


class TransferError(StationHubError):
    """Raised when the server answers a build download with an error status."""


class ArchiveError(StationHubError):
    """Raised when a downloaded build archive is corrupt or unsafe to extract."""
