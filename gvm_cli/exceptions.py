"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class GvmError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(GvmError):
    """Raised for issues related to settings loading or validation."""


class StateStoreError(GvmError):
    """Raised when the persisted install state cannot be read or written."""


class NetworkError(GvmError):
    """Raised on connection failures, timeouts, and non-2xx HTTP responses."""


class CatalogParseError(GvmError):
    """Raised when the release catalog response body is malformed."""


class PreconditionError(GvmError):
    """Base class for requests that are rejected before any work is done."""


class VersionNotFoundError(PreconditionError):
    """Raised when no release satisfies a lookup (e.g. no stable release)."""


class UnknownVersionError(PreconditionError):
    """Raised when the requested version is absent from the release catalog."""


class NoSuitableArtifactError(PreconditionError):
    """Raised when a release has no artifact for the host OS and architecture."""


class AlreadyInstalledError(PreconditionError):
    """Raised when installing a version that is already installed."""


class NotInstalledError(PreconditionError):
    """Raised when operating on a version that is not installed."""


class ActiveVersionInUseError(PreconditionError):
    """Raised when trying to uninstall the currently active version."""


class DigestMismatchError(GvmError):
    """Raised when a downloaded file does not match its published SHA-256."""

    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(
            f"SHA-256 mismatch for '{path}': expected {expected}, got {actual}"
        )
        self.path = path
        self.expected = expected
        self.actual = actual


class ArchiveFormatError(GvmError):
    """Raised for unsupported or corrupt archives."""


class FileSystemError(GvmError):
    """Raised when a disk operation (write, rename, remove) fails."""


class InstallValidationError(GvmError):
    """Raised when an extracted installation fails its post-install checks."""


class ShellIntegrationError(GvmError):
    """Raised when the shell startup configuration cannot be updated."""
