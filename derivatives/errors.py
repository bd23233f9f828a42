"""
Errors raised by the derivative cache.
"""

from typing import Optional


class DerivativeError(Exception):
    """Base class for all derivative cache errors."""
    pass


class UnknownPackage(DerivativeError):
    """Raised when a package name is not registered."""

    def __init__(self, package_name: str):
        super().__init__(f"pkg definition missing for {package_name}")
        self.package_name = package_name


class UnsupportedExtension(DerivativeError):
    """Raised when the requested extension is not in the supported set."""

    def __init__(self, extension: str):
        super().__init__(f"invalid extension {extension}")
        self.extension = extension


class InvalidDerivativeKey(DerivativeError):
    """Raised when a source id or extension cannot be embedded in a filename."""
    pass


class SourceNotFound(DerivativeError):
    """Raised when no source record exists for an id."""

    def __init__(self, source_id: str):
        super().__init__(f"Source not found: {source_id}")
        self.source_id = source_id


class SourceUnavailable(DerivativeError):
    """Raised when the original asset is missing or unreadable."""

    def __init__(self, path: str):
        super().__init__("File is missing!")
        self.path = path


class ConfigurationError(DerivativeError):
    """Raised for malformed package definitions or settings."""
    pass


class TransformFailed(DerivativeError):
    """Raised when the pixel-transform engine fails. Wraps the engine error."""

    def __init__(self, cause: Exception, target_path: Optional[str] = None):
        super().__init__(str(cause))
        self.cause = cause
        self.target_path = target_path


class DistributionFailed(DerivativeError):
    """Logged when replicating a derivative fails. Never surfaced to callers."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"Distribution of {path} failed: {cause}")
        self.path = path
        self.cause = cause
