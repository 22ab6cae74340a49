"""Error types raised by the signer, the storage client and the handlers."""

from typing import Optional


class PdfSyncError(Exception):
    """Base class for all errors raised by this package."""

    status_code = 500


class ConfigurationError(PdfSyncError):
    """Required credential, region or bucket setting is missing."""


class ValidationError(PdfSyncError):
    """Input to the signer or a handler is malformed."""

    status_code = 400


class CryptoPrimitiveError(PdfSyncError):
    """The digest or HMAC primitive rejected its input."""


class StorageTransportError(PdfSyncError):
    """A signed call to the object store failed or returned non-2xx."""

    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None, reason: str = ""):
        super().__init__(message)
        self.response_status = status_code
        self.reason = reason


class MetadataStoreError(PdfSyncError):
    """The file metadata service failed."""


class DuplicateFileError(MetadataStoreError):
    """A metadata record for the object key already exists."""

    status_code = 409


class ApiError(Exception):
    """Error carrying the HTTP status a handler should respond with."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        self.message = message or "Internal server error"
        super().__init__(self.message)

    @classmethod
    def bad_request(cls, message: str) -> "ApiError":
        return cls(400, message)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "ApiError":
        return cls(401, message)

    @classmethod
    def forbidden(cls, message: str) -> "ApiError":
        return cls(403, message)

    @classmethod
    def not_found(cls, message: str) -> "ApiError":
        return cls(404, message)

    @classmethod
    def conflict(cls, message: str) -> "ApiError":
        return cls(409, message)

    @classmethod
    def internal(cls, message: Optional[str] = None) -> "ApiError":
        return cls(500, message)
