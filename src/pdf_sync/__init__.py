"""SigV4 object-store signing and request handlers for PDF sync"""

from pdf_sync.config import StorageConfig
from pdf_sync.errors import (
    ApiError,
    ConfigurationError,
    CryptoPrimitiveError,
    DuplicateFileError,
    MetadataStoreError,
    PdfSyncError,
    StorageTransportError,
    ValidationError,
)
from pdf_sync.signing import (
    KeyEncoding,
    SignableRequest,
    SignedRequest,
    SigningClock,
    SigningCredentials,
    SigningMode,
    SigV4Signer,
    derive_signing_key,
)
from pdf_sync.storage import ObjectStore
from pdf_sync.metadata import FileMetadataStore, FileRecord

__version__ = "0.1.0"

__all__ = [
    # Config
    "StorageConfig",
    # Signing
    "KeyEncoding",
    "SignableRequest",
    "SignedRequest",
    "SigningClock",
    "SigningCredentials",
    "SigningMode",
    "SigV4Signer",
    "derive_signing_key",
    # Storage
    "ObjectStore",
    # Metadata
    "FileMetadataStore",
    "FileRecord",
    # Errors
    "ApiError",
    "ConfigurationError",
    "CryptoPrimitiveError",
    "DuplicateFileError",
    "MetadataStoreError",
    "PdfSyncError",
    "StorageTransportError",
    "ValidationError",
]
