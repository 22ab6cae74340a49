"""Object store access through signed requests.

Presigned URLs are handed to clients and never fetched here. The only
request this module sends itself is the signed DELETE.
"""

import logging
from typing import Optional

import requests

from pdf_sync.config import StorageConfig
from pdf_sync.errors import StorageTransportError
from pdf_sync.signing import (
    DEFAULT_KEY_ENCODING,
    SignableRequest,
    SignedRequest,
    SigningClock,
    SigningMode,
)
from pdf_sync.utils import format_request_info

logger = logging.getLogger(__name__)


class ObjectStore:
    """Object store for one bucket."""

    def __init__(self, config: StorageConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.signer = config.create_signer()
        self.session = session or requests.Session()

    @property
    def bucket(self) -> str:
        return self.config.bucket

    def object_url(self, object_key: str, mode: SigningMode = SigningMode.PRESIGNED_URL) -> str:
        """Unsigned URL of an object, encoded as it would be for ``mode``."""
        encoding = self.signer.key_encoding or DEFAULT_KEY_ENCODING[mode]
        scheme, host, path = self.signer.location(self.bucket, object_key, encoding)
        return f"{scheme}://{host}{path}"

    def presign_upload(
        self,
        object_key: str,
        content_type: str,
        expires: Optional[int] = None,
        clock: Optional[SigningClock] = None,
    ) -> SignedRequest:
        """Presign a PUT. The client must send ``content_type`` as Content-Type."""
        request = SignableRequest(
            http_method="PUT",
            bucket=self.bucket,
            object_key=object_key,
            headers={"Content-Type": content_type} if content_type else {},
        )
        signed = self.signer.presign_url(
            request, self.config.upload_expires if expires is None else expires, clock=clock
        )
        logger.info("Issued upload URL for %s (expires in %ss)", object_key, signed.expires)
        return signed

    def presign_download(
        self,
        object_key: str,
        expires: Optional[int] = None,
        clock: Optional[SigningClock] = None,
    ) -> SignedRequest:
        request = SignableRequest(http_method="GET", bucket=self.bucket, object_key=object_key)
        return self.signer.presign_url(
            request, self.config.download_expires if expires is None else expires, clock=clock
        )

    def delete_object(self, object_key: str, clock: Optional[SigningClock] = None) -> None:
        """Delete an object with a header-signed DELETE.

        Raises:
            StorageTransportError: the request failed or returned non-2xx
        """
        request = SignableRequest(http_method="DELETE", bucket=self.bucket, object_key=object_key)
        signed = self.signer.authorization_headers(request, clock=clock)
        logger.debug("Sending %s", format_request_info(signed.method, signed.url, signed.headers))

        try:
            response = self.session.delete(
                signed.url,
                headers=signed.headers,
                timeout=self.config.request_timeout,
                verify=self.config.verify_ssl,
            )
        except requests.RequestException as e:
            raise StorageTransportError(f"S3 delete failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise StorageTransportError(
                f"S3 delete failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
                reason=response.reason or "",
            )
        logger.info("Deleted object %s (status %s)", object_key, response.status_code)
