"""AWS Signature Version 4 signing for S3 object requests.

One signer serves two output shapes:

- ``SigningMode.PRESIGNED_URL``: the signature travels in the query string,
  producing a URL a client can use for one direct PUT or GET until it expires.
- ``SigningMode.HEADER_AUTH``: the signature travels in an ``Authorization``
  header for a request this process sends immediately (DELETE).

Signing is done locally with ``hashlib``/``hmac``. The payload is never
hashed; every canonical request carries ``UNSIGNED-PAYLOAD``.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from pdf_sync.errors import ConfigurationError, CryptoPrimitiveError, ValidationError
from pdf_sync.utils import calculate_content_sha256, uri_encode

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
KEY_PREFIX = "AWS4"
SCOPE_TERMINATOR = "aws4_request"
SERVICE_NAME = "s3"
SUPPORTED_METHODS = ("GET", "PUT", "DELETE")
MAX_EXPIRES = 7 * 24 * 60 * 60

DATE_STAMP_FORMAT = "%Y%m%d"
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


class SigningMode(str, Enum):
    """Where the signature is carried."""

    PRESIGNED_URL = "presigned_url"
    HEADER_AUTH = "header_auth"


class KeyEncoding(str, Enum):
    """How an object key becomes the canonical URI.

    PATH encodes each ``/``-separated segment and keeps the separators.
    OPAQUE encodes the whole key as one segment, so ``/`` becomes ``%2F``.
    """

    PATH = "path"
    OPAQUE = "opaque"


DEFAULT_KEY_ENCODING = {
    SigningMode.PRESIGNED_URL: KeyEncoding.PATH,
    SigningMode.HEADER_AUTH: KeyEncoding.OPAQUE,
}

DEFAULT_PORTS = {"http": 80, "https": 443}


def as_signing_mode(value: Union[SigningMode, str]) -> SigningMode:
    try:
        return SigningMode(value)
    except ValueError:
        raise ValidationError(f"Unknown signing mode: {value!r}") from None


def as_key_encoding(value: Union[KeyEncoding, str]) -> KeyEncoding:
    try:
        return KeyEncoding(value)
    except ValueError:
        raise ValidationError(f"Unknown key encoding: {value!r}") from None


@dataclass(frozen=True)
class SigningCredentials:
    """Credentials and scope for one signer."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    region: str
    service: str = SERVICE_NAME
    session_token: Optional[str] = field(default=None, repr=False)

    def validate(self) -> None:
        missing = [
            name
            for name in ("access_key_id", "secret_access_key", "region", "service")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required signing credentials: {', '.join(missing)}"
            )


@dataclass(frozen=True)
class SigningClock:
    """A single UTC instant shared by every time field of one signature."""

    instant: datetime

    def __post_init__(self):
        if self.instant.tzinfo is None:
            raise ValidationError("Signing instant must be timezone-aware")
        object.__setattr__(self, "instant", self.instant.astimezone(timezone.utc))

    @classmethod
    def now(cls) -> "SigningClock":
        return cls(datetime.now(timezone.utc))

    @property
    def date_stamp(self) -> str:
        return self.instant.strftime(DATE_STAMP_FORMAT)

    @property
    def amz_date(self) -> str:
        return self.instant.strftime(AMZ_DATE_FORMAT)


@dataclass
class SignableRequest:
    """An object request before signing."""

    http_method: str
    bucket: str
    object_key: str
    headers: dict = field(default_factory=dict)
    query_params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SignedRequest:
    """Result of signing.

    For a presigned URL, ``headers`` are the headers the client must send
    along with the URL. For header auth, they are the complete set of headers
    to put on the outbound request.
    """

    method: str
    url: str
    headers: dict
    signed_headers: str
    canonical_request: str
    string_to_sign: str
    signature: str
    amz_date: str
    expires: Optional[int] = None


def encode_object_key(object_key: str, encoding: Union[KeyEncoding, str]) -> str:
    """Encode an object key for use as a URI path (without leading ``/``)."""
    if as_key_encoding(encoding) is KeyEncoding.OPAQUE:
        return uri_encode(object_key)
    return uri_encode(object_key, safe="/")


def canonical_query_string(params: Mapping[str, object]) -> str:
    """Encode and sort query parameters by encoded name, then value."""
    pairs = sorted((uri_encode(str(name)), uri_encode(str(value))) for name, value in params.items())
    return "&".join(f"{name}={value}" for name, value in pairs)


def canonical_headers(headers: Mapping[str, object]) -> Tuple[str, str]:
    """Build the canonical headers block and the matching signed-headers list.

    Names are lower-cased and sorted; values are trimmed with inner
    whitespace runs collapsed. Both return values come from the same sorted
    name list.
    """
    normalized = {
        name.strip().lower(): " ".join(str(value).split())
        for name, value in headers.items()
    }
    names = sorted(normalized)
    block = "".join(f"{name}:{normalized[name]}\n" for name in names)
    return block, ";".join(names)


def build_canonical_request(
    method: str,
    canonical_uri: str,
    query_string: str,
    headers_block: str,
    signed_headers: str,
    payload_hash: str = UNSIGNED_PAYLOAD,
) -> str:
    return "\n".join(
        [method, canonical_uri, query_string, headers_block, signed_headers, payload_hash]
    )


def credential_scope(date_stamp: str, region: str, service: str = SERVICE_NAME) -> str:
    return f"{date_stamp}/{region}/{service}/{SCOPE_TERMINATOR}"


def build_string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    return "\n".join(
        [ALGORITHM, amz_date, scope, calculate_content_sha256(canonical_request)]
    )


def hmac_sha256(key: bytes, message: str) -> bytes:
    try:
        return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    except (TypeError, ValueError) as e:
        raise CryptoPrimitiveError(f"HMAC-SHA256 rejected its input: {e}") from e


def derive_signing_key(secret_access_key: str, date_stamp: str, region: str, service: str = SERVICE_NAME) -> bytes:
    """Derive the signing key: date, region, service, then ``aws4_request``.

    Each step is keyed by the raw output of the previous one.
    """
    try:
        key = f"{KEY_PREFIX}{secret_access_key}".encode("utf-8")
    except UnicodeEncodeError as e:
        raise CryptoPrimitiveError(f"Secret key cannot be used as HMAC key: {e}") from e
    for message in (date_stamp, region, service, SCOPE_TERMINATOR):
        key = hmac_sha256(key, message)
    return key


def compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    return hmac_sha256(signing_key, string_to_sign).hex()


class SigV4Signer:
    """Sign S3 object requests with one set of credentials.

    Objects are addressed virtual-hosted style,
    ``https://{bucket}.s3.{region}.amazonaws.com/{key}``, unless ``endpoint``
    names an S3-compatible host; ``path_style`` switches to
    ``{endpoint}/{bucket}/{key}``.

    ``key_encoding`` pins one canonical URI policy for every mode. When left
    unset, presigned URLs keep ``/`` in the key and header auth encodes it.
    """

    def __init__(
        self,
        credentials: SigningCredentials,
        endpoint: Optional[str] = None,
        path_style: bool = False,
        key_encoding: Optional[Union[KeyEncoding, str]] = None,
    ):
        self.credentials = credentials
        self.endpoint = endpoint
        self.path_style = path_style
        self.key_encoding = as_key_encoding(key_encoding) if key_encoding else None

    def location(self, bucket: str, object_key: str, encoding: Union[KeyEncoding, str]) -> Tuple[str, str, str]:
        """Return ``(scheme, host, canonical_uri)`` for an object."""
        encoded_key = encode_object_key(object_key, encoding)
        if self.endpoint:
            parts = urlsplit(self.endpoint if "://" in self.endpoint else f"https://{self.endpoint}")
            scheme, base_host = parts.scheme, parts.netloc
            # Default ports are not part of the signed host
            if parts.port is not None and parts.port == DEFAULT_PORTS.get(scheme):
                base_host = base_host.rsplit(":", 1)[0]
        else:
            scheme, base_host = "https", f"s3.{self.credentials.region}.amazonaws.com"

        if self.path_style:
            return scheme, base_host, f"/{bucket}/{encoded_key}"
        return scheme, f"{bucket}.{base_host}", f"/{encoded_key}"

    def sign(
        self,
        request: SignableRequest,
        mode: Union[SigningMode, str],
        expires: Optional[int] = None,
        clock: Optional[SigningClock] = None,
    ) -> SignedRequest:
        """Sign ``request`` for the given mode.

        Args:
            request: Object request to sign
            mode: PRESIGNED_URL or HEADER_AUTH
            expires: Validity window in seconds (presigned URLs only)
            clock: Signing instant; captured now when omitted

        Returns:
            SignedRequest with the URL, headers and intermediate strings

        Raises:
            ConfigurationError: credentials or bucket missing
            ValidationError: empty key, unsupported method or bad expiry
            CryptoPrimitiveError: HMAC rejected the key material
        """
        mode = as_signing_mode(mode)
        method = self._validate(request)
        clock = clock or SigningClock.now()
        creds = self.credentials

        encoding = self.key_encoding or DEFAULT_KEY_ENCODING[mode]
        scheme, host, canonical_uri = self.location(request.bucket, request.object_key, encoding)
        scope = credential_scope(clock.date_stamp, creds.region, creds.service)

        headers = {name.lower(): value for name, value in request.headers.items()}
        headers["host"] = host
        query = dict(request.query_params)

        if mode is SigningMode.PRESIGNED_URL:
            expires = self._validate_expires(expires)
            _, signed_names = canonical_headers(headers)
            query.update({
                "X-Amz-Algorithm": ALGORITHM,
                "X-Amz-Credential": f"{creds.access_key_id}/{scope}",
                "X-Amz-Date": clock.amz_date,
                "X-Amz-Expires": str(expires),
                "X-Amz-SignedHeaders": signed_names,
            })
            if creds.session_token:
                query["X-Amz-Security-Token"] = creds.session_token
        else:
            expires = None
            headers["x-amz-date"] = clock.amz_date
            if creds.session_token:
                headers["x-amz-security-token"] = creds.session_token

        headers_block, signed_headers = canonical_headers(headers)
        query_string = canonical_query_string(query)
        canonical_request = build_canonical_request(
            method, canonical_uri, query_string, headers_block, signed_headers
        )
        string_to_sign = build_string_to_sign(clock.amz_date, scope, canonical_request)
        signing_key = derive_signing_key(
            creds.secret_access_key, clock.date_stamp, creds.region, creds.service
        )
        signature = compute_signature(signing_key, string_to_sign)

        url = f"{scheme}://{host}{canonical_uri}"
        if mode is SigningMode.PRESIGNED_URL:
            url = f"{url}?{query_string}&X-Amz-Signature={signature}"
            out_headers = dict(request.headers)
        else:
            if query_string:
                url = f"{url}?{query_string}"
            out_headers = {
                **request.headers,
                "Host": host,
                "X-Amz-Date": clock.amz_date,
                "Authorization": (
                    f"{ALGORITHM} Credential={creds.access_key_id}/{scope}, "
                    f"SignedHeaders={signed_headers}, Signature={signature}"
                ),
            }
            if creds.session_token:
                out_headers["X-Amz-Security-Token"] = creds.session_token

        logger.debug(
            "Signed %s %s (%s, scope=%s, signed_headers=%s)",
            method, request.object_key, mode.value, scope, signed_headers,
        )
        return SignedRequest(
            method=method,
            url=url,
            headers=out_headers,
            signed_headers=signed_headers,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
            signature=signature,
            amz_date=clock.amz_date,
            expires=expires,
        )

    def presign_url(self, request: SignableRequest, expires: int, clock: Optional[SigningClock] = None) -> SignedRequest:
        return self.sign(request, SigningMode.PRESIGNED_URL, expires=expires, clock=clock)

    def authorization_headers(self, request: SignableRequest, clock: Optional[SigningClock] = None) -> SignedRequest:
        return self.sign(request, SigningMode.HEADER_AUTH, clock=clock)

    def _validate(self, request: SignableRequest) -> str:
        self.credentials.validate()
        if not request.bucket:
            raise ConfigurationError("Missing required bucket name")
        if not isinstance(request.object_key, str) or not request.object_key:
            raise ValidationError("Object key must be a non-empty string")
        method = (request.http_method or "").upper()
        if method not in SUPPORTED_METHODS:
            raise ValidationError(
                f"Unsupported HTTP method: {request.http_method!r} "
                f"(expected one of {', '.join(SUPPORTED_METHODS)})"
            )
        return method

    @staticmethod
    def _validate_expires(expires: Optional[int]) -> int:
        if isinstance(expires, bool) or not isinstance(expires, int):
            raise ValidationError("Presigned URL expiry must be an integer number of seconds")
        if not 1 <= expires <= MAX_EXPIRES:
            raise ValidationError(f"Presigned URL expiry must be between 1 and {MAX_EXPIRES} seconds")
        return expires
