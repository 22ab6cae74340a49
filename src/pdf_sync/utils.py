"""Shared helpers for object keys, encoding and request formatting."""

import hashlib
import re
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

KEY_PREFIX = "pdfs"

# Header and query names whose values must never reach a log line
REDACTED_HEADERS = {"authorization", "x-amz-security-token"}
REDACTED_QUERY_PARAMS = {"X-Amz-Signature", "X-Amz-Security-Token", "X-Amz-Credential"}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


def calculate_content_sha256(content: Union[str, bytes]) -> str:
    """Calculate a lowercase hex SHA-256 digest.

    Args:
        content: String (UTF-8 encoded first) or bytes

    Returns:
        Hex-encoded SHA256 hash
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def uri_encode(value: Union[str, bytes], safe: str = "") -> str:
    """Percent-encode a value using RFC 3986 rules.

    Only unreserved characters (A-Z a-z 0-9 - _ . ~) and anything listed in
    ``safe`` are left as is. A space becomes ``%20``, never ``+``.

    Args:
        value: Value as string or bytes
        safe: Extra characters to leave unencoded (default: none)

    Returns:
        Encoded value
    """
    if isinstance(value, str):
        value = value.encode("utf-8")
    return quote(value, safe=safe)


def sanitize_filename(filename: str) -> str:
    """Reduce a client filename to ``[a-z0-9._-]``.

    Every character outside letters, digits, ``.`` and ``-`` becomes ``_``,
    runs of underscores collapse to one, and the result is lower-cased.
    """
    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    sanitized = _REPEATED_UNDERSCORES.sub("_", sanitized)
    return sanitized.lower()


def build_object_key(user_id: str, filename: str, now: Optional[datetime] = None) -> str:
    """Build the namespaced object key ``pdfs/{user}/{unix ts}_{filename}``.

    ``filename`` is expected to be sanitized already.
    """
    now = now or datetime.now(timezone.utc)
    return f"{KEY_PREFIX}/{user_id}/{int(now.timestamp())}_{filename}"


def user_key_prefix(user_id: str) -> str:
    return f"{KEY_PREFIX}/{user_id}/"


def format_file_size(size_bytes: int) -> str:
    """Format a byte count for display, e.g. ``1.5 KB``."""
    if not size_bytes:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def redact_url(url: str) -> str:
    """Replace signature-bearing query values in a URL with ``REDACTED``."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (name, "REDACTED" if name in REDACTED_QUERY_PARAMS else value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote, safe="")))


def format_request_info(method: str, url: str, headers: dict) -> dict:
    """Format request information for logging.

    Authorization and security-token headers, and the signature query
    parameters of a presigned URL, are redacted.

    Args:
        method: HTTP method
        url: Request URL
        headers: Request headers

    Returns:
        dict with formatted request info
    """
    return {
        "method": method,
        "url": redact_url(url),
        "headers": {
            key: "[REDACTED]" if key.lower() in REDACTED_HEADERS else value
            for key, value in headers.items()
        },
    }
