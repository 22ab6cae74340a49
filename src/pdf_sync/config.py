"""Storage configuration, built once at process start."""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError

from pdf_sync.errors import ConfigurationError
from pdf_sync.signing import KeyEncoding, SigningCredentials, SigV4Signer

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_UPLOAD_EXPIRES = 15 * 60
DEFAULT_DOWNLOAD_EXPIRES = 60 * 60
DEFAULT_REQUEST_TIMEOUT = 10.0


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for the object store and its signer."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    bucket: str
    region: str = DEFAULT_REGION
    session_token: Optional[str] = field(default=None, repr=False)
    endpoint: Optional[str] = None
    path_style: bool = False
    key_encoding: Optional[KeyEncoding] = None
    # SSL verification enabled by default; disable only for local test stores
    verify_ssl: bool = True
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    upload_expires: int = DEFAULT_UPLOAD_EXPIRES
    download_expires: int = DEFAULT_DOWNLOAD_EXPIRES

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageConfig":
        """Build configuration from environment variables.

        Reads ``AWS_ACCESS_KEY_ID``, ``AWS_SECRET_ACCESS_KEY``,
        ``AWS_SESSION_TOKEN``, ``AWS_REGION``, ``S3_BUCKET_NAME``,
        ``S3_ENDPOINT``, ``S3_PATH_STYLE``, ``S3_KEY_ENCODING``,
        ``S3_VERIFY_SSL`` and ``S3_REQUEST_TIMEOUT``. When the key pair is
        absent and ``AWS_PROFILE`` is set, credentials come from that profile.

        Raises:
            ConfigurationError: a required value is missing or malformed
        """
        env = os.environ if environ is None else environ

        access_key_id = env.get("AWS_ACCESS_KEY_ID", "")
        secret_access_key = env.get("AWS_SECRET_ACCESS_KEY", "")
        session_token = env.get("AWS_SESSION_TOKEN") or None
        region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION

        profile = env.get("AWS_PROFILE")
        if not (access_key_id and secret_access_key) and profile:
            credentials = get_profile_credentials(profile)
            access_key_id = credentials.access_key
            secret_access_key = credentials.secret_key
            session_token = credentials.token

        bucket = env.get("S3_BUCKET_NAME", "")

        missing = [
            name
            for name, value in (
                ("AWS_ACCESS_KEY_ID", access_key_id),
                ("AWS_SECRET_ACCESS_KEY", secret_access_key),
                ("S3_BUCKET_NAME", bucket),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required AWS configuration: {', '.join(missing)}"
            )

        raw_encoding = env.get("S3_KEY_ENCODING", "").strip().lower()
        try:
            key_encoding = KeyEncoding(raw_encoding) if raw_encoding else None
        except ValueError:
            raise ConfigurationError(
                f"Invalid S3_KEY_ENCODING: {raw_encoding!r} (expected 'path' or 'opaque')"
            ) from None

        try:
            request_timeout = float(env.get("S3_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))
        except ValueError:
            raise ConfigurationError("S3_REQUEST_TIMEOUT must be a number of seconds") from None

        return cls(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            bucket=bucket,
            region=region,
            session_token=session_token,
            endpoint=normalize_endpoint(env.get("S3_ENDPOINT")),
            path_style=_env_flag(env, "S3_PATH_STYLE", False),
            key_encoding=key_encoding,
            verify_ssl=_env_flag(env, "S3_VERIFY_SSL", True),
            request_timeout=request_timeout,
        )

    @property
    def credentials(self) -> SigningCredentials:
        return SigningCredentials(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            region=self.region,
            session_token=self.session_token,
        )

    def create_signer(self) -> SigV4Signer:
        """Create the signer for this configuration."""
        return SigV4Signer(
            self.credentials,
            endpoint=self.endpoint,
            path_style=self.path_style,
            key_encoding=self.key_encoding,
        )


def normalize_endpoint(url: Optional[str]) -> Optional[str]:
    """Ensure endpoint URL has proper scheme."""
    if not url:
        return None
    url = url.rstrip("/")
    if not url.startswith(("http://", "https://")):
        return f"https://{url}"
    return url


def get_profile_credentials(profile_name: str):
    """Resolve credentials from a named AWS profile.

    Raises:
        ConfigurationError: the profile does not exist or has no credentials
    """
    try:
        session = boto3.Session(profile_name=profile_name)
        credentials = session.get_credentials()
    except BotoCoreError as e:
        raise ConfigurationError(f"Cannot load AWS profile {profile_name!r}: {e}") from e
    if credentials is None:
        raise ConfigurationError(f"AWS profile {profile_name!r} has no credentials")
    logger.info("Using credentials from AWS profile %s", profile_name)
    return credentials.get_frozen_credentials()


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")
