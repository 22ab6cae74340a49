#!/usr/bin/env python3
"""Print the SigV4 signing steps for an object request.

Useful when the object store rejects a presigned URL or a DELETE with
SignatureDoesNotMatch: compare the canonical request printed here with the
one the store reports back.

Usage:
    python scripts/sign_request.py pdfs/u1/1700000000_file.pdf
    python scripts/sign_request.py -m GET --expires 3600 pdfs/u1/file.pdf
    python scripts/sign_request.py -m DELETE --at 2024-01-01T00:00:00Z pdfs/u1/file.pdf

Environment Variables:
    AWS_ACCESS_KEY_ID      - Access key id (or AWS_PROFILE)
    AWS_SECRET_ACCESS_KEY  - Secret key (or AWS_PROFILE)
    AWS_REGION             - Region (default: us-east-1)
    S3_BUCKET_NAME         - Bucket name (required)
    S3_ENDPOINT            - S3-compatible endpoint (optional)
    S3_KEY_ENCODING        - Pin canonical URI encoding: path or opaque (optional)
"""

import argparse
import os
import sys
from datetime import datetime, timezone

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from pdf_sync.config import StorageConfig
from pdf_sync.errors import PdfSyncError
from pdf_sync.signing import SignableRequest, SigningClock, SigningMode


def parse_instant(value: str) -> datetime:
    """Parse an ISO 8601 instant; a trailing Z means UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    instant = datetime.fromisoformat(value)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def main():
    parser = argparse.ArgumentParser(
        description="Show SigV4 signing steps for an S3 object request",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("key", help="Object key, e.g. pdfs/<user>/<ts>_<name>.pdf")
    parser.add_argument(
        "-m", "--method",
        choices=["PUT", "GET", "DELETE"],
        default="PUT",
        help="HTTP method (default: PUT). DELETE uses header auth.",
    )
    parser.add_argument(
        "--content-type",
        default="application/pdf",
        help="Content-Type signed into PUT URLs (default: application/pdf)",
    )
    parser.add_argument(
        "--expires",
        type=int,
        default=None,
        help="Presigned URL validity in seconds (default: 900 for PUT, 3600 for GET)",
    )
    parser.add_argument(
        "--at",
        type=parse_instant,
        default=None,
        help="Signing instant in ISO 8601, e.g. 2024-01-01T00:00:00Z (default: now)",
    )
    args = parser.parse_args()

    try:
        config = StorageConfig.from_env()
        signer = config.create_signer()
        clock = SigningClock(args.at) if args.at else SigningClock.now()

        headers = {}
        if args.method == "PUT" and args.content_type:
            headers["Content-Type"] = args.content_type
        request = SignableRequest(
            http_method=args.method,
            bucket=config.bucket,
            object_key=args.key,
            headers=headers,
        )

        if args.method == "DELETE":
            signed = signer.sign(request, SigningMode.HEADER_AUTH, clock=clock)
        else:
            default_expires = config.upload_expires if args.method == "PUT" else config.download_expires
            signed = signer.sign(
                request,
                SigningMode.PRESIGNED_URL,
                expires=default_expires if args.expires is None else args.expires,
                clock=clock,
            )
    except PdfSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"\n{'=' * 80}")
    print("CANONICAL REQUEST")
    print(f"{'=' * 80}")
    print(signed.canonical_request)
    print(f"\n{'=' * 80}")
    print("STRING TO SIGN")
    print(f"{'=' * 80}")
    print(signed.string_to_sign)
    print(f"\n{'=' * 80}")
    print("RESULT")
    print(f"{'=' * 80}")
    print(f"Signature: {signed.signature}")
    print(f"URL: {signed.url}")
    for key, value in signed.headers.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
