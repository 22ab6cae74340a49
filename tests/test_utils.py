"""Tests for key building, encoding and log formatting helpers."""

import hashlib
from datetime import datetime, timezone

import pytest

from pdf_sync.utils import (
    build_object_key,
    calculate_content_sha256,
    format_file_size,
    format_request_info,
    redact_url,
    sanitize_filename,
    uri_encode,
    user_key_prefix,
)


def test_calculate_content_sha256():
    assert calculate_content_sha256("") == hashlib.sha256(b"").hexdigest()
    assert calculate_content_sha256("abc") == calculate_content_sha256(b"abc")


@pytest.mark.parametrize(
    "value,safe,expected",
    [
        ("a b", "", "a%20b"),
        ("a+b", "", "a%2Bb"),
        ("a/b", "", "a%2Fb"),
        ("a/b", "/", "a/b"),
        ("ü", "", "%C3%BC"),
        (b"\xff", "", "%FF"),
        ("AZaz09-_.~", "", "AZaz09-_.~"),
    ],
)
def test_uri_encode(value, safe, expected):
    assert uri_encode(value, safe=safe) == expected


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("Report.PDF", "report.pdf"),
        ("My  Tax Return (2023).pdf", "my_tax_return_2023_.pdf"),
        ("résumé final.pdf", "r_sum_final.pdf"),
        ("a/b\\c.pdf", "a_b_c.pdf"),
        ("already-clean.pdf", "already-clean.pdf"),
    ],
)
def test_sanitize_filename(filename, expected):
    assert sanitize_filename(filename) == expected


def test_build_object_key():
    now = datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert build_object_key("u1", "file.pdf", now=now) == "pdfs/u1/1700000000_file.pdf"


def test_build_object_key_uses_current_time():
    key = build_object_key("u1", "file.pdf")
    prefix, timestamp_and_name = key.rsplit("/", 1)
    assert prefix == "pdfs/u1"
    assert timestamp_and_name.split("_", 1)[0].isdigit()


def test_user_key_prefix():
    assert user_key_prefix("u1") == "pdfs/u1/"


@pytest.mark.parametrize(
    "size,expected",
    [
        (0, "0 Bytes"),
        (1, "1 Bytes"),
        (1023, "1023 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (52428800, "50 MB"),
        (123456789, "117.74 MB"),
        (3 * 1024 ** 3, "3 GB"),
        (5000 * 1024 ** 3, "5000 GB"),
    ],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_redact_url():
    url = (
        "https://b.s3.us-east-1.amazonaws.com/k.pdf?X-Amz-Algorithm=AWS4-HMAC-SHA256"
        "&X-Amz-Credential=AKID%2F20240101%2Fus-east-1%2Fs3%2Faws4_request"
        "&X-Amz-Signature=abcdef"
    )
    redacted = redact_url(url)
    assert "abcdef" not in redacted
    assert "AKID" not in redacted
    assert "X-Amz-Algorithm=AWS4-HMAC-SHA256" in redacted
    assert redacted.startswith("https://b.s3.us-east-1.amazonaws.com/k.pdf?")


def test_redact_url_without_query():
    assert redact_url("https://b.s3.amazonaws.com/k.pdf") == "https://b.s3.amazonaws.com/k.pdf"


def test_format_request_info_redacts_authorization():
    info = format_request_info(
        "DELETE",
        "https://b.s3.us-east-1.amazonaws.com/k.pdf",
        {"Authorization": "AWS4-HMAC-SHA256 Credential=...", "X-Amz-Date": "20240101T000000Z"},
    )
    assert info["method"] == "DELETE"
    assert info["headers"]["Authorization"] == "[REDACTED]"
    assert info["headers"]["X-Amz-Date"] == "20240101T000000Z"
