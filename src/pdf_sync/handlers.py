"""API Gateway handlers for PDF upload, listing, update and deletion.

Every handler takes the proxy event, the ``ObjectStore`` and the
``FileMetadataStore`` and returns a proxy response. The caller identity comes
from the authorizer claims; token validation happens upstream.

- POST get-upload-url    -> presigned PUT for a new object key
- GET  get-user-files    -> paginated file list with presigned GET URLs
- POST update-pdf        -> presigned PUT for an existing object key
- POST delete-pdf        -> signed DELETE, then metadata deletion
- POST save-pdf-metadata -> metadata row for an uploaded object
"""

import base64
import binascii
import functools
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pdf_sync.errors import (
    ApiError,
    DuplicateFileError,
    MetadataStoreError,
    PdfSyncError,
    StorageTransportError,
    ValidationError,
)
from pdf_sync.metadata import (
    DEFAULT_SORT_COLUMN,
    SORT_COLUMNS,
    SYNC_PENDING,
    FileMetadataStore,
    FileRecord,
)
from pdf_sync.storage import ObjectStore
from pdf_sync.utils import (
    build_object_key,
    format_file_size,
    sanitize_filename,
    user_key_prefix,
)

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
MAX_FILE_SIZE = 50 * 1024 * 1024
UPDATE_METHODS = ("replace", "version")
DEFAULT_PAGE_SIZE = 50

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(body, default=str),
    }


def _error(status_code: int, message: str) -> Dict[str, Any]:
    return _response(status_code, {"success": False, "error": message})


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the JSON object body of an event (handles base64)."""
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw, validate=True).decode("utf-8")
        body = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, TypeError):
        raise ApiError.bad_request("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ApiError.bad_request("Request body must be a JSON object")
    return body


def _request_method(event: Dict[str, Any]) -> str:
    http = (event.get("requestContext") or {}).get("http") or {}
    return (http.get("method") or event.get("httpMethod") or "").upper()


def _user_id(event: Dict[str, Any]) -> str:
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = (authorizer.get("jwt") or {}).get("claims") or authorizer.get("claims") or {}
    user_id = claims.get("sub") or authorizer.get("principalId")
    if not user_id:
        raise ApiError.unauthorized()
    return user_id


def _require_str(body: Dict[str, Any], name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str) or not value:
        raise ApiError.bad_request(f'"{name}" is required and must be a string')
    return value


def _require_int(body: Dict[str, Any], name: str, minimum: int, maximum: int) -> int:
    value = body.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ApiError.bad_request(f'"{name}" is required and must be an integer')
    if not minimum <= value <= maximum:
        raise ApiError.bad_request(f'"{name}" must be between {minimum} and {maximum}')
    return value


def _require_uuid(body: Dict[str, Any], name: str) -> str:
    value = _require_str(body, name)
    try:
        uuid.UUID(value)
    except ValueError:
        raise ApiError.bad_request(f'"{name}" must be a valid UUID') from None
    return value


def _optional_object(body: Dict[str, Any], name: str) -> Optional[dict]:
    value = body.get(name)
    if value is not None and not isinstance(value, dict):
        raise ApiError.bad_request(f'"{name}" must be an object')
    return value


def _query_int(params: Dict[str, Any], name: str, default: int, minimum: int) -> int:
    raw = params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ApiError.bad_request(f'"{name}" must be an integer') from None
    if value < minimum:
        raise ApiError.bad_request(f'"{name}" must be at least {minimum}')
    return value


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def api_handler(method: str) -> Callable:
    """Wrap a handler with CORS preflight, method check, auth and error mapping."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(
            event: Dict[str, Any],
            storage: ObjectStore,
            files: FileMetadataStore,
        ) -> Dict[str, Any]:
            request_method = _request_method(event)
            if request_method == "OPTIONS":
                return {"statusCode": 204, "headers": dict(CORS_HEADERS), "body": ""}
            if request_method != method:
                return _error(400, "Invalid request method")

            try:
                user_id = _user_id(event)
                return func(event, user_id, storage, files)
            except ApiError as e:
                return _error(e.status_code, e.message)
            except ValidationError as e:
                return _error(400, str(e))
            except PdfSyncError as e:
                logger.error("%s failed: %s", func.__name__, e)
                if e.status_code >= 500:
                    return _error(e.status_code, "Internal server error")
                return _error(e.status_code, str(e))
            except Exception:
                logger.exception("%s failed unexpectedly", func.__name__)
                return _error(500, "Internal server error")

        return wrapper

    return decorator


@api_handler("POST")
def get_upload_url(event, user_id, storage, files):
    body = _parse_body(event)
    filename = _require_str(body, "filename")
    file_size = _require_int(body, "fileSize", 1, MAX_FILE_SIZE)
    content_type = _require_str(body, "contentType")
    if content_type != PDF_CONTENT_TYPE:
        raise ApiError.bad_request(f'"contentType" must be {PDF_CONTENT_TYPE}')

    sanitized = sanitize_filename(filename)
    s3_key = build_object_key(user_id, sanitized)
    signed = storage.presign_upload(s3_key, content_type)

    return _response(
        200,
        {
            "success": True,
            "data": {
                "uploadUrl": signed.url,
                "s3Key": s3_key,
                "filename": sanitized,
                "originalFilename": filename,
                "fileSize": file_size,
                "contentType": content_type,
                "expiresIn": signed.expires,
            },
        },
    )


def _format_file(record: FileRecord, download_url: Optional[str]) -> dict:
    return {
        "id": record.id,
        "filename": record.original_filename,
        "sanitizedFilename": record.filename,
        "fileSize": record.file_size,
        "fileSizeFormatted": format_file_size(record.file_size),
        "uploadDate": record.uploaded_at,
        "syncStatus": record.sync_status,
        "deviceCount": record.device_count,
        "lastSyncedAt": record.last_synced_at,
        "syncErrorMessage": record.sync_error_message,
        "downloadUrl": download_url,
        "s3Key": record.s3_key,
        "metadata": record.metadata,
    }


@api_handler("GET")
def get_user_files(event, user_id, storage, files):
    params = event.get("queryStringParameters") or {}
    limit = _query_int(params, "limit", DEFAULT_PAGE_SIZE, 1)
    offset = _query_int(params, "offset", 0, 0)
    search = params.get("search") or ""
    sort_by = params.get("sortBy") or DEFAULT_SORT_COLUMN
    sort_order = params.get("sortOrder") or "desc"

    # Unknown sort fields fall back to newest first
    if sort_by not in SORT_COLUMNS or sort_order not in ("asc", "desc"):
        sort_by, sort_order = DEFAULT_SORT_COLUMN, "desc"

    try:
        records = files.list_files(
            user_id,
            search=search,
            sort_by=sort_by,
            ascending=sort_order == "asc",
            offset=offset,
            limit=limit,
        )
        total = files.count_files(user_id)
    except MetadataStoreError as e:
        logger.error("Listing files for %s failed: %s", user_id, e)
        raise ApiError.internal("Failed to fetch files") from e

    formatted = []
    for record in records:
        download_url = None
        try:
            download_url = storage.presign_download(record.s3_key).url
        except PdfSyncError as e:
            logger.error("Download URL for file %s failed: %s", record.id, e)
        formatted.append(_format_file(record, download_url))

    return _response(
        200,
        {
            "success": True,
            "data": {
                "files": formatted,
                "pagination": {
                    "total": total,
                    "limit": limit,
                    "offset": offset,
                    "hasMore": offset + limit < total,
                },
            },
        },
    )


@api_handler("POST")
def update_pdf(event, user_id, storage, files):
    body = _parse_body(event)
    file_id = _require_uuid(body, "fileId")
    update_method = body.get("updateMethod", "replace")
    if update_method not in UPDATE_METHODS:
        raise ApiError.bad_request(f'"updateMethod" must be one of {", ".join(UPDATE_METHODS)}')
    metadata = _optional_object(body, "metadata")

    record = files.get_file(user_id, file_id)
    if record is None:
        raise ApiError.not_found("File not found or you do not have permission to update it")

    previous_status = record.sync_status
    if not files.begin_update(user_id, file_id):
        raise ApiError.conflict("File is currently being updated by another device")

    try:
        signed = storage.presign_upload(record.s3_key, PDF_CONTENT_TYPE)
        if metadata:
            files.update_file(user_id, file_id, metadata=metadata, updated_at=_utc_now_iso())
    except Exception:
        # Restore the previous status on any failure
        files.update_file(user_id, file_id, sync_status=previous_status, updated_at=_utc_now_iso())
        raise

    return _response(
        200,
        {
            "success": True,
            "data": {
                "uploadUrl": signed.url,
                "s3Key": record.s3_key,
                "fileId": file_id,
                "updateMethod": update_method,
                "expiresIn": signed.expires,
                "maxFileSize": MAX_FILE_SIZE,
                "expectedContentType": PDF_CONTENT_TYPE,
            },
        },
    )


@api_handler("POST")
def delete_pdf(event, user_id, storage, files):
    body = _parse_body(event)
    file_id = _require_uuid(body, "fileId")

    record = files.get_file(user_id, file_id)
    if record is None:
        raise ApiError.not_found("File not found or you do not have permission to delete it")

    warnings = []
    s3_delete_success = False
    try:
        storage.delete_object(record.s3_key)
        s3_delete_success = True
    except StorageTransportError as e:
        # The metadata row is removed even when the object delete fails
        logger.warning("S3 delete of %s failed: %s", record.s3_key, e)
        warnings.append(f"S3 deletion failed: {e}")

    try:
        files.delete_file(user_id, file_id)
    except MetadataStoreError as e:
        logger.error("Database delete of %s failed: %s", file_id, e)
        raise ApiError.internal("Failed to delete file record from database") from e

    if s3_delete_success:
        message = "File deleted successfully"
    else:
        message = "File record deleted from database, but S3 deletion failed"

    return _response(
        200,
        {
            "success": True,
            "message": message,
            "data": {
                "fileId": file_id,
                "filename": record.original_filename,
                "s3DeleteSuccess": s3_delete_success,
                "warnings": warnings,
            },
        },
    )


@api_handler("POST")
def save_pdf_metadata(event, user_id, storage, files):
    body = _parse_body(event)
    s3_key = _require_str(body, "s3Key")
    filename = _require_str(body, "filename")
    original_filename = _require_str(body, "originalFilename")
    file_size = _require_int(body, "fileSize", 1, MAX_FILE_SIZE)
    content_type = body.get("contentType") or PDF_CONTENT_TYPE
    metadata = _optional_object(body, "metadata") or {}

    if not s3_key.startswith(user_key_prefix(user_id)):
        raise ApiError.forbidden("Invalid S3 key for user")

    try:
        saved = files.insert_file(
            FileRecord(
                user_id=user_id,
                s3_key=s3_key,
                filename=filename,
                original_filename=original_filename,
                file_size=file_size,
                content_type=content_type,
                sync_status=SYNC_PENDING,
                metadata=metadata,
            )
        )
    except DuplicateFileError:
        raise ApiError.conflict("File already exists") from None
    except MetadataStoreError as e:
        logger.error("Saving metadata for %s failed: %s", s3_key, e)
        raise ApiError.internal("Failed to save file metadata") from e

    return _response(
        200,
        {
            "success": True,
            "message": "File metadata saved successfully",
            "data": {
                "id": saved.id,
                "filename": saved.filename,
                "originalFilename": saved.original_filename,
                "fileSize": saved.file_size,
                "uploadedAt": saved.uploaded_at,
                "syncStatus": saved.sync_status,
                "s3Key": saved.s3_key,
            },
        },
    )
