"""Metadata coordinator.

Thin façade over the two record-API calls surrounding an object
transfer:
- authorization: obtain a presigned write destination + storage key
- finalization: turn an uploaded object into a persisted record

No retries and no logic beyond request shaping and response validation.
"""

from typing import Any

import httpx

from clipvault.core.exceptions import AuthorizationError, FinalizationError, UploadError
from clipvault.core.logging import get_logger
from clipvault.infrastructure.http_client import HTTPClient
from clipvault.services.uploader.models import (
    RecordRef,
    SharedMetadata,
    SizeInfo,
    UploadAuthorization,
)

logger = get_logger(__name__)

UPLOAD_URL_ENDPOINT = "/api/videos/upload-url"
THUMBNAIL_URL_ENDPOINT = "/api/videos/thumbnails"
RECORDS_ENDPOINT = "/api/videos"


def _error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value

    text = response.text.strip()
    if text and len(text) <= 200:
        return text
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


class MetadataCoordinator:
    """Client for the upload-authorization and record services.

    Example:
        >>> coordinator = MetadataCoordinator(api_client)
        >>> auth = await coordinator.authorize("clip.mp4", "video/mp4", 1024)
        >>> record = await coordinator.finalize(auth.storage_key, metadata, size_info)
    """

    def __init__(self, http: HTTPClient) -> None:
        """Initialize MetadataCoordinator.

        Args:
            http: HTTP client bound to the record API base URL
        """
        self.http = http

    async def authorize(
        self,
        filename: str,
        content_type: str,
        size_bytes: int,
    ) -> UploadAuthorization:
        """Request a write destination for a not-yet-uploaded file.

        Args:
            filename: File name
            content_type: MIME type the blob will be sent with
            size_bytes: Exact blob size

        Returns:
            Destination URL and storage key

        Raises:
            AuthorizationError: If the service refuses or the call fails
        """
        payload = {"filename": filename, "contentType": content_type, "fileSize": size_bytes}
        data = await self._post(UPLOAD_URL_ENDPOINT, payload, AuthorizationError)
        return UploadAuthorization(
            destination_url=self._require(data, "uploadUrl", UPLOAD_URL_ENDPOINT, AuthorizationError),
            storage_key=self._require(data, "videoKey", UPLOAD_URL_ENDPOINT, AuthorizationError),
        )

    async def authorize_thumbnail(
        self,
        storage_key: str,
        content_type: str = "image/jpeg",
    ) -> UploadAuthorization:
        """Request a write destination for the thumbnail of an authorized video.

        Args:
            storage_key: Storage key of the video the thumbnail belongs to
            content_type: Thumbnail MIME type

        Returns:
            Destination URL and thumbnail storage key

        Raises:
            AuthorizationError: If the service refuses or the call fails
        """
        payload = {"videoKey": storage_key, "contentType": content_type}
        data = await self._post(THUMBNAIL_URL_ENDPOINT, payload, AuthorizationError)
        return UploadAuthorization(
            destination_url=self._require(
                data, "uploadUrl", THUMBNAIL_URL_ENDPOINT, AuthorizationError
            ),
            storage_key=self._require(
                data, "thumbnailKey", THUMBNAIL_URL_ENDPOINT, AuthorizationError
            ),
        )

    async def finalize(
        self,
        storage_key: str,
        metadata: SharedMetadata,
        size_info: SizeInfo,
        thumbnail_key: str | None = None,
        duration_seconds: float | None = None,
    ) -> RecordRef:
        """Persist a record for an uploaded object.

        Args:
            storage_key: Storage key returned by authorize()
            metadata: Shared descriptive fields
            size_info: Uploaded/original sizes
            thumbnail_key: Storage key of the uploaded thumbnail
            duration_seconds: Probed media duration

        Returns:
            Reference to the created record

        Raises:
            FinalizationError: If the service refuses or the call fails
        """
        payload: dict[str, Any] = {
            "videoKey": storage_key,
            "title": metadata.title,
            "description": metadata.description,
            "project": metadata.project,
            # Record service splits tags on commas
            "tags": ", ".join(metadata.tags),
            "size": size_info.size_bytes,
            "isCompressed": size_info.is_compressed,
            "compressionRatio": size_info.compression_ratio_percent,
        }
        if metadata.company_id:
            payload["companyId"] = metadata.company_id
        if size_info.original_size_bytes is not None:
            payload["originalSize"] = size_info.original_size_bytes
        if thumbnail_key:
            payload["thumbnailKey"] = thumbnail_key
        if duration_seconds:
            payload["duration"] = round(duration_seconds, 3)

        data = await self._post(RECORDS_ENDPOINT, payload, FinalizationError)
        record_id = data.get("_id") or data.get("id")
        if not record_id:
            raise FinalizationError(
                "Record response is missing an id",
                endpoint=RECORDS_ENDPOINT,
            )
        return RecordRef(id=str(record_id), data=data)

    async def _post(
        self,
        endpoint: str,
        payload: dict[str, Any],
        error_cls: type[UploadError],
    ) -> dict[str, Any]:
        try:
            response = await self.http.post(endpoint, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Record API call failed", endpoint=endpoint, error=str(e))
            raise error_cls(f"Request failed: {e}", endpoint=endpoint) from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "Record API refused request",
                endpoint=endpoint,
                status_code=response.status_code,
                message=message,
            )
            raise error_cls(message, status_code=response.status_code, endpoint=endpoint)

        try:
            data = response.json()
        except ValueError as e:
            raise error_cls("Response is not valid JSON", endpoint=endpoint) from e
        if not isinstance(data, dict):
            raise error_cls("Response is not a JSON object", endpoint=endpoint)
        return data

    @staticmethod
    def _require(
        data: dict[str, Any],
        key: str,
        endpoint: str,
        error_cls: type[UploadError],
    ) -> str:
        value = data.get(key)
        if not isinstance(value, str) or not value:
            raise error_cls(f"Response is missing '{key}'", endpoint=endpoint)
        return value


__all__ = [
    "MetadataCoordinator",
    "UPLOAD_URL_ENDPOINT",
    "THUMBNAIL_URL_ENDPOINT",
    "RECORDS_ENDPOINT",
]
