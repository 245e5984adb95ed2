"""ImageKit client used to host chat images.

The private API key never leaves the server: browsers either go through the
upload/delete proxy endpoints or ask for signed authentication parameters
and upload directly.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from duet_chat.core.errors import InvalidRequestError
from duet_chat.core.security import sign_hmac_sha1
from duet_chat.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NO_CONTENT = 204


class ImageKitError(RuntimeError):
    """Raised when the image host rejects a request or cannot be reached."""


class ImageKitDisabledError(ImageKitError):
    """Raised when no private key is configured."""


@dataclass(frozen=True)
class ImageKitConfig:
    """Immutable configuration for ImageKit calls."""

    public_key: str
    private_key: str
    url_endpoint: str
    upload_url: str
    api_url: str
    timeout_seconds: float
    auth_ttl_seconds: int


@dataclass(frozen=True)
class UploadedImage:
    """Subset of the upload response the application keeps."""

    url: str
    file_id: str
    name: str | None = None
    size: int | None = None
    file_path: str | None = None
    height: int | None = None
    width: int | None = None


def load_imagekit_config() -> ImageKitConfig:
    """Build configuration object from global settings."""

    return ImageKitConfig(
        public_key=settings.imagekit_public_key,
        private_key=settings.imagekit_private_key,
        url_endpoint=settings.imagekit_url_endpoint,
        upload_url=settings.imagekit_upload_url,
        api_url=settings.imagekit_api_url.rstrip("/"),
        timeout_seconds=float(settings.imagekit_timeout_seconds),
        auth_ttl_seconds=settings.imagekit_auth_ttl_seconds,
    )


class ImageKitClient:
    """HTTP client wrapper for the ImageKit upload and media APIs."""

    def __init__(
        self,
        config: ImageKitConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_imagekit_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.config.private_key)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise ImageKitDisabledError("ImageKit private key is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    auth=httpx.BasicAuth(self.config.private_key, ""),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def upload(
        self,
        file: str,
        file_name: str,
        folder: str,
        *,
        use_unique_file_name: bool = False,
    ) -> UploadedImage:
        """Upload a base64 payload (without data URL prefix) as ``folder/file_name``."""
        client = await self._ensure_client()
        form = {
            "fileName": file_name,
            "folder": folder,
            "useUniqueFileName": "true" if use_unique_file_name else "false",
        }
        try:
            response = await client.post(
                self.config.upload_url,
                data=form,
                files={"file": (None, file)},
            )
        except httpx.HTTPError as exc:
            raise ImageKitError(f"ImageKit upload request failed: {exc}") from exc

        if response.status_code != HTTP_OK:
            raise ImageKitError(_describe_failure(response, "upload"))

        body: dict[str, Any] = response.json()
        logger.debug("Uploaded %s to ImageKit as %s", file_name, body.get("fileId"))
        return UploadedImage(
            url=body["url"],
            file_id=body["fileId"],
            name=body.get("name"),
            size=body.get("size"),
            file_path=body.get("filePath"),
            height=body.get("height"),
            width=body.get("width"),
        )

    async def delete_file(self, file_id: str) -> None:
        """Delete a hosted file by id."""
        client = await self._ensure_client()
        try:
            response = await client.delete(f"{self.config.api_url}/files/{file_id}")
        except httpx.HTTPError as exc:
            raise ImageKitError(f"ImageKit delete request failed: {exc}") from exc

        if response.status_code not in (HTTP_OK, HTTP_NO_CONTENT):
            raise ImageKitError(_describe_failure(response, "delete"))

    def authentication_parameters(
        self,
        token: str | None = None,
        expire: int | None = None,
    ) -> dict[str, Any]:
        """Signed parameters that allow one direct upload from a browser."""
        if not self.enabled:
            raise ImageKitDisabledError("ImageKit private key is not configured")
        token = token or uuid.uuid4().hex
        expire = expire or int(time.time()) + self.config.auth_ttl_seconds
        return {
            "token": token,
            "expire": expire,
            "signature": sign_hmac_sha1(self.config.private_key, f"{token}{expire}"),
        }


def _describe_failure(response: httpx.Response, action: str) -> str:
    try:
        message = response.json().get("message")
    except ValueError:
        message = None
    return f"ImageKit {action} failed ({response.status_code}): {message or response.text}"


_imagekit_client: ImageKitClient | None = None


def get_imagekit_client() -> ImageKitClient:
    """Return the shared ImageKit client."""
    global _imagekit_client
    if _imagekit_client is None:
        _imagekit_client = ImageKitClient()
    return _imagekit_client


async def delete_images_quietly(client: ImageKitClient, file_ids: list[str]) -> int:
    """Delete several hosted images, logging failures instead of raising.

    Returns the number of successful deletions.
    """
    if not file_ids:
        return 0

    results = await asyncio.gather(
        *(client.delete_file(file_id) for file_id in file_ids),
        return_exceptions=True,
    )
    deleted = 0
    for file_id, result in zip(file_ids, results):
        if isinstance(result, Exception):
            logger.warning("Failed to delete image %s: %s", file_id, result)
        else:
            deleted += 1
    return deleted


def split_data_url(data_url: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into header and payload."""
    parts = data_url.split(",")
    if len(parts) != 2:
        raise InvalidRequestError("Invalid image format")
    return parts[0], parts[1]
