"""Image hosting proxy endpoints.

Browsers never see the ImageKit private key; uploads and deletes go through
these handlers, or a browser asks for signed parameters and uploads directly.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from duet_chat.core.settings import settings
from duet_chat.schemas.image import ImageAuthResponse, ImageUploadRequest, ImageUploadResponse
from duet_chat.services.imagekit import ImageKitDisabledError, ImageKitError, split_data_url

from ..dependencies import CurrentUserDep, ImagesDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


def _not_configured() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Image hosting is not configured",
    )


@router.post("/upload", response_model=ImageUploadResponse)
async def upload_image(
    payload: ImageUploadRequest,
    current_user: CurrentUserDep,
    images: ImagesDep,
) -> ImageUploadResponse:
    """Upload a base64 data URL and return the hosted URL and file id."""
    if not payload.image:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image provided")
    if not payload.file_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file name provided")
    _, data = split_data_url(payload.image)

    try:
        uploaded = await images.upload(data, payload.file_name, payload.folder or settings.image_folder)
    except ImageKitDisabledError as exc:
        raise _not_configured() from exc
    except ImageKitError as exc:
        logger.error("Image upload for %s failed: %s", current_user.id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Image upload failed: {exc}",
        ) from exc

    return ImageUploadResponse(
        url=uploaded.url,
        file_id=uploaded.file_id,
        name=uploaded.name,
        size=uploaded.size,
        file_path=uploaded.file_path,
        height=uploaded.height,
        width=uploaded.width,
    )


@router.delete("/{file_id}")
async def delete_image(
    file_id: str,
    current_user: CurrentUserDep,
    images: ImagesDep,
) -> dict[str, bool]:
    try:
        await images.delete_file(file_id)
    except ImageKitDisabledError as exc:
        raise _not_configured() from exc
    except ImageKitError as exc:
        logger.error("Image deletion of %s failed: %s", file_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Image deletion failed",
        ) from exc
    return {"success": True}


@router.get("/auth", response_model=ImageAuthResponse)
async def image_auth(current_user: CurrentUserDep, images: ImagesDep) -> ImageAuthResponse:
    """Signed parameters for one direct browser upload."""
    try:
        params = images.authentication_parameters()
    except ImageKitDisabledError as exc:
        raise _not_configured() from exc
    return ImageAuthResponse(
        **params,
        public_key=images.config.public_key,
        url_endpoint=images.config.url_endpoint,
    )
