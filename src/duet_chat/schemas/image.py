"""Image proxy schemas."""

from pydantic import BaseModel


class ImageUploadRequest(BaseModel):
    """Upload a base64 data URL to the image host.

    Fields are optional so missing values produce the same 400 messages as
    malformed ones.
    """

    image: str | None = None
    file_name: str | None = None
    folder: str | None = None


class ImageUploadResponse(BaseModel):
    """Upload result returned by the image host."""

    success: bool = True
    url: str
    file_id: str
    name: str | None = None
    size: int | None = None
    file_path: str | None = None
    height: int | None = None
    width: int | None = None


class ImageAuthResponse(BaseModel):
    """Parameters a browser needs for a direct signed upload."""

    token: str
    expire: int
    signature: str
    public_key: str
    url_endpoint: str
