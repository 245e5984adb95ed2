"""Main entry point for the Duet Chat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from duet_chat import __version__
from duet_chat.api.v1 import (
    auth_router,
    chats_router,
    images_router,
    invites_router,
    messages_router,
    realtime_router,
    users_router,
)
from duet_chat.core.errors import AuthError, ChatServiceError
from duet_chat.core.settings import settings
from duet_chat.services.imagekit import ImageKitDisabledError, ImageKitError, get_imagekit_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="One-to-one chat with invites, live updates and hosted images",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(invites_router, prefix="/api/v1")
app.include_router(chats_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(images_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.exception_handler(AuthError)
async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code, "message": exc.detail}},
    )


@app.exception_handler(ChatServiceError)
async def handle_service_error(request: Request, exc: ChatServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(ImageKitError)
async def handle_image_error(request: Request, exc: ImageKitError) -> JSONResponse:
    if isinstance(exc, ImageKitDisabledError):
        return JSONResponse(status_code=503, content={"detail": "Image hosting is not configured"})
    logger.error("Image host request failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": f"Image upload failed: {exc}"})


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_imagekit_client().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "realtime": "/api/v1/realtime",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("duet_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
