"""Business logic services for Duet Chat."""

from .auth import LoginThrottle
from .imagekit import ImageKitClient
from .oauth import GoogleTokenVerifier
from .realtime import SnapshotHub

__all__ = [
    "GoogleTokenVerifier",
    "ImageKitClient",
    "LoginThrottle",
    "SnapshotHub",
]
