"""API routers for the share server."""

from photobooth_server.api import health, manage, photos, storage

__all__ = ["health", "manage", "photos", "storage"]
