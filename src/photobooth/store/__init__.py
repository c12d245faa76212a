"""Durable on-device storage for captured photos."""

from photobooth.store.models import PhotoRecord, generate_photo_id
from photobooth.store.photo_store import LocalPhotoStore

__all__ = ["LocalPhotoStore", "PhotoRecord", "generate_photo_id"]
