"""Sync module for uploading queued photos to the share server."""

from photobooth.sync.engine import CaptureReceipt, SyncEngine, SyncReport
from photobooth.sync.remote import (
    PhotoMetaUpsert,
    RemoteMetadataService,
    RemoteObjectStorage,
    RemotePhotoMeta,
    ShareServerClient,
)

__all__ = [
    "CaptureReceipt",
    "PhotoMetaUpsert",
    "RemoteMetadataService",
    "RemoteObjectStorage",
    "RemotePhotoMeta",
    "ShareServerClient",
    "SyncEngine",
    "SyncReport",
]
