"""Object storage for shared photo files."""

from photobooth_server.storage.filesystem import (
    InvalidKeyError,
    ObjectStorage,
    content_type_for,
    validate_key,
)

__all__ = ["InvalidKeyError", "ObjectStorage", "content_type_for", "validate_key"]
