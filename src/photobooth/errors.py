"""Error types for the capture-and-sync core."""


class PhotoboothError(Exception):
    """Base class for all photobooth errors."""


class StorageError(PhotoboothError):
    """Local photo storage is unavailable or failed.

    Fatal to the operation in progress. Callers must never read this as
    "no pending work".
    """


class UploadError(PhotoboothError):
    """Reaching or writing to the remote storage or metadata service failed.

    Recoverable: background sync retries the record on its next run.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        transient: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient

    @property
    def throttled(self) -> bool:
        """The server refused the request because of its rate limit."""
        return self.status_code == 429


class ValidationError(PhotoboothError, ValueError):
    """Malformed input, e.g. an unparseable creation timestamp."""


class RetryExhausted(PhotoboothError):
    """Describes a record that has used up its automatic upload attempts.

    Never raised by the sync engine; the record simply stays queued.
    Use it to report stuck captures to operators.
    """

    def __init__(self, photo_id: str, retry_count: int, max_retry_count: int) -> None:
        super().__init__(
            f"Photo {photo_id} is stuck after {retry_count} attempts "
            f"(limit {max_retry_count})"
        )
        self.photo_id = photo_id
        self.retry_count = retry_count
        self.max_retry_count = max_retry_count
