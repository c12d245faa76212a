"""Remote storage and metadata interfaces, plus the share-server HTTP client."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx

from photobooth import __version__
from photobooth.errors import UploadError


@dataclass
class PhotoMetaUpsert:
    """Metadata written to the remote service for a synced photo."""

    id: str
    file_url: str
    width: int
    height: int
    layout_name: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "file_url": self.file_url,
            "width": self.width,
            "height": self.height,
            "layout_name": self.layout_name,
        }


@dataclass
class RemotePhotoMeta:
    """Photo metadata as held by the remote service."""

    id: str
    file_url: str
    created_at: datetime
    width: int
    height: int
    layout_name: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "RemotePhotoMeta":
        return cls(
            id=data["id"],
            file_url=data["file_url"],
            created_at=datetime.fromisoformat(data["created_at"].replace("Z", "+00:00")),
            width=data["width"],
            height=data["height"],
            layout_name=data.get("layout_name"),
        )


class RemoteObjectStorage(Protocol):
    """Object storage that tolerates overwriting a key on retry."""

    async def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/png",
        upsert: bool = True,
    ) -> None: ...

    def get_public_url(self, key: str) -> str: ...


class RemoteMetadataService(Protocol):
    """Metadata service with insert-or-update semantics."""

    async def upsert_metadata(self, meta: PhotoMetaUpsert) -> RemotePhotoMeta: ...

    async def get_metadata(self, photo_id: str) -> RemotePhotoMeta | None: ...


class ShareServerClient:
    """Async HTTP client for the photobooth share server.

    Implements both RemoteObjectStorage and RemoteMetadataService.
    Every failure surfaces as UploadError; connection errors, timeouts
    and 5xx responses are flagged transient, 4xx responses are not.
    Retrying is left to the sync engine.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: Base URL of the share server (e.g., http://localhost:8081)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout

        # Reusable client with connection pooling
        self._client = httpx.AsyncClient(
            base_url=self.server_url,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": f"photobooth/{__version__}"},
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.ConnectError as e:
            raise UploadError(f"Connection error: {e}") from e
        except httpx.TimeoutException as e:
            raise UploadError(f"Timeout: {e}") from e
        except httpx.HTTPError as e:
            raise UploadError(f"HTTP error: {e}") from e

        if 400 <= response.status_code < 500:
            raise UploadError(
                f"Client error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                transient=response.status_code in (408, 429),
            )
        if response.status_code >= 500:
            raise UploadError(
                f"Server error: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/png",
        upsert: bool = True,
    ) -> None:
        """Store bytes under key in remote object storage.

        Args:
            key: Object key (e.g., "Ab3dE5gH9k.png")
            data: Raw image bytes
            content_type: MIME type of the payload
            upsert: Overwrite an existing object with the same key

        Raises:
            UploadError: If the object could not be stored
        """
        await self._request(
            "PUT",
            f"/api/storage/{key}",
            params={"upsert": "true" if upsert else "false"},
            content=data,
            headers={"Content-Type": content_type},
        )

    def get_public_url(self, key: str) -> str:
        return f"{self.server_url}/p/{key}"

    async def upsert_metadata(self, meta: PhotoMetaUpsert) -> RemotePhotoMeta:
        """Insert or update the metadata record for a photo.

        Raises:
            UploadError: If the metadata write failed or the reply was unusable
        """
        response = await self._request(
            "PUT",
            f"/api/photos/{meta.id}",
            json=meta.to_payload(),
        )
        return self._parse_meta(response)

    async def get_metadata(self, photo_id: str) -> RemotePhotoMeta | None:
        """Fetch photo metadata, or None if the server doesn't know the photo."""
        try:
            response = await self._request("GET", f"/api/photos/{photo_id}")
        except UploadError as e:
            if e.status_code == 404:
                return None
            raise
        return self._parse_meta(response)

    @staticmethod
    def _parse_meta(response: httpx.Response) -> RemotePhotoMeta:
        try:
            return RemotePhotoMeta.from_json(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise UploadError(f"Malformed metadata response: {e}") from e

    async def check_server(self) -> bool:
        """Check if the share server is reachable.

        Returns:
            True if the health check responds with 200, False otherwise
        """
        try:
            response = await self._client.get("/api/health", timeout=httpx.Timeout(5.0))
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "ShareServerClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
