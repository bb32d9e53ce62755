"""
Gallery Client - Remote MemeRepository / BlobStore over the gallery HTTP API
"""

from typing import Any, List, Optional

import httpx
from loguru import logger

from meme_modules.collaborators import MemeDraft, MemeRecord, MemeUpdate
from meme_utils.exceptions import MemeNotFoundError, PersistenceError, StorageError


class GalleryClient:
    """
    Talks to a running gallery service

    `memes` and `storage` expose the two collaborator contracts, so they can
    be handed to MemePublisher in place of the local stores.
    """

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        """
        Initialize GalleryClient

        Args:
            base_url: Gallery root URL, e.g. http://localhost:8000
            client: Optional preconfigured httpx client (owned by the caller)
            timeout: Request timeout in seconds for the private client
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GalleryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def request(self, method: str, path: str, error_cls=PersistenceError, **kwargs) -> Any:
        """
        Send a request and unwrap the {success, data, error} envelope

        Raises:
            error_cls: On transport errors or unsuccessful responses
        """
        try:
            response = await self._client.request(method, self.url(path), **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"{method} {path} failed: {e or type(e).__name__}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_success and payload.get("success", False):
            return payload.get("data")

        message = payload.get("error") or f"HTTP {response.status_code}"
        logger.debug(f"{method} {path} -> {response.status_code}: {message}")

        if response.status_code == 404 and error_cls is PersistenceError:
            raise MemeNotFoundError(path.rsplit("/", 1)[-1])
        raise error_cls(message)

    # Collaborator views

    @property
    def memes(self) -> "RemoteMemeRepository":
        return RemoteMemeRepository(self)

    @property
    def storage(self) -> "RemoteBlobStore":
        return RemoteBlobStore(self)


class RemoteMemeRepository:
    """MemeRepository backed by the gallery API"""

    def __init__(self, gallery: GalleryClient):
        self.gallery = gallery

    async def create(self, draft: MemeDraft) -> MemeRecord:
        data = await self.gallery.request("POST", "/api/memes", json=draft.model_dump())
        return MemeRecord.model_validate(data)

    async def get_by_id(self, meme_id: str) -> MemeRecord:
        data = await self.gallery.request("GET", f"/api/memes/{meme_id}")
        return MemeRecord.model_validate(data)

    async def update(self, meme_id: str, changes: MemeUpdate) -> MemeRecord:
        data = await self.gallery.request(
            "PUT", f"/api/memes/{meme_id}", json=changes.model_dump(exclude_unset=True)
        )
        return MemeRecord.model_validate(data)

    async def delete(self, meme_id: str) -> None:
        await self.gallery.request("DELETE", f"/api/memes/{meme_id}")

    async def list(self) -> List[MemeRecord]:
        data = await self.gallery.request("GET", "/api/memes")
        return [MemeRecord.model_validate(item) for item in data or []]

    async def count(self) -> int:
        data = await self.gallery.request("GET", "/api/memes/count")
        return int(data["count"])


class RemoteBlobStore:
    """BlobStore backed by the gallery API"""

    def __init__(self, gallery: GalleryClient):
        self.gallery = gallery

    async def upload(self, data: bytes, suggested_name: str, content_type: Optional[str] = None) -> str:
        files = {"file": (suggested_name, data, content_type or "application/octet-stream")}
        result = await self.gallery.request("POST", "/api/storage", error_cls=StorageError, files=files)
        return result["url"]

    async def delete(self, public_url: str) -> None:
        await self.gallery.request(
            "DELETE", "/api/storage", error_cls=StorageError, params={"url": public_url}
        )

    def public_url(self, name: str) -> str:
        return self.gallery.url(f"/media/{name}")
