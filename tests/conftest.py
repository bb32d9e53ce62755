"""Shared test fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from PIL import Image

from meme_modules.collaborators import MemeDraft, MemeRecord, MemeUpdate
from meme_utils.exceptions import MemeNotFoundError, PersistenceError, StorageError


def make_image_bytes(width: int, height: int, color=(200, 40, 40), fmt: str = "PNG", mode: str = None, **save_kwargs) -> bytes:
    """Encode a solid-color image in memory"""
    mode = mode or ("RGBA" if len(color) == 4 else "RGB")
    image = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def make_pattern_image(width: int, height: int) -> Image.Image:
    """RGBA image with a per-pixel gradient so misplaced pixels show up"""
    image = Image.new("RGBA", (width, height))
    image.putdata([
        ((x * 7) % 256, (y * 5) % 256, (x + y) % 256, 255)
        for y in range(height)
        for x in range(width)
    ])
    return image


def run(coro):
    return asyncio.run(coro)


class FakeRepository:
    """In-memory MemeRepository"""

    def __init__(self, fail_create: bool = False):
        self.records = {}
        self.fail_create = fail_create
        self._next_id = 0

    async def create(self, draft: MemeDraft) -> MemeRecord:
        if self.fail_create:
            raise PersistenceError("database unavailable")
        self._next_id += 1
        record = MemeRecord(
            id=f"m{self._next_id}",
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=self._next_id),
            **draft.model_dump(),
        )
        self.records[record.id] = record
        return record

    async def get_by_id(self, meme_id: str) -> MemeRecord:
        if meme_id not in self.records:
            raise MemeNotFoundError(meme_id)
        return self.records[meme_id]

    async def update(self, meme_id: str, changes: MemeUpdate) -> MemeRecord:
        existing = await self.get_by_id(meme_id)
        updated = existing.model_copy(update=changes.model_dump(exclude_unset=True, exclude_none=True))
        self.records[meme_id] = updated
        return updated

    async def delete(self, meme_id: str) -> None:
        await self.get_by_id(meme_id)
        del self.records[meme_id]

    async def list(self):
        return sorted(self.records.values(), key=lambda r: r.created_at, reverse=True)

    async def count(self) -> int:
        return len(self.records)


class FakeBlobStore:
    """In-memory BlobStore"""

    def __init__(self):
        self.files = {}
        self.deleted = []

    def public_url(self, name: str) -> str:
        return f"https://cdn.test/media/{name}"

    async def upload(self, data: bytes, suggested_name: str, content_type=None) -> str:
        if suggested_name in self.files:
            raise StorageError(f"{suggested_name} already exists")
        self.files[suggested_name] = (data, content_type)
        return self.public_url(suggested_name)

    async def delete(self, public_url: str) -> None:
        name = public_url.rsplit("/", 1)[-1]
        if name not in self.files:
            raise StorageError(f"{name} not found")
        del self.files[name]
        self.deleted.append(public_url)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes(400, 300)


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def fake_storage() -> FakeBlobStore:
    return FakeBlobStore()
