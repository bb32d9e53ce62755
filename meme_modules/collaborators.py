"""
Gallery collaborator contracts - meme records and blob storage
"""

from datetime import datetime
from typing import Any, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class MemeDraft(BaseModel):
    """Fields supplied when creating a meme"""
    image_url: str = Field(..., description="Public URL of the meme image")
    top_text: str = Field("", description="Top caption as typed")
    bottom_text: str = Field("", description="Bottom caption as typed")


class MemeUpdate(BaseModel):
    """Partial update; unset fields are left untouched"""
    image_url: Optional[str] = None
    top_text: Optional[str] = None
    bottom_text: Optional[str] = None


class MemeRecord(BaseModel):
    """Stored meme"""
    id: str
    image_url: str
    top_text: str = ""
    bottom_text: str = ""
    created_at: datetime


class ApiResponse(BaseModel):
    """Envelope for every gallery API response"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


@runtime_checkable
class MemeRepository(Protocol):
    """Persistence collaborator"""

    async def create(self, draft: MemeDraft) -> MemeRecord: ...

    async def get_by_id(self, meme_id: str) -> MemeRecord: ...

    async def update(self, meme_id: str, changes: MemeUpdate) -> MemeRecord: ...

    async def delete(self, meme_id: str) -> None: ...

    async def list(self) -> List[MemeRecord]: ...

    async def count(self) -> int: ...


@runtime_checkable
class BlobStore(Protocol):
    """Storage collaborator"""

    async def upload(self, data: bytes, suggested_name: str, content_type: Optional[str] = None) -> str: ...

    async def delete(self, public_url: str) -> None: ...

    def public_url(self, name: str) -> str: ...
