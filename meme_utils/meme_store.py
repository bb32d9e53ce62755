"""
File-based Meme Repository
Uses one JSON file per meme record so the gallery needs no database server
"""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List
from uuid import uuid4

from loguru import logger
from pydantic import ValidationError

from config import settings
from meme_modules.collaborators import MemeDraft, MemeRecord, MemeUpdate
from meme_utils.exceptions import MemeNotFoundError, PersistenceError


_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class JsonMemeRepository:
    """JSON-file meme repository implementing the MemeRepository contract"""

    def __init__(self, storage_dir: Path = None):
        """
        Initialize meme repository

        Args:
            storage_dir: Directory holding <id>.json record files
        """
        self.storage_dir = Path(storage_dir or settings.DATA_DIR)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Meme repository initialized: {self.storage_dir}")

    def _get_record_file(self, meme_id: str) -> Path:
        """Get path to a record file"""
        if not _ID_PATTERN.match(meme_id or ""):
            raise MemeNotFoundError(meme_id)
        return self.storage_dir / f"{meme_id}.json"

    def _read(self, record_file: Path) -> MemeRecord:
        try:
            with open(record_file, "r", encoding="utf-8") as f:
                return MemeRecord.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(f"Error reading {record_file.name}: {e}") from e

    def _write(self, record: MemeRecord) -> None:
        record_file = self._get_record_file(record.id)
        tmp_file = record_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(record.model_dump_json(indent=2))
            tmp_file.replace(record_file)
        except OSError as e:
            raise PersistenceError(f"Error writing meme {record.id}: {e}") from e

    async def create(self, draft: MemeDraft) -> MemeRecord:
        """
        Create a new meme record

        Args:
            draft: Image URL and captions

        Returns:
            Stored record with server-assigned id and creation time
        """
        record = MemeRecord(
            id=uuid4().hex,
            image_url=draft.image_url,
            top_text=draft.top_text,
            bottom_text=draft.bottom_text,
            created_at=datetime.now(timezone.utc),
        )
        self._write(record)

        logger.debug(f"Meme created: {record.id}")
        return record

    async def get_by_id(self, meme_id: str) -> MemeRecord:
        """
        Get a meme record

        Raises:
            MemeNotFoundError: If no record has this id
        """
        record_file = self._get_record_file(meme_id)

        if not record_file.exists():
            raise MemeNotFoundError(meme_id)

        return self._read(record_file)

    async def update(self, meme_id: str, changes: MemeUpdate) -> MemeRecord:
        """
        Update a meme record

        Args:
            meme_id: Record id
            changes: Fields to change (unset fields are kept)

        Returns:
            Updated record
        """
        existing = await self.get_by_id(meme_id)
        updated = existing.model_copy(update=changes.model_dump(exclude_unset=True, exclude_none=True))
        self._write(updated)

        logger.debug(f"Meme updated: {meme_id}")
        return updated

    async def delete(self, meme_id: str) -> None:
        """
        Delete a meme record

        Raises:
            MemeNotFoundError: If no record has this id
        """
        record_file = self._get_record_file(meme_id)

        if not record_file.exists():
            raise MemeNotFoundError(meme_id)

        try:
            record_file.unlink()
        except OSError as e:
            raise PersistenceError(f"Error deleting meme {meme_id}: {e}") from e

        logger.debug(f"Meme deleted: {meme_id}")

    async def list(self) -> List[MemeRecord]:
        """
        List all memes

        Returns:
            Records, newest first
        """
        records = [self._read(record_file) for record_file in self.storage_dir.glob("*.json")]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def count(self) -> int:
        """Total number of memes"""
        return sum(1 for _ in self.storage_dir.glob("*.json"))
