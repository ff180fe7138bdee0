"""
Undo and version history for generated fields and their prompts.

UndoCache: one slot per field holding the value a generation replaced.
Undo is single-shot; the slot is cleared when used.

VersionHistory: saved prompt revisions per prompt key, newest first,
capped (VERSION_HISTORY_LIMIT). The whole list is stored as one JSON
value under `{key}_history` in configuration storage and replaced
atomically on save.
"""

import asyncio
import json
from typing import Dict, List, Optional

from config.settings import get_settings
from studio.models.draft import FieldName
from studio.models.versions import VersionEntry
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

_MISSING = object()


class UndoCache:
    """Previous value per field, consumed by a single undo."""

    def __init__(self):
        self._previous: Dict[FieldName, str] = {}

    def record(self, field: FieldName, previous_value: str) -> None:
        self._previous[field] = previous_value

    def can_undo(self, field: FieldName) -> bool:
        return field in self._previous

    def pop(self, field: FieldName) -> Optional[str]:
        """Previous value for field, or None if there is nothing to undo."""
        value = self._previous.pop(field, _MISSING)
        return None if value is _MISSING else value

    def clear(self) -> None:
        self._previous.clear()


def history_key(prompt_key: str) -> str:
    return f"{prompt_key}_history"


class VersionHistory:
    """Capped, newest-first prompt history backed by a settings store."""

    def __init__(self, settings_store, limit: Optional[int] = None):
        self.settings_store = settings_store
        self.limit = limit or get_settings().VERSION_HISTORY_LIMIT
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, prompt_key: str) -> asyncio.Lock:
        if prompt_key not in self._locks:
            self._locks[prompt_key] = asyncio.Lock()
        return self._locks[prompt_key]

    async def list_versions(self, prompt_key: str) -> List[VersionEntry]:
        raw = await self.settings_store.get(history_key(prompt_key))
        if not raw:
            return []
        try:
            items = json.loads(raw) if isinstance(raw, str) else raw
        except json.JSONDecodeError:
            logger.warning(f"Unreadable version history for {prompt_key}, starting fresh")
            return []
        if not isinstance(items, list):
            return []
        return [VersionEntry.from_storage(item) for item in items if isinstance(item, dict)]

    async def save_version(self, prompt_key: str, value: str, label: Optional[str] = None) -> List[VersionEntry]:
        """
        Prepend a new revision and drop the oldest beyond the cap.

        Returns:
            The stored list, newest first
        """
        entry = VersionEntry(value=value, label=(label or "").strip() or None)
        async with self._lock(prompt_key):
            versions = [entry] + await self.list_versions(prompt_key)
            versions = versions[:self.limit]
            payload = json.dumps([v.to_storage() for v in versions], ensure_ascii=False)
            await self.settings_store.set(history_key(prompt_key), payload)

        logger.info(f"Saved prompt version for {prompt_key}", extra={"versions": len(versions)})
        return versions

    async def restore_version(self, prompt_key: str, index: int) -> str:
        """Make the revision at index the active prompt and return it."""
        versions = await self.list_versions(prompt_key)
        if index < 0 or index >= len(versions):
            raise IndexError(f"No version {index} for {prompt_key}")
        value = versions[index].value
        await self.settings_store.set(prompt_key, value)
        return value
