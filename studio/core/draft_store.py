"""
Draft Store for Devotional Studio

Single owner of a session's live ContentDraft. Every write goes through
update(), which notifies waiters on an asyncio.Condition; readers either
take a synchronous snapshot() or wait (bounded) for a field to appear.

Writes are tagged with the run epoch that produced them. reset() starts a
new epoch, so a straggling branch from a previous batch item cannot write
into the next item's draft.
"""

import asyncio
from typing import Any, Callable, Optional

from studio.models.draft import ContentDraft, DraftSnapshot, FieldName
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class DraftStore:
    """Owner of one live ContentDraft."""

    def __init__(self, draft: Optional[ContentDraft] = None):
        self._draft = draft or ContentDraft()
        self._changed = asyncio.Condition()
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def draft(self) -> ContentDraft:
        """Live draft. Read-only for callers; use update() to write."""
        return self._draft

    def get(self, attr: str) -> Any:
        return getattr(self._draft, attr)

    def field_value(self, name: FieldName) -> str:
        return self._draft.field_value(name)

    def snapshot(self) -> DraftSnapshot:
        """Copy every field in one synchronous step."""
        return DraftSnapshot(**self._draft.model_dump())

    async def update(self, epoch: Optional[int] = None, **values) -> bool:
        """
        Apply values to the live draft and wake waiters.

        Args:
            epoch: Run epoch of the writer; stale epochs are ignored
            **values: ContentDraft attributes to set

        Returns:
            False when the write was dropped as stale
        """
        async with self._changed:
            if epoch is not None and epoch != self._epoch:
                logger.debug(
                    f"Dropping stale write from epoch {epoch} (current {self._epoch})",
                    extra={"columns": sorted(values)}
                )
                return False
            self._draft = self._draft.model_copy(update=values)
            self._changed.notify_all()
            return True

    async def reset(self, **seed) -> int:
        """Clear the draft for a new item and start a new epoch."""
        async with self._changed:
            self._epoch += 1
            self._draft = ContentDraft(**seed)
            self._changed.notify_all()
            return self._epoch

    async def wait_for(self, predicate: Callable[[ContentDraft], bool], timeout: float) -> bool:
        """
        Wait until predicate(draft) holds or timeout elapses.

        Returns:
            True if the predicate held before the timeout
        """
        if predicate(self._draft):
            return True
        if timeout <= 0:
            return False

        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: predicate(self._draft)),
                    timeout=timeout
                )
                return True
            except asyncio.TimeoutError:
                return False

    async def wait_for_value(self, attr: str, timeout: float) -> Optional[Any]:
        """Wait (bounded) for attr to become non-empty; None on timeout."""
        ready = await self.wait_for(lambda draft: bool(getattr(draft, attr)), timeout)
        return getattr(self._draft, attr) if ready else None
