"""
Search Client for Devotional Studio

Search-as-you-type over stored prayers. Only the latest query matters:
starting a new search cancels the one still in flight, and the superseded
call returns None instead of stale results.
"""

import asyncio
from typing import Any, Dict, List, Optional

from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class SearchClient:
    """Cancellable search over the content repository."""

    def __init__(self, repository):
        self.repository = repository
        self._current: Optional[asyncio.Task] = None

    async def search(self, term: str, category_id: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        """
        Search records by term.

        Returns:
            Matching records, or None when a newer search superseded this one
        """
        self.cancel()

        task = asyncio.create_task(self.repository.search_audios(term.strip(), category_id))
        self._current = task
        try:
            return await task
        except asyncio.CancelledError:
            if task is not self._current:
                logger.debug(f"Search '{term}' superseded")
                return None
            raise
        finally:
            if self._current is task:
                self._current = None

    def cancel(self) -> bool:
        """Cancel the in-flight search, if any."""
        current = self._current
        if current is None or current.done():
            return False
        self._current = None
        current.cancel()
        return True
