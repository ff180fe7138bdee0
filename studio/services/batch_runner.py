"""
Batch Runner for Devotional Studio

Generates many prayers in sequence from NDJSON seed lines:

    {"title": "...", "biblical_base": "...", "topic": "...", "playlists": ["..."]}

(The admin export's Portuguese keys are accepted too.)

Per item:
1. Reset the session draft (nothing carries over from the previous item)
2. Run the pipeline, retrying once on failure
3. Make sure speech exists (one re-synthesis, then a short grace wait)
4. Give the image a bounded chance to arrive
5. Persist with the seed title as the record title
6. Attach the record to each named playlist (created if missing)

One item's failure never stops the batch.
"""

import asyncio
import json
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from config.settings import get_settings
from studio.core.errors import PersistError, StudioError
from studio.models.draft import SeedInputs
from studio.models.results import BatchItemResult
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

_TITLE_KEYS = ("title", "Título da Oração", "Titulo da Oração", "Titulo", "Título")
_BASE_KEYS = ("biblical_base", "Base bíblica", "Base Biblica", "Base")
_TOPIC_KEYS = ("topic", "Tema central", "Tema")
_PLAYLIST_KEYS = ("playlists", "Playlist")


class BatchLine(BaseModel):
    """One parsed seed line."""
    raw: str
    title: str = ""
    biblical_base: str = ""
    topic: str = ""
    playlists: List[str] = Field(default_factory=list)
    error: Optional[str] = None


def _first(obj: dict, keys) -> str:
    for key in keys:
        value = obj.get(key)
        if value:
            return str(value).strip()
    return ""


def parse_ndjson(text: str) -> List[BatchLine]:
    """Parse seed lines; invalid lines are kept with an error."""
    lines: List[BatchLine] = []
    for raw in (line.strip() for line in (text or "").splitlines()):
        if not raw:
            continue
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            lines.append(BatchLine(raw=raw, error="Invalid JSON"))
            continue
        if not isinstance(obj, dict):
            lines.append(BatchLine(raw=raw, error="Invalid JSON"))
            continue

        playlists_value = next((obj[k] for k in _PLAYLIST_KEYS if k in obj), [])
        if isinstance(playlists_value, str):
            playlists = [playlists_value.strip()] if playlists_value.strip() else []
        elif isinstance(playlists_value, list):
            playlists = [v.strip() for v in playlists_value if isinstance(v, str) and v.strip()]
        else:
            playlists = []

        line = BatchLine(
            raw=raw,
            title=_first(obj, _TITLE_KEYS),
            biblical_base=_first(obj, _BASE_KEYS),
            topic=_first(obj, _TOPIC_KEYS),
            playlists=playlists
        )
        if not (line.title and line.biblical_base and line.topic):
            line.error = "Missing required fields"
        lines.append(line)
    return lines


class BatchRunner:
    """Runs a list of seeds through one GeneratorSession."""

    def __init__(self, session, repository, progress: Optional[Callable[[int, int, BatchItemResult], None]] = None):
        settings = get_settings()
        self.session = session
        self.repository = repository
        self.progress = progress
        self.retries = settings.BATCH_GENERATION_RETRIES
        self.speech_wait = settings.BATCH_SPEECH_WAIT_SECONDS
        self.speech_grace = settings.BATCH_SPEECH_GRACE_SECONDS
        self.image_wait = settings.BATCH_IMAGE_WAIT_SECONDS
        self._cancelled = False

    def cancel(self) -> None:
        """Stop after the item currently in progress."""
        self._cancelled = True

    async def run(self, lines: List[BatchLine], category_id: Optional[str] = None) -> List[BatchItemResult]:
        valid = [line for line in lines if not line.error]
        results: List[BatchItemResult] = []
        logger.info(f"Batch started: {len(valid)} items ({len(lines) - len(valid)} skipped)")

        for index, line in enumerate(valid, start=1):
            if self._cancelled:
                logger.warning(f"Batch cancelled before item {index}")
                break
            item = await self.run_item(line, category_id)
            results.append(item)
            if self.progress:
                self.progress(index, len(valid), item)

        succeeded = sum(1 for r in results if r.ok)
        logger.info(f"Batch finished: {succeeded}/{len(results)} succeeded")
        return results

    async def run_item(self, line: BatchLine, category_id: Optional[str] = None) -> BatchItemResult:
        try:
            return await self._run_item(line, category_id)
        except StudioError as e:
            logger.error(f"Batch item '{line.title}' failed: {e}")
            return BatchItemResult(topic=line.topic, ok=False, error=str(e))
        except Exception as e:
            # Storage and transport errors end this item only
            logger.error(f"Batch item '{line.title}' failed with {type(e).__name__}: {e}")
            return BatchItemResult(topic=line.topic, ok=False, error=str(e))

    async def _run_item(self, line: BatchLine, category_id: Optional[str]) -> BatchItemResult:
        await self.session.reset_for_batch_item(category_id)
        seed = SeedInputs(topic=line.topic, biblical_reference=line.biblical_base, category_id=category_id)

        run = await self.session.run(seed)
        attempt = 0
        while not run.ok and attempt < self.retries and self._segments_missing():
            attempt += 1
            logger.warning(f"Retrying generation for '{line.title}' ({attempt}/{self.retries})")
            await asyncio.sleep(0.5)
            run = await self.session.run(seed)

        missing = self._segments_missing()
        if missing:
            return self._failed(line, f"Incomplete fields: {', '.join(missing)}")

        if not await self._ensure_speech():
            return self._failed(line, "Speech was not generated in time")

        await self.session.store.wait_for_value("image_asset_url", self.image_wait)

        try:
            saved = await self.session.persist(title_override=line.title)
        except PersistError as e:
            return self._failed(line, e.message)

        attached, failures = await self._attach_playlists(saved.asset_id, line.playlists, category_id)
        return BatchItemResult(
            topic=line.topic,
            ok=True,
            asset_id=saved.asset_id,
            playlists=attached,
            error="; ".join(failures) or None
        )

    def _segments_missing(self) -> List[str]:
        snapshot = self.session.snapshot()
        return [name for name in snapshot.missing_required() if name != "speech_asset_url"]

    async def _ensure_speech(self) -> bool:
        store = self.session.store
        if store.get("speech_asset_url"):
            return True
        try:
            await asyncio.wait_for(self.session.regenerate_speech(), timeout=self.speech_wait)
        except asyncio.TimeoutError:
            logger.warning(f"Speech re-synthesis exceeded {self.speech_wait:.0f}s")
        if store.get("speech_asset_url"):
            return True
        return bool(await store.wait_for_value("speech_asset_url", self.speech_grace))

    async def _attach_playlists(self, asset_id: str, playlists: List[str], category_id: Optional[str]):
        attached, failures = [], []
        for name in playlists:
            try:
                playlist_id = await self.repository.ensure_playlist(name, category_id)
                await self.repository.add_to_playlist(playlist_id, asset_id)
                attached.append(name)
            except Exception as e:
                logger.error(f"Could not add {asset_id} to playlist '{name}': {e}")
                failures.append(f"{name}: {e}")
        return attached, failures

    @staticmethod
    def _failed(line: BatchLine, error: str) -> BatchItemResult:
        logger.error(f"Batch item '{line.title}' failed: {error}")
        return BatchItemResult(topic=line.topic, ok=False, error=error)
