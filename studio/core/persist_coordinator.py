"""
Snapshot & Persist Coordinator for Devotional Studio

Persists a draft with exactly one create (or one update when editing):

1. Snapshot every field in one synchronous call. Branches that finish
   afterwards never change what this attempt writes.
2. Backfill: generate title/subtitle/description, then
   preparation_text/closing_text, if still empty (blocking, from the
   snapshot's main_text).
3. Wait (bounded) for an in-flight speech URL; fail without writing if it
   never arrives. Wait a shorter time for the image; never fail on it.
4. Measure the duration once if none was recorded.
5. Insert or update. A unique-key violation surfaces as a conflict.
6. If the image was missing at write time, a single follow-up update
   attaches it once it arrives. At most one follow-up per record.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

from config.settings import get_settings
from studio.core.audio_duration import measure_duration
from studio.core.biblical_reference import detect_biblical_base
from studio.core.draft_store import DraftStore
from studio.core.errors import PersistError, UniqueConstraintError
from studio.models.draft import (
    DraftSnapshot,
    FieldName,
    SEGMENT_FIELDS,
    SUMMARY_FIELDS,
)
from studio.models.results import PersistResult
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

SEGMENT_BACKFILL = (FieldName.PREPARATION_TEXT, FieldName.CLOSING_TEXT)


def build_record(snapshot: DraftSnapshot, created_by: Optional[str] = None, ai_engine: Optional[str] = None) -> Dict[str, Any]:
    """Row for the audios table from a snapshot."""
    transcript = "\n\n".join(
        snapshot.field_value(name).strip() for name in SEGMENT_FIELDS if snapshot.field_value(name).strip()
    )
    duration = snapshot.speech_duration_seconds
    return {
        "title": snapshot.title,
        "subtitle": snapshot.subtitle or None,
        "description": snapshot.description or None,
        "audio_url": snapshot.speech_asset_url,
        "transcript": transcript,
        "duration": round(duration) if duration is not None else None,
        "category_id": snapshot.category_id,
        "cover_url": snapshot.image_asset_url or None,
        "created_by": created_by or snapshot.created_by,
        "ai_engine": ai_engine or get_settings().AI_ENGINE,
        "voice_id": snapshot.voice_id,
        "voice_name": snapshot.voice_name,
        "biblical_base": snapshot.biblical_reference or detect_biblical_base(snapshot.main_text) or None,
    }


class PersistCoordinator:
    """Turns a draft into exactly one stored record."""

    def __init__(
        self,
        store: DraftStore,
        repository,
        field_client,
        duration_probe=None,
        speech_wait: Optional[float] = None,
        image_wait: Optional[float] = None,
        follow_up_wait: Optional[float] = None
    ):
        """
        Args:
            store: Owner of the live draft
            repository: Object with insert_audio / update_audio
            field_client: Object with `async generate(field, context) -> FieldResult`
            duration_probe: `async (url) -> Optional[float]`
            speech_wait: Seconds to wait for an in-flight speech URL
            image_wait: Seconds to wait for an in-flight image URL
            follow_up_wait: Seconds the post-write follow-up waits for the image
        """
        settings = get_settings()
        self.store = store
        self.repository = repository
        self.field_client = field_client
        self.duration_probe = duration_probe or measure_duration
        self.speech_wait = settings.PERSIST_SPEECH_WAIT_SECONDS if speech_wait is None else speech_wait
        self.image_wait = settings.PERSIST_IMAGE_WAIT_SECONDS if image_wait is None else image_wait
        self.follow_up_wait = settings.FOLLOW_UP_IMAGE_WAIT_SECONDS if follow_up_wait is None else follow_up_wait

        self._follow_ups: Dict[str, asyncio.Task] = {}
        self._image_attached: Set[str] = set()

    async def persist(self, title_override: Optional[str] = None, created_by: Optional[str] = None) -> PersistResult:
        """
        Persist the current draft.

        Raises:
            PersistError: missing_field, timeout or conflict; nothing was
                written for the first two
        """
        # 1. Snapshot
        snapshot = self.store.snapshot()
        epoch = self.store.epoch
        if title_override and title_override.strip():
            snapshot = snapshot.with_values(title=title_override.strip())

        # 2. Backfill
        snapshot, backfilled = await self._backfill(snapshot, epoch)

        missing_text = [name.value for name in SEGMENT_FIELDS if not snapshot.field_value(name).strip()]
        if missing_text:
            raise PersistError.missing(missing_text)

        # 3. Bounded waits
        if not snapshot.speech_asset_url:
            logger.info(f"Waiting up to {self.speech_wait:.0f}s for speech asset")
            if not await self._wait_live("speech_asset_url", self.speech_wait, epoch):
                raise PersistError.timeout("speech_asset_url", self.speech_wait)
            live = self.store.draft
            snapshot = snapshot.with_values(
                speech_asset_url=live.speech_asset_url,
                speech_duration_seconds=live.speech_duration_seconds,
                voice_id=live.voice_id,
                voice_name=live.voice_name
            )

        if not snapshot.image_asset_url:
            image_url = await self._wait_live("image_asset_url", self.image_wait, epoch)
            if image_url:
                snapshot = snapshot.with_values(image_asset_url=image_url)

        # 4. Duration
        if snapshot.speech_duration_seconds is None:
            duration = await self.duration_probe(snapshot.speech_asset_url)
            if duration is not None:
                snapshot = snapshot.with_values(speech_duration_seconds=duration)
                await self.store.update(epoch=epoch, speech_duration_seconds=duration)

        # 5. Single write
        record = build_record(snapshot, created_by=created_by)
        try:
            if snapshot.asset_id:
                await self.repository.update_audio(snapshot.asset_id, record)
                asset_id, created = snapshot.asset_id, False
            else:
                asset_id, created = await self.repository.insert_audio(record), True
        except UniqueConstraintError as e:
            raise PersistError.conflict(str(e)) from e

        await self.store.update(epoch=epoch, asset_id=asset_id)
        logger.info(
            f"Persisted record {asset_id}",
            extra={"inserted": created, "backfilled": backfilled, "has_image": bool(snapshot.image_asset_url)}
        )

        # 6. Follow-up for a late image
        follow_up = False
        if created:
            # Only the draft's current record can still receive an image
            self._image_attached.intersection_update({asset_id})
        if snapshot.image_asset_url:
            self._image_attached.add(asset_id)
        else:
            follow_up = self.schedule_follow_up(asset_id, epoch)

        return PersistResult(
            asset_id=asset_id,
            created=created,
            follow_up_scheduled=follow_up,
            backfilled_fields=backfilled
        )

    async def _backfill(self, snapshot: DraftSnapshot, epoch: int) -> Tuple[DraftSnapshot, List[str]]:
        if not snapshot.main_text.strip():
            return snapshot, []

        backfilled: List[str] = []
        for group in (SUMMARY_FIELDS, SEGMENT_BACKFILL):
            empty = [name for name in group if not snapshot.field_value(name).strip()]
            if not empty:
                continue

            context = snapshot.context()
            results = await asyncio.gather(*(self.field_client.generate(name, context) for name in empty))
            values = {}
            for name, result in zip(empty, results):
                if result.ok:
                    values[name.value] = result.content
                    backfilled.append(name.value)
                else:
                    logger.warning(f"Backfill of {name.value} failed: {result.error}")
            if values:
                snapshot = snapshot.with_values(**values)
                # Do not clobber values a branch wrote after the snapshot
                live_empty = {k: v for k, v in values.items() if not self.store.get(k)}
                if live_empty:
                    await self.store.update(epoch=epoch, **live_empty)

        if backfilled:
            logger.info(f"Backfilled {', '.join(backfilled)}")
        return snapshot, backfilled

    async def _wait_live(self, attr: str, timeout: float, epoch: int) -> Optional[Any]:
        """Wait for attr on the live draft, giving up if the draft was reset."""
        ready = await self.store.wait_for(
            lambda draft: self.store.epoch != epoch or bool(getattr(draft, attr)),
            timeout
        )
        if not ready or self.store.epoch != epoch:
            return None
        return self.store.get(attr)

    # ------------------------------------------------------------------
    # Follow-up image attachment
    # ------------------------------------------------------------------

    def schedule_follow_up(self, asset_id: str, epoch: Optional[int] = None) -> bool:
        """
        Start the single follow-up that attaches a late image to asset_id.

        Returns:
            False if the image is already attached or a follow-up is in flight
        """
        if asset_id in self._image_attached:
            return False
        existing = self._follow_ups.get(asset_id)
        if existing is not None and not existing.done():
            return False

        epoch = self.store.epoch if epoch is None else epoch
        task = asyncio.create_task(
            self._follow_up(asset_id, epoch),
            name=f"follow-up:{asset_id}"
        )
        self._follow_ups[asset_id] = task
        task.add_done_callback(lambda done: self._follow_up_finished(asset_id, done))
        return True

    def _follow_up_finished(self, asset_id: str, task: asyncio.Task) -> None:
        if self._follow_ups.get(asset_id) is task:
            del self._follow_ups[asset_id]

    def has_image_attached(self, asset_id: str) -> bool:
        return asset_id in self._image_attached

    @property
    def tracked_records(self) -> int:
        """Records with a follow-up in flight or an attached image."""
        return len(self._follow_ups.keys() | self._image_attached)

    async def _follow_up(self, asset_id: str, epoch: int) -> bool:
        image_url = await self._wait_live("image_asset_url", self.follow_up_wait, epoch)
        if not image_url:
            logger.info(f"No image arrived for {asset_id}; record stays without cover")
            return False

        try:
            await self.repository.update_audio(asset_id, {"cover_url": image_url})
        except Exception as e:
            logger.error(f"Follow-up image update failed for {asset_id}: {e}")
            return False

        self._image_attached.add(asset_id)
        logger.info(f"Attached late image to {asset_id}")
        return True

    async def wait_for_follow_ups(self) -> None:
        """Await every follow-up still in flight."""
        pending = [task for task in self._follow_ups.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
