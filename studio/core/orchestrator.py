"""
Dependency Orchestrator for Devotional Studio

Owns the field dependency graph of one draft:

    main_text ──> title, subtitle, description,
                  image_prompt, preparation_text, closing_text

Run states:
    NOT_STARTED -> GENERATING_ROOT -> GENERATING_DEPENDENTS -> SETTLING -> DONE | FAILED

- GENERATING_ROOT: main_text alone (skipped when the seed overrides it).
  An empty root fails the run immediately.
- GENERATING_DEPENDENTS: the six dependents run concurrently. Speech starts
  as soon as preparation_text and closing_text have both resolved; the
  image starts as soon as image_prompt resolves. Neither waits for the
  other text branches.
- SETTLING: waiting for speech and image to finish.

A run succeeds when main_text, preparation_text and closing_text are all
non-empty and speech synthesis succeeded. The image is best-effort.

Only one run per draft may be in flight, and only one generation per
field; a second attempt raises PipelineBusyError.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Mapping, Optional

from studio.core.biblical_reference import detect_biblical_base
from studio.core.draft_store import DraftStore
from studio.core.errors import PipelineBusyError, SynthesisError
from studio.core.image_coordinator import DEFAULT_IMAGE_TEMPLATE, ImageCoordinator
from studio.core.speech_coordinator import SpeechCoordinator
from studio.core.undo_cache import UndoCache
from studio.models.draft import (
    DEPENDENT_FIELDS,
    FieldName,
    FieldStatus,
    FieldTask,
    SEGMENT_FIELDS,
    SeedInputs,
)
from studio.models.pacing import PacingConfig
from studio.models.results import FieldResult, PipelineRunResult, RunState, SpeechResult
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

TemplateLoader = Callable[[], Awaitable[Optional[str]]]


async def _default_image_template() -> Optional[str]:
    return DEFAULT_IMAGE_TEMPLATE


class DependencyOrchestrator:
    """Schedules field generation for one draft and triggers speech and image."""

    def __init__(
        self,
        store: DraftStore,
        field_client,
        speech: SpeechCoordinator,
        image: ImageCoordinator,
        pacing_config: Callable[[], PacingConfig],
        image_template: Optional[TemplateLoader] = None
    ):
        """
        Args:
            store: Owner of the draft this orchestrator writes to
            field_client: Object with `async generate(field, context) -> FieldResult`
            speech: Speech synthesis coordinator
            image: Image synthesis coordinator
            pacing_config: Returns the current pacing configuration
            image_template: Loads the admin's image prompt template
        """
        self.store = store
        self.field_client = field_client
        self.speech = speech
        self.image = image
        self.pacing_config = pacing_config
        self.image_template = image_template or _default_image_template

        self.state = RunState.NOT_STARTED
        self.tasks: Dict[FieldName, FieldTask] = {name: FieldTask(field=name) for name in FieldName}
        self.undo = UndoCache()
        self.speech_error: Optional[str] = None
        self._running = False
        self._speech_task: Optional[asyncio.Task] = None
        self._image_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Full pipeline run
    # ------------------------------------------------------------------

    async def run(self, seed: SeedInputs, voice_id: Optional[str] = None) -> PipelineRunResult:
        """
        Generate every field, the speech track and the image for seed.

        Raises:
            PipelineBusyError: A run is already in flight for this draft
        """
        if self._running:
            raise PipelineBusyError("A generation run is already in progress for this draft")
        self._running = True

        try:
            return await self._run(seed, voice_id)
        finally:
            self._running = False

    async def _run(self, seed: SeedInputs, voice_id: Optional[str]) -> PipelineRunResult:
        epoch = self.store.epoch
        self.speech_error = None
        await self.store.update(
            epoch=epoch,
            topic=seed.topic,
            biblical_reference=seed.biblical_reference or "",
            category_id=seed.category_id or self.store.get("category_id")
        )

        # Root
        self.state = RunState.GENERATING_ROOT
        logger.info(f"Run started for topic '{seed.topic}'", extra={"epoch": epoch})

        if seed.main_text and seed.main_text.strip():
            await self._apply(FieldName.MAIN_TEXT, seed.main_text.strip(), epoch)
            self.tasks[FieldName.MAIN_TEXT].status = FieldStatus.SUCCEEDED
        else:
            root = await self._generate(FieldName.MAIN_TEXT, self.store.draft.context(), epoch)
            if not root.ok:
                return self._fail(f"main_text failed: {root.error}", [FieldName.MAIN_TEXT.value])

        main_text = self.store.field_value(FieldName.MAIN_TEXT)
        if not main_text.strip():
            return self._fail("main_text is empty", [FieldName.MAIN_TEXT.value])

        if not self.store.get("biblical_reference"):
            detected = detect_biblical_base(main_text)
            if detected:
                await self.store.update(epoch=epoch, biblical_reference=detected)

        # Dependents
        self.state = RunState.GENERATING_DEPENDENTS
        context = self.store.draft.context()
        branches = {
            name: asyncio.create_task(self._generate(name, context, epoch), name=f"field:{name.value}")
            for name in DEPENDENT_FIELDS
        }
        self._speech_task = asyncio.create_task(
            self._speech_when_ready(
                branches[FieldName.PREPARATION_TEXT],
                branches[FieldName.CLOSING_TEXT],
                epoch,
                voice_id
            ),
            name="speech"
        )
        self._image_task = asyncio.create_task(
            self._image_when_ready(branches[FieldName.IMAGE_PROMPT], epoch),
            name="image"
        )

        outcomes = await asyncio.gather(*branches.values(), return_exceptions=True)
        failed = [
            name.value for name, outcome in zip(branches, outcomes)
            if not isinstance(outcome, FieldResult) or not outcome.ok
        ]

        # Settling
        self.state = RunState.SETTLING
        speech_result, image_url = await asyncio.gather(self._speech_task, self._image_task, return_exceptions=True)
        if isinstance(speech_result, Exception):
            self.speech_error = f"Speech synthesis failed: {speech_result}"
            logger.error(self.speech_error)
            speech_result = None
        if isinstance(image_url, Exception):
            logger.error(f"Image synthesis failed: {image_url}")
            image_url = None

        segments_ok = all(self.store.field_value(name).strip() for name in SEGMENT_FIELDS)
        ok = segments_ok and speech_result is not None
        self.state = RunState.DONE if ok else RunState.FAILED

        result = PipelineRunResult(
            state=self.state,
            ok=ok,
            failed_fields=failed,
            speech_error=self.speech_error,
            image_asset_url=image_url,
            error=None if ok else (self.speech_error or "Required fields are missing")
        )
        logger.info(
            f"Run finished: {self.state.value}",
            extra={"failed_fields": failed, "has_image": bool(image_url), "epoch": epoch}
        )
        return result

    def _fail(self, reason: str, failed_fields) -> PipelineRunResult:
        self.state = RunState.FAILED
        logger.error(f"Run failed: {reason}")
        return PipelineRunResult(state=self.state, ok=False, failed_fields=list(failed_fields), error=reason)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _generate(self, name: FieldName, context: Mapping[str, str], epoch: int) -> FieldResult:
        task = self.tasks[name]
        if task.status == FieldStatus.GENERATING:
            raise PipelineBusyError(f"{name.value} is already being generated")

        task.status = FieldStatus.GENERATING
        task.error = None
        try:
            result = await self.field_client.generate(name, context)
        except Exception as e:
            result = FieldResult.failure(str(e))

        if result.ok:
            await self._apply(name, result.content, epoch)
            task.status = FieldStatus.SUCCEEDED
        else:
            task.status = FieldStatus.FAILED
            task.error = result.error
            logger.warning(f"Field {name.value} failed: {result.error}")
        return result

    async def _apply(self, name: FieldName, value: str, epoch: int) -> None:
        previous = self.store.field_value(name)
        if await self.store.update(epoch=epoch, **{name.value: value}):
            self.undo.record(name, previous)

    @staticmethod
    async def _resolved(branch: asyncio.Task) -> FieldResult:
        try:
            return await branch
        except PipelineBusyError as e:
            return FieldResult.failure(str(e))

    async def _speech_when_ready(
        self,
        preparation: asyncio.Task,
        closing: asyncio.Task,
        epoch: int,
        voice_id: Optional[str]
    ) -> Optional[SpeechResult]:
        prep_result, closing_result = await asyncio.gather(self._resolved(preparation), self._resolved(closing))
        if not (prep_result.ok and closing_result.ok):
            self.speech_error = "Speech skipped: preparation_text or closing_text failed"
            logger.warning(self.speech_error)
            return None
        return await self.synthesize_speech(voice_id, epoch)

    async def _image_when_ready(self, image_prompt: asyncio.Task, epoch: int) -> Optional[str]:
        prompt_result = await self._resolved(image_prompt)
        if not prompt_result.ok:
            return None
        return await self.synthesize_image(epoch)

    # ------------------------------------------------------------------
    # Synthesis (also used directly for user-triggered retries)
    # ------------------------------------------------------------------

    async def synthesize_speech(self, voice_id: Optional[str] = None, epoch: Optional[int] = None) -> Optional[SpeechResult]:
        """Synthesize speech from the current segments; records the error on failure."""
        epoch = self.store.epoch if epoch is None else epoch
        draft = self.store.draft
        try:
            result = await self.speech.synthesize_segments(
                draft.preparation_text,
                draft.main_text,
                draft.closing_text,
                self.pacing_config(),
                voice_id
            )
        except SynthesisError as e:
            self.speech_error = str(e)
            logger.error(f"Speech synthesis failed: {e}")
            return None
        except Exception as e:
            self.speech_error = f"Speech synthesis failed: {e}"
            logger.error(self.speech_error)
            return None

        self.speech_error = None
        await self.store.update(
            epoch=epoch,
            speech_asset_url=result.asset_url,
            speech_duration_seconds=result.duration_seconds,
            voice_id=result.voice_id_used,
            voice_name=result.voice_name_used
        )
        return result

    async def synthesize_image(self, epoch: Optional[int] = None) -> Optional[str]:
        """Synthesize the illustration from the current image_prompt. Never raises."""
        epoch = self.store.epoch if epoch is None else epoch
        draft = self.store.draft
        try:
            template = await self.image_template()
        except Exception as e:
            logger.warning(f"Could not load image template, using default: {e}")
            template = DEFAULT_IMAGE_TEMPLATE

        url = await self.image.synthesize(draft.image_prompt, template, draft.context())
        if url:
            await self.store.update(epoch=epoch, image_asset_url=url)
        return url

    # ------------------------------------------------------------------
    # Single-field generation, undo, reset
    # ------------------------------------------------------------------

    async def generate_field(self, name: FieldName, override: Optional[Mapping[str, str]] = None) -> FieldResult:
        """
        Generate one field from the current draft (plus override values).

        Raises:
            PipelineBusyError: This field is already being generated
        """
        context = self.store.draft.context()
        if override:
            context.update({k: v for k, v in override.items() if v is not None})

        if name != FieldName.MAIN_TEXT and not (context.get(FieldName.MAIN_TEXT.value) or "").strip():
            return FieldResult.failure("main_text is required before generating this field")

        return await self._generate(name, context, self.store.epoch)

    async def undo_field(self, name: FieldName) -> Optional[str]:
        """Restore the value replaced by the last generation of name (once)."""
        previous = self.undo.pop(name)
        if previous is None:
            return None
        await self.store.update(**{name.value: previous})
        logger.info(f"Undid last generation of {name.value}")
        return previous

    async def reset_for_batch_item(self, **seed) -> int:
        """
        Clear all branch state before a run for a different seed.

        Raises:
            PipelineBusyError: A run is still in flight
        """
        if self._running:
            raise PipelineBusyError("Cannot reset while a run is in progress")

        for task in (self._speech_task, self._image_task):
            if task is not None and not task.done():
                task.cancel()
        self._speech_task = None
        self._image_task = None

        self.tasks = {name: FieldTask(field=name) for name in FieldName}
        self.undo.clear()
        self.speech_error = None
        self.state = RunState.NOT_STARTED
        return await self.store.reset(**seed)
