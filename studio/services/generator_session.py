"""
Generator Session for Devotional Studio

One admin generation session: a single draft, the orchestrator that fills
it, and the persist coordinator that stores it. The session also carries
the voice default (updated to whatever voice the speech backend really
used) and exposes field-level generate/undo, image retry and prompt
version history.

Usage:
    session = await GeneratorSession.create(created_by=user_id)
    run = await session.run(SeedInputs(topic="Gratitude for family"))
    if run.ok:
        saved = await session.persist()
"""

import uuid
from typing import Dict, List, Optional

from studio.clients.field_generation_client import FIELD_PROMPT_KEYS, FieldGenerationClient
from studio.clients.image_client import ImageClient
from studio.clients.pacing_client import AutoPacingClient
from studio.clients.speech_client import SpeechClient
from studio.core.draft_store import DraftStore
from studio.core.errors import GenerationError, PipelineBusyError
from studio.core.image_coordinator import DEFAULT_IMAGE_TEMPLATE, IMAGE_TEMPLATE_KEY, ImageCoordinator
from studio.core.orchestrator import DependencyOrchestrator
from studio.core.pacing import PacingSynthesizer
from studio.core.persist_coordinator import PersistCoordinator
from studio.core.speech_coordinator import SpeechCoordinator
from studio.core.undo_cache import VersionHistory
from studio.models.draft import ContentDraft, DraftSnapshot, FieldName, SeedInputs
from studio.models.pacing import PacingConfig
from studio.models.results import PersistResult, PipelineRunResult, SpeechResult
from studio.models.versions import VersionEntry
from studio.services.pacing_settings import PacingSettings
from studio.storage.supabase import AssetStorage, ContentRepository, SettingsStore, get_supabase_client
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

# Shared by every session in the process
_pacing_settings: Optional[PacingSettings] = None


def get_pacing_settings(settings_store=None) -> PacingSettings:
    """Get or create the process-wide pacing settings holder."""
    global _pacing_settings
    if _pacing_settings is None:
        _pacing_settings = PacingSettings(settings_store)
    return _pacing_settings


class GeneratorSession:
    """Façade over one draft's orchestrator and persist coordinator."""

    def __init__(
        self,
        field_client,
        speech: SpeechCoordinator,
        image: ImageCoordinator,
        repository,
        settings_store=None,
        pacing_settings: Optional[PacingSettings] = None,
        session_id: Optional[str] = None,
        created_by: Optional[str] = None,
        persist_coordinator: Optional[PersistCoordinator] = None
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.created_by = created_by
        self.settings_store = settings_store
        self.pacing_settings = pacing_settings or PacingSettings(settings_store)
        self.speech = speech

        self.store = DraftStore(ContentDraft(created_by=created_by))
        self.orchestrator = DependencyOrchestrator(
            self.store,
            field_client,
            speech,
            image,
            pacing_config=lambda: self.pacing_settings.current,
            image_template=self._load_image_template
        )
        self.persister = persist_coordinator or PersistCoordinator(self.store, repository, field_client)
        self.versions = VersionHistory(settings_store) if settings_store is not None else None

    @classmethod
    async def create(cls, session_id: Optional[str] = None, created_by: Optional[str] = None) -> "GeneratorSession":
        """Build a session wired to Supabase and the HTTP backends."""
        client = await get_supabase_client()
        settings_store = SettingsStore(client)
        pacing_settings = get_pacing_settings(settings_store)

        session = cls(
            field_client=FieldGenerationClient(settings_store=settings_store),
            speech=SpeechCoordinator(SpeechClient(), PacingSynthesizer(AutoPacingClient())),
            image=ImageCoordinator(ImageClient(), AssetStorage(client)),
            repository=ContentRepository(client),
            settings_store=settings_store,
            pacing_settings=pacing_settings,
            session_id=session_id,
            created_by=created_by
        )
        await session.start()
        return session

    async def start(self) -> PacingConfig:
        """Load pacing configuration once at session start."""
        config = await self.pacing_settings.load()
        logger.info(f"Session {self.session_id} started")
        return config

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pacing_config(self) -> PacingConfig:
        return self.pacing_settings.current

    async def update_pacing_config(self, config: PacingConfig) -> PacingConfig:
        return await self.pacing_settings.save(config)

    @property
    def default_voice_id(self) -> str:
        return self.speech.default_voice_id

    @default_voice_id.setter
    def default_voice_id(self, voice_id: str) -> None:
        self.speech.default_voice_id = voice_id

    def snapshot(self) -> DraftSnapshot:
        return self.store.snapshot()

    def field_statuses(self) -> Dict[str, str]:
        return {name.value: task.status.value for name, task in self.orchestrator.tasks.items()}

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def run(self, seed: SeedInputs) -> PipelineRunResult:
        return await self.orchestrator.run(seed, voice_id=seed.voice_id)

    async def generate_field(self, name: FieldName, override: Optional[Dict[str, str]] = None) -> str:
        """
        Regenerate one field and return its new content.

        Raises:
            GenerationError: The backend (or the main_text precondition) failed
            PipelineBusyError: The field is already being generated
        """
        result = await self.orchestrator.generate_field(name, override)
        if not result.ok:
            raise GenerationError(name.value, result.error or "generation failed")
        return result.content

    async def undo_field(self, name: FieldName) -> Optional[str]:
        return await self.orchestrator.undo_field(name)

    async def regenerate_speech(self, voice_id: Optional[str] = None) -> Optional[SpeechResult]:
        """User-triggered speech (re)synthesis from the current segments."""
        if self.orchestrator.is_running:
            raise PipelineBusyError("A generation run is in progress")
        result = await self.orchestrator.synthesize_speech(voice_id)
        asset_id = self.store.get("asset_id")
        if result is not None and asset_id:
            logger.info(f"Speech regenerated for stored record {asset_id}; persist again to update it")
        return result

    async def retry_image(self) -> Optional[str]:
        """
        User-triggered image retry.

        If the draft was already stored without an image, the new image is
        attached through the persist coordinator's single follow-up.
        """
        url = await self.orchestrator.synthesize_image()
        asset_id = self.store.get("asset_id")
        if url and asset_id and not self.persister.has_image_attached(asset_id):
            self.persister.schedule_follow_up(asset_id)
        return url

    async def persist(self, title_override: Optional[str] = None) -> PersistResult:
        return await self.persister.persist(title_override=title_override, created_by=self.created_by)

    async def reset_for_batch_item(self, category_id: Optional[str] = None) -> int:
        return await self.orchestrator.reset_for_batch_item(
            category_id=category_id,
            created_by=self.created_by
        )

    # ------------------------------------------------------------------
    # Prompt templates and version history
    # ------------------------------------------------------------------

    async def _load_image_template(self) -> Optional[str]:
        if self.settings_store is None:
            return DEFAULT_IMAGE_TEMPLATE
        saved = await self.settings_store.get(IMAGE_TEMPLATE_KEY)
        return saved if saved and saved.strip() else DEFAULT_IMAGE_TEMPLATE

    def _require_versions(self) -> VersionHistory:
        if self.versions is None:
            raise RuntimeError("Prompt versions need configuration storage")
        return self.versions

    @staticmethod
    def prompt_key(name: FieldName) -> str:
        return FIELD_PROMPT_KEYS[name]

    async def save_prompt(self, prompt_key: str, value: str, label: Optional[str] = None) -> List[VersionEntry]:
        """Set the active prompt and record it in the version history."""
        versions = self._require_versions()
        await self.settings_store.set(prompt_key, value)
        return await versions.save_version(prompt_key, value, label)

    async def list_prompt_versions(self, prompt_key: str) -> List[VersionEntry]:
        return await self._require_versions().list_versions(prompt_key)

    async def restore_prompt_version(self, prompt_key: str, index: int) -> str:
        return await self._require_versions().restore_version(prompt_key, index)
