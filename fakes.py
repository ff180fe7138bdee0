"""
In-memory test doubles shared by the test_*.py scripts.

They mirror the call shapes of the real clients and Supabase adapters so
the coordinators can be exercised without any backend.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from studio.core.draft_store import DraftStore
from studio.core.errors import SynthesisError, UniqueConstraintError
from studio.core.image_coordinator import ImageCoordinator
from studio.core.orchestrator import DependencyOrchestrator
from studio.core.pacing import PacingSynthesizer
from studio.core.persist_coordinator import PersistCoordinator
from studio.core.speech_coordinator import SpeechCoordinator
from studio.models.draft import ContentDraft, FieldName
from studio.models.pacing import PacingConfig
from studio.models.results import FieldResult
from studio.services.generator_session import GeneratorSession
from studio.services.pacing_settings import PacingSettings

MAIN_TEXT = (
    "Lord, thank you for the gift of my family and for every meal we share. "
    "Teach us to forgive quickly and to love without counting the cost. "
    "Keep our home a place of peace where your name is honored. Amen."
)

DEFAULT_RESPONSES: Dict[FieldName, str] = {
    FieldName.MAIN_TEXT: MAIN_TEXT,
    FieldName.TITLE: "A Prayer of Gratitude",
    FieldName.SUBTITLE: "Give thanks for the people you love",
    FieldName.DESCRIPTION: "A short prayer thanking God for family.",
    FieldName.PREPARATION_TEXT: "Breathe deeply, and be still before God.",
    FieldName.CLOSING_TEXT: "Go in peace, and carry this gratitude with you.",
    FieldName.IMAGE_PROMPT: "A family sharing bread around a wooden table at sunset",
}

SPEECH_URL = "https://cdn.example.com/speech/prayer.mp3"
IMAGE_URL = "https://cdn.example.com/images/prayer.png"


class FakeFieldClient:
    """
    Text backend double.

    responses: per-field str, None (failure) or callable(context) -> str | None
    gates: per-field asyncio.Event the call waits on before answering
    """

    def __init__(self, responses: Optional[Dict[FieldName, Any]] = None, gates=None, delay: float = 0.0):
        self.responses = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.gates = dict(gates or {})
        self.delay = delay
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, field: FieldName, context) -> FieldResult:
        self.calls.append((field, dict(context)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(field)
            if gate is not None:
                await gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        response = self.responses.get(field)
        if callable(response):
            response = response(context)
        if not response:
            return FieldResult.failure(f"{field.value} failed")
        return FieldResult.success(response)

    def fields_called(self) -> List[FieldName]:
        return [field for field, _ in self.calls]


class FakeSpeechClient:
    """Speech backend double; `on_call` runs before answering."""

    def __init__(
        self,
        audio_url: str = SPEECH_URL,
        duration: Optional[float] = None,
        voice_id_used: Optional[str] = None,
        error: Optional[str] = None,
        on_call: Optional[Callable[[], None]] = None
    ):
        self.audio_url = audio_url
        self.duration = duration
        self.voice_id_used = voice_id_used
        self.error = error
        self.on_call = on_call
        self.calls: List[tuple] = []

    async def synthesize(self, script: str, voice_id: str) -> Dict[str, Any]:
        self.calls.append((script, voice_id))
        if self.on_call:
            self.on_call()
        await asyncio.sleep(0)
        if self.error:
            raise SynthesisError(self.error)
        data: Dict[str, Any] = {"audio_url": self.audio_url}
        if self.duration is not None:
            data["duration_seconds"] = self.duration
        if self.voice_id_used:
            data["voice_id_used"] = self.voice_id_used
        return data


class FakeImageClient:
    """Image backend double."""

    def __init__(self, image_url: str = IMAGE_URL, error: Optional[Exception] = None):
        self.image_url = image_url
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> Dict[str, Any]:
        self.prompts.append(prompt)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return {"image_url": self.image_url}


class FakeAutoPacingClient:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.instructions: List[str] = []

    async def annotate(self, instruction: str) -> str:
        self.instructions.append(instruction)
        if self.error is not None:
            raise self.error
        return self.text


class FakeRepository:
    """audios / playlists tables in memory."""

    def __init__(self, unique_titles: bool = False, broken_titles: Optional[List[str]] = None):
        self.unique_titles = unique_titles
        self.broken_titles = set(broken_titles or [])
        self.records: Dict[str, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self.playlists: Dict[str, str] = {}
        self.playlist_links: List[tuple] = []
        self.search_gates: Dict[str, asyncio.Event] = {}

    @property
    def write_count(self) -> int:
        return len(self.records) + len(self.updates)

    async def insert_audio(self, record: Dict[str, Any]) -> str:
        await asyncio.sleep(0)
        if record["title"] in self.broken_titles:
            raise RuntimeError("Insert returned no rows")
        if self.unique_titles and any(r["title"] == record["title"] for r in self.records.values()):
            raise UniqueConstraintError(
                'duplicate key value violates unique constraint "audios_title_key"',
                constraint="audios_title_key"
            )
        audio_id = f"audio-{len(self.records) + 1}"
        self.records[audio_id] = dict(record)
        return audio_id

    async def update_audio(self, audio_id: str, updates: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self.updates.append((audio_id, dict(updates)))
        if audio_id in self.records:
            self.records[audio_id].update(updates)

    async def search_audios(self, term: str, category_id: Optional[str] = None, limit: int = 20):
        gate = self.search_gates.get(term)
        if gate is not None:
            await gate.wait()
        matches = [
            dict(record, id=audio_id) for audio_id, record in self.records.items()
            if term.lower() in (record.get("title") or "").lower()
        ]
        return matches[:limit]

    async def ensure_playlist(self, title: str, category_id: Optional[str] = None) -> str:
        key = title.lower()
        if key not in self.playlists:
            self.playlists[key] = f"playlist-{len(self.playlists) + 1}"
        return self.playlists[key]

    async def add_to_playlist(self, playlist_id: str, audio_id: str) -> None:
        if (playlist_id, audio_id) not in self.playlist_links:
            self.playlist_links.append((playlist_id, audio_id))


class FakeSettingsStore:
    """app_settings key/value table in memory."""

    def __init__(self, values: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.values: Dict[str, str] = dict(values or {})
        self.error = error

    async def get(self, key: str) -> Optional[str]:
        if self.error is not None:
            raise self.error
        return self.values.get(key)

    async def get_many(self, keys) -> Dict[str, Optional[str]]:
        if self.error is not None:
            raise self.error
        return {key: self.values[key] for key in keys if key in self.values}

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value

    async def set_many(self, values: Dict[str, str]) -> None:
        self.values.update(values)


def fixed_duration(seconds: Optional[float]):
    """Duration probe that always answers seconds."""
    async def probe(url: str) -> Optional[float]:
        return seconds
    return probe


def make_speech(client=None, probe_seconds: Optional[float] = 61.6, pacing: Optional[PacingSynthesizer] = None):
    return SpeechCoordinator(
        client or FakeSpeechClient(),
        pacing or PacingSynthesizer(),
        default_voice_id="7i7dgyCkKt4c16dLtwT3",
        duration_probe=fixed_duration(probe_seconds)
    )


def make_image(client=None, asset_storage=None):
    return ImageCoordinator(client or FakeImageClient(), asset_storage, min_description_length=20)


def make_orchestrator(field_client=None, speech_client=None, image_client=None, draft: Optional[ContentDraft] = None):
    """DraftStore + orchestrator wired to fakes. Call inside a running loop."""
    store = DraftStore(draft)
    orchestrator = DependencyOrchestrator(
        store,
        field_client or FakeFieldClient(),
        make_speech(speech_client),
        make_image(image_client),
        pacing_config=lambda: PacingConfig()
    )
    return store, orchestrator


def make_persister(store, repository, field_client=None, speech_wait=0.1, image_wait=0.05, follow_up_wait=2.0, probe_seconds=61.6):
    return PersistCoordinator(
        store,
        repository,
        field_client or FakeFieldClient(),
        duration_probe=fixed_duration(probe_seconds),
        speech_wait=speech_wait,
        image_wait=image_wait,
        follow_up_wait=follow_up_wait
    )


def make_session(field_client=None, speech_client=None, image_client=None, repository=None, settings_store=None):
    """GeneratorSession over fakes with short persist waits. Call inside a running loop."""
    field_client = field_client or FakeFieldClient()
    repository = repository or FakeRepository()
    session = GeneratorSession(
        field_client=field_client,
        speech=make_speech(speech_client),
        image=make_image(image_client),
        repository=repository,
        settings_store=settings_store,
        pacing_settings=PacingSettings(settings_store),
        created_by="admin-1"
    )
    session.persister = make_persister(session.store, repository, field_client)
    return session
