"""
Devotional Studio v1.0 - AI Prayer Generator API
Main entry point for the admin content generator.

Architecture: one GeneratorSession per admin editing session
- Dependency orchestrator fills the draft (main text first, then six
  dependents concurrently, speech and image as soon as their inputs exist)
- Persist coordinator writes exactly one record per draft
- Pacing configuration and prompt templates live in app_settings

v1.0.1: Image retry attaches late covers through the persist follow-up
v1.0.2: Speech duration measured locally when the backend omits it
v1.0.3: Batch generation from NDJSON (tools/batch_generate.py)
"""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure Logfire early in startup
from studio.utils.logfire_config import configure_logfire, instrument_httpx
configure_logfire()
instrument_httpx()

from config.settings import get_settings
from studio.clients.search_client import SearchClient
from studio.core.errors import GenerationError, PersistError, PipelineBusyError
from studio.models.draft import FieldName, SeedInputs
from studio.models.pacing import PacingConfig
from studio.models.voices import VOICE_CATALOG
from studio.services.generator_session import GeneratorSession, get_pacing_settings
from studio.storage.supabase import ContentRepository, SettingsStore, get_supabase_client
from studio.utils.logger import setup_logger

# Initialize
logger = setup_logger(__name__)
settings = get_settings()

# Active generator sessions, keyed by session id
_sessions: Dict[str, GeneratorSession] = {}
_search_client: Optional[SearchClient] = None

PERSIST_ERROR_STATUS = {
    PersistError.CONFLICT: 409,
    PersistError.MISSING_FIELD: 422,
    PersistError.TIMEOUT: 504,
}


class CreateSessionRequest(BaseModel):
    created_by: Optional[str] = Field(None, description="Admin user id")


class FieldRequest(BaseModel):
    override: Optional[Dict[str, str]] = Field(None, description="Extra context, e.g. main_text for derived runs")


class SpeechRequest(BaseModel):
    voice_id: Optional[str] = None


class PersistRequest(BaseModel):
    title_override: Optional[str] = None


class VersionRequest(BaseModel):
    value: str = Field(..., min_length=1)
    label: Optional[str] = None


def get_session(session_id: str) -> GeneratorSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
    return session


def parse_field(name: str) -> FieldName:
    try:
        return FieldName(name)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid field '{name}'")


async def get_search_client() -> SearchClient:
    global _search_client
    if _search_client is None:
        _search_client = SearchClient(ContentRepository(await get_supabase_client()))
    return _search_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Devotional Studio API...")

    if not settings.API_ENABLED:
        logger.warning("API_ENABLED is set to False - generator endpoints are DISABLED")
        yield
        logger.info("Shutting down Devotional Studio API (was disabled)...")
        return

    try:
        settings.validate_settings()
    except ValueError as e:
        logger.error(f"FATAL: {str(e)}")
        raise RuntimeError("Cannot start without storage configuration. See logs for details.")

    try:
        client = await get_supabase_client()
        await get_pacing_settings(SettingsStore(client)).load()
        logger.info("Supabase connection validated, pacing settings loaded")
    except Exception as e:
        logger.error(f"FATAL: Failed to connect to Supabase: {str(e)}")
        raise RuntimeError("Cannot start without valid Supabase connection.")

    yield

    for session in _sessions.values():
        await session.persister.wait_for_follow_ups()
    logger.info("Shutting down Devotional Studio API...")


app = FastAPI(
    title="Devotional Studio API",
    version=settings.APP_VERSION,
    description="Multi-field AI prayer generation with speech and illustration",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "healthy", "sessions": len(_sessions), "api_enabled": settings.API_ENABLED}


@app.get("/version")
async def version():
    return {"version": settings.APP_VERSION, "environment": settings.APP_ENV}


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------

@app.post("/sessions")
async def create_session(request: CreateSessionRequest):
    session = await GeneratorSession.create(created_by=request.created_by)
    _sessions[session.session_id] = session
    return {"session_id": session.session_id, "default_voice_id": session.default_voice_id}


@app.get("/sessions/{session_id}")
async def read_session(session_id: str):
    session = get_session(session_id)
    return {
        "draft": session.snapshot().model_dump(),
        "fields": session.field_statuses(),
        "state": session.orchestrator.state.value,
        "speech_error": session.orchestrator.speech_error,
        "default_voice_id": session.default_voice_id
    }


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    session = _sessions.pop(session_id, None)
    if session is not None:
        await session.persister.wait_for_follow_ups()
    return {"closed": session is not None}


@app.post("/sessions/{session_id}/run")
async def run_pipeline(session_id: str, seed: SeedInputs):
    session = get_session(session_id)
    try:
        result = await session.run(seed)
    except PipelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.model_dump()


@app.post("/sessions/{session_id}/fields/{field_name}")
async def generate_field(session_id: str, field_name: str, request: FieldRequest):
    session = get_session(session_id)
    field = parse_field(field_name)
    try:
        content = await session.generate_field(field, request.override)
    except PipelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"field": field.value, "content": content, "can_undo": True}


@app.post("/sessions/{session_id}/fields/{field_name}/undo")
async def undo_field(session_id: str, field_name: str):
    session = get_session(session_id)
    field = parse_field(field_name)
    previous = await session.undo_field(field)
    if previous is None:
        raise HTTPException(status_code=409, detail=f"Nothing to undo for {field.value}")
    return {"field": field.value, "content": previous}


@app.post("/sessions/{session_id}/speech")
async def regenerate_speech(session_id: str, request: SpeechRequest):
    session = get_session(session_id)
    try:
        result = await session.regenerate_speech(request.voice_id)
    except PipelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if result is None:
        raise HTTPException(status_code=502, detail=session.orchestrator.speech_error or "Speech synthesis failed")
    return result.model_dump()


@app.post("/sessions/{session_id}/image/retry")
async def retry_image(session_id: str):
    session = get_session(session_id)
    url = await session.retry_image()
    return {"image_asset_url": url, "ok": url is not None}


@app.post("/sessions/{session_id}/persist")
async def persist(session_id: str, request: PersistRequest):
    session = get_session(session_id)
    try:
        result = await session.persist(request.title_override)
    except PersistError as e:
        raise HTTPException(
            status_code=PERSIST_ERROR_STATUS.get(e.kind, 400),
            detail={"kind": e.kind, "message": e.message, "fields": e.fields}
        )
    return result.model_dump()


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

@app.get("/pacing")
async def read_pacing():
    return get_pacing_settings().current.model_dump()


@app.put("/pacing")
async def update_pacing(config: PacingConfig):
    saved = await get_pacing_settings().save(config)
    return saved.model_dump()


@app.get("/prompts/{prompt_key}/versions")
async def list_versions(prompt_key: str, session_id: str = Query(...)):
    session = get_session(session_id)
    versions = await session.list_prompt_versions(prompt_key)
    return [v.model_dump(mode="json") for v in versions]


@app.post("/prompts/{prompt_key}/versions")
async def save_version(prompt_key: str, request: VersionRequest, session_id: str = Query(...)):
    session = get_session(session_id)
    versions = await session.save_prompt(prompt_key, request.value, request.label)
    return [v.model_dump(mode="json") for v in versions]


@app.get("/voices")
async def list_voices() -> List[dict]:
    return [voice.model_dump() for voice in VOICE_CATALOG]


@app.get("/search")
async def search(q: str = Query("", max_length=200), category_id: Optional[str] = None):
    client = await get_search_client()
    results = await client.search(q, category_id)
    return {"results": results or [], "superseded": results is None}


if __name__ == "__main__":
    log_level = "debug" if settings.DEBUG else "info"

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=log_level,
        reload=settings.DEBUG
    )
