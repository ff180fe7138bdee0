"""
Result Models for Devotional Studio

Typed return values passed between the clients, the coordinators and
the HTTP layer.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class FieldResult(BaseModel):
    """Text backend contract: ok with content, or a failure cause."""
    ok: bool
    content: str = Field(default="")
    error: Optional[str] = Field(None, description="Human-readable failure cause")

    @classmethod
    def success(cls, content: str) -> "FieldResult":
        return cls(ok=True, content=content)

    @classmethod
    def failure(cls, error: str) -> "FieldResult":
        return cls(ok=False, error=error)


class SpeechResult(BaseModel):
    """Outcome of one speech synthesis."""
    asset_url: str
    duration_seconds: Optional[float] = Field(None, description="None when unknown")
    voice_id_used: str
    voice_name_used: Optional[str] = None


class RunState(str, Enum):
    """Pipeline run state machine."""
    NOT_STARTED = "not_started"
    GENERATING_ROOT = "generating_root"
    GENERATING_DEPENDENTS = "generating_dependents"
    SETTLING = "settling"
    DONE = "done"
    FAILED = "failed"


class PipelineRunResult(BaseModel):
    """Summary of one orchestrator run."""
    state: RunState
    ok: bool
    failed_fields: List[str] = Field(default_factory=list)
    speech_error: Optional[str] = None
    image_asset_url: Optional[str] = None
    error: Optional[str] = Field(None, description="Reason the run failed, if it did")


class PersistResult(BaseModel):
    """Outcome of one persist attempt."""
    asset_id: str
    created: bool = Field(..., description="True for insert, False for update")
    follow_up_scheduled: bool = Field(
        default=False,
        description="A follow-up update will attach a late image"
    )
    backfilled_fields: List[str] = Field(default_factory=list)


class BatchItemResult(BaseModel):
    """Outcome of one seed in a batch."""
    topic: str
    ok: bool
    asset_id: Optional[str] = None
    error: Optional[str] = None
    playlists: List[str] = Field(default_factory=list)
