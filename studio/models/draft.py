"""
Draft Models for Devotional Studio

ContentDraft is the mutable artifact a generation session builds up:
three speech segments, short derived text fields, an image description,
and the asset URLs produced by the synthesis coordinators.

DraftSnapshot is the frozen copy the persist coordinator works from.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldName(str, Enum):
    """Generated text fields. MAIN_TEXT is the root every other field depends on."""
    TITLE = "title"
    SUBTITLE = "subtitle"
    DESCRIPTION = "description"
    PREPARATION_TEXT = "preparation_text"
    MAIN_TEXT = "main_text"
    CLOSING_TEXT = "closing_text"
    IMAGE_PROMPT = "image_prompt"


# Fields launched concurrently once main_text exists
DEPENDENT_FIELDS = (
    FieldName.TITLE,
    FieldName.SUBTITLE,
    FieldName.DESCRIPTION,
    FieldName.IMAGE_PROMPT,
    FieldName.PREPARATION_TEXT,
    FieldName.CLOSING_TEXT,
)

SUMMARY_FIELDS = (FieldName.TITLE, FieldName.SUBTITLE, FieldName.DESCRIPTION)
SEGMENT_FIELDS = (FieldName.PREPARATION_TEXT, FieldName.MAIN_TEXT, FieldName.CLOSING_TEXT)


class FieldStatus(str, Enum):
    """Lifecycle of one field's generation task."""
    IDLE = "idle"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FieldTask(BaseModel):
    """One named field plus its current generation status."""
    field: FieldName
    status: FieldStatus = Field(default=FieldStatus.IDLE)
    error: Optional[str] = Field(None, description="Last failure cause, if any")


class SeedInputs(BaseModel):
    """What an admin provides to start a run."""
    topic: str = Field(..., min_length=1, description="Theme of the prayer")
    biblical_reference: Optional[str] = Field(None, description="Optional scriptural anchor")
    category_id: Optional[str] = Field(None, description="Target category for the stored record")
    voice_id: Optional[str] = Field(None, description="Requested voice; session default when absent")
    main_text: Optional[str] = Field(
        None,
        description="Override for the root field; skips root generation when provided"
    )


class ContentDraft(BaseModel):
    """Mutable artifact under construction. Only a DraftStore writes to it."""

    # Seed / meta
    topic: str = Field(default="", description="Seed topic")
    biblical_reference: str = Field(default="", description="Seed or detected scripture reference")
    category_id: Optional[str] = Field(None, description="Category of the stored record")
    created_by: Optional[str] = Field(None, description="Admin user id")
    asset_id: Optional[str] = Field(None, description="Stored record id when editing an existing artifact")

    # Text fields
    title: str = Field(default="")
    subtitle: str = Field(default="")
    description: str = Field(default="")
    preparation_text: str = Field(default="", description="Spoken before the main text")
    main_text: str = Field(default="", description="Root of the dependency graph")
    closing_text: str = Field(default="", description="Spoken after the main text")
    image_prompt: str = Field(default="", description="Description feeding the image backend")

    # Synthesis outputs
    speech_asset_url: Optional[str] = Field(None)
    speech_duration_seconds: Optional[float] = Field(None)
    image_asset_url: Optional[str] = Field(None)
    voice_id: Optional[str] = Field(None, description="Voice actually used by the speech backend")
    voice_name: Optional[str] = Field(None)

    def field_value(self, name: FieldName) -> str:
        return getattr(self, name.value)

    def context(self) -> Dict[str, str]:
        """Variables available to prompt templates."""
        values = {
            "topic": self.topic,
            "biblical_reference": self.biblical_reference,
        }
        for name in FieldName:
            values[name.value] = self.field_value(name)
        return values


class DraftSnapshot(ContentDraft):
    """Point-in-time immutable copy of a ContentDraft."""
    model_config = ConfigDict(frozen=True)

    def with_values(self, **values) -> "DraftSnapshot":
        """Return a new snapshot with values replaced (used for backfill)."""
        return self.model_copy(update=values)

    def missing_required(self) -> list:
        """Required fields still empty, in the order they should be reported."""
        missing = [name.value for name in SEGMENT_FIELDS if not self.field_value(name).strip()]
        if not self.speech_asset_url:
            missing.append("speech_asset_url")
        return missing
