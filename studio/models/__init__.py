"""
Models Package for Devotional Studio

Contains the Pydantic models for drafts, pacing, prompt versions, voices
and pipeline results.
"""

from .draft import (
    FieldName,
    FieldStatus,
    FieldTask,
    SeedInputs,
    ContentDraft,
    DraftSnapshot,
    DEPENDENT_FIELDS,
    SUMMARY_FIELDS,
    SEGMENT_FIELDS
)

from .pacing import PacingConfig, normalize_seconds, DEFAULT_AUTO_PACING_TEMPLATE

from .versions import VersionEntry

from .results import (
    FieldResult,
    SpeechResult,
    RunState,
    PipelineRunResult,
    PersistResult,
    BatchItemResult
)

from .voices import Voice, VOICE_CATALOG, DEFAULT_VOICE_ID, get_voice, voice_name

__all__ = [
    # Draft models
    'FieldName',
    'FieldStatus',
    'FieldTask',
    'SeedInputs',
    'ContentDraft',
    'DraftSnapshot',
    'DEPENDENT_FIELDS',
    'SUMMARY_FIELDS',
    'SEGMENT_FIELDS',

    # Pacing
    'PacingConfig',
    'normalize_seconds',
    'DEFAULT_AUTO_PACING_TEMPLATE',

    # Version history
    'VersionEntry',

    # Results
    'FieldResult',
    'SpeechResult',
    'RunState',
    'PipelineRunResult',
    'PersistResult',
    'BatchItemResult',

    # Voices
    'Voice',
    'VOICE_CATALOG',
    'DEFAULT_VOICE_ID',
    'get_voice',
    'voice_name'
]
