"""
Core Module for Devotional Studio

Contains the generation pipeline: draft ownership, pacing, speech and
image coordination, dependency orchestration and persistence.
"""

from .errors import (
    StudioError,
    GenerationError,
    SynthesisError,
    PipelineBusyError,
    UniqueConstraintError,
    PersistError
)
from .draft_store import DraftStore
from .pacing import (
    PacingSynthesizer,
    apply_pacing_breaks,
    assemble_script,
    deterministic_script
)
from .audio_duration import measure_duration
from .speech_coordinator import SpeechCoordinator
from .image_coordinator import ImageCoordinator, compile_image_prompt
from .undo_cache import UndoCache, VersionHistory
from .orchestrator import DependencyOrchestrator
from .persist_coordinator import PersistCoordinator, build_record
from .biblical_reference import detect_references, detect_biblical_base

__all__ = [
    # Errors
    'StudioError',
    'GenerationError',
    'SynthesisError',
    'PipelineBusyError',
    'UniqueConstraintError',
    'PersistError',

    # Draft ownership
    'DraftStore',

    # Pacing & speech
    'PacingSynthesizer',
    'apply_pacing_breaks',
    'assemble_script',
    'deterministic_script',
    'measure_duration',
    'SpeechCoordinator',

    # Image
    'ImageCoordinator',
    'compile_image_prompt',

    # Undo / versions
    'UndoCache',
    'VersionHistory',

    # Orchestration & persistence
    'DependencyOrchestrator',
    'PersistCoordinator',
    'build_record',

    # Scripture references
    'detect_references',
    'detect_biblical_base'
]
