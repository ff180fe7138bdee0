"""
Clients Package for Devotional Studio

Contains HTTP clients for the generation backends and the search client.
"""

from .field_generation_client import FieldGenerationClient, sanitize_field, FIELD_PROMPT_KEYS
from .speech_client import SpeechClient
from .image_client import ImageClient
from .pacing_client import AutoPacingClient
from .search_client import SearchClient

__all__ = [
    'FieldGenerationClient',
    'sanitize_field',
    'FIELD_PROMPT_KEYS',
    'SpeechClient',
    'ImageClient',
    'AutoPacingClient',
    'SearchClient'
]
