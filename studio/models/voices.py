"""
Known speech voices.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_VOICE_ID = "7i7dgyCkKt4c16dLtwT3"


class Voice(BaseModel):
    """One voice offered by the speech backend."""
    voice_id: str
    name: str
    description: str = Field(default="")


VOICE_CATALOG: List[Voice] = [
    Voice(voice_id="7i7dgyCkKt4c16dLtwT3", name="David - Epic Trailer", description="Deep, cinematic narration"),
    Voice(voice_id="pNInz6obpgDQGcFmaJgB", name="Pastor Gabriel", description="Warm pastoral tone"),
    Voice(voice_id="YNOujSUmHtgN6anjqXPf", name="Victor Power", description="Strong, energetic"),
    Voice(voice_id="h96v1HCJtcisNNeagp0R", name="Will", description="Calm and friendly"),
    Voice(voice_id="wBXNqKUATyqu0RtYt25i", name="Adam", description="Neutral narrator"),
    Voice(voice_id="VR6AewLTigWG4xSOukaG", name="Padre Miguel", description="Gentle, reflective"),
]

_BY_ID: Dict[str, Voice] = {voice.voice_id: voice for voice in VOICE_CATALOG}


def get_voice(voice_id: Optional[str]) -> Optional[Voice]:
    if not voice_id:
        return None
    return _BY_ID.get(voice_id)


def voice_name(voice_id: Optional[str]) -> Optional[str]:
    voice = get_voice(voice_id)
    return voice.name if voice else None
