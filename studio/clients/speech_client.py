"""
Speech Synthesis Client for Devotional Studio

Posts a pacing-annotated script to the speech backend:

    request:  {"script": str, "voice_id": str}
    response: {"audio_url": str, "duration_seconds"?: float, "voice_id_used"?: str}

Any transport, status or payload problem is raised as SynthesisError.
"""

from typing import Any, Dict, Optional

import httpx

from config.settings import get_settings
from studio.core.errors import SynthesisError
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class SpeechClient:
    """Client for the speech synthesis backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.url = base_url or settings.SPEECH_SYNTHESIS_URL
        self.timeout = timeout or settings.SPEECH_SYNTHESIS_TIMEOUT
        self.transport = transport

    async def synthesize(self, script: str, voice_id: str) -> Dict[str, Any]:
        """
        Synthesize script with voice_id.

        Returns:
            Dict with audio_url, and optionally duration_seconds / voice_id_used

        Raises:
            SynthesisError: The backend failed or returned no audio URL
        """
        logger.info(
            "Requesting speech synthesis",
            extra={"voice_id": voice_id, "script_chars": len(script)}
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json={"script": script, "voice_id": voice_id})
        except httpx.TimeoutException as e:
            logger.error(f"Speech backend timeout after {self.timeout}s")
            raise SynthesisError(f"Speech backend timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach speech backend: {str(e)}", extra={"url": self.url})
            raise SynthesisError(f"Speech backend unreachable: {e}") from e

        if response.status_code != 200:
            body = response.text[:200]
            logger.error(f"Speech backend returned {response.status_code}", extra={"body": body})
            raise SynthesisError(f"Speech backend returned HTTP {response.status_code}: {body}")

        try:
            data = response.json()
        except ValueError as e:
            raise SynthesisError("Speech backend returned invalid JSON") from e

        if not isinstance(data, dict) or not data.get("audio_url"):
            raise SynthesisError("Speech backend response has no audio_url")

        return data
