"""
Speech Synthesis Coordinator for Devotional Studio

Assembles the spoken script from the three segments (through the pacing
synthesizer), calls the speech backend and resolves:

- duration: backend-reported if present, else measured locally within
  SPEECH_DURATION_TIMEOUT, else unknown (None)
- voice: the voice the backend actually used, which becomes the
  coordinator's default for the rest of the session
"""

from typing import Awaitable, Callable, Optional

from config.settings import get_settings
from studio.core.audio_duration import measure_duration
from studio.core.errors import SynthesisError
from studio.core.pacing import PacingSynthesizer
from studio.models.pacing import PacingConfig
from studio.models.results import SpeechResult
from studio.models.voices import voice_name
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

DurationProbe = Callable[[str], Awaitable[Optional[float]]]


def _reported_duration(value) -> Optional[float]:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds > 0 else None


class SpeechCoordinator:
    """
    Script assembly + speech backend + duration resolution.

    Usage:
        coordinator = SpeechCoordinator(SpeechClient(), PacingSynthesizer(AutoPacingClient()))
        result = await coordinator.synthesize_segments(prep, main, closing, pacing_config)
    """

    def __init__(
        self,
        speech_client,
        pacing: Optional[PacingSynthesizer] = None,
        default_voice_id: Optional[str] = None,
        duration_probe: Optional[DurationProbe] = None
    ):
        self.speech_client = speech_client
        self.pacing = pacing or PacingSynthesizer()
        self.default_voice_id = default_voice_id or get_settings().DEFAULT_VOICE_ID
        self.duration_probe = duration_probe or measure_duration

    async def synthesize_segments(
        self,
        preparation: str,
        main: str,
        closing: str,
        config: PacingConfig,
        voice_id: Optional[str] = None
    ) -> SpeechResult:
        """Pace the segments, then synthesize the resulting script."""
        script = await self.pacing.build_script(preparation, main, closing, config)
        return await self.synthesize(script, voice_id)

    async def synthesize(self, script: str, voice_id: Optional[str] = None) -> SpeechResult:
        """
        Synthesize an annotated script.

        Raises:
            SynthesisError: Empty script or backend failure
        """
        if not script or not script.strip():
            raise SynthesisError("Nothing to synthesize: all speech segments are empty")

        requested = voice_id or self.default_voice_id
        data = await self.speech_client.synthesize(script, requested)

        asset_url = data["audio_url"]
        used = data.get("voice_id_used") or requested
        if used != requested:
            logger.info(f"Speech backend substituted voice {requested} -> {used}")

        duration = _reported_duration(data.get("duration_seconds"))
        if duration is None:
            duration = await self.duration_probe(asset_url)

        # Later runs in this session start from the voice that was really used
        self.default_voice_id = used

        result = SpeechResult(
            asset_url=asset_url,
            duration_seconds=duration,
            voice_id_used=used,
            voice_name_used=voice_name(used) or data.get("voice_name")
        )
        logger.info(
            "Speech synthesized",
            extra={"voice_id": used, "duration_seconds": duration}
        )
        return result
