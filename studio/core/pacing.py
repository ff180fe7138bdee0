"""
Pacing Synthesizer for Devotional Studio

Turns the three raw speech segments into one script with SSML pauses.

Two modes:
- Deterministic: a `<break>` after every comma and every sentence-ending
  period, plus configured pauses around the main text
- Automatic: the raw script is sent to the auto-pacing backend with the
  admin's instruction template. If that request fails for any reason, the
  deterministic pass runs on the original raw segments instead. Pacing
  never blocks speech synthesis.
"""

import re
from typing import Optional

from studio.models.pacing import TEXT_PLACEHOLDERS, PacingConfig, normalize_seconds
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

_COMMA = re.compile(r",(?!\s*<break\b)")
_PERIOD = re.compile(r"\.(?!\s*<break\b)")


def break_marker(seconds: str) -> str:
    return f'<break time="{normalize_seconds(seconds)}s" />'


def _period_replacement(text: str, marker: str):
    def _replace(match: re.Match) -> str:
        start = match.start()
        before = text[start - 1] if start > 0 else ""
        after = text[start + 1] if start + 1 < len(text) else ""
        # Decimal numbers and all but the last dot of an ellipsis stay as is
        if (before.isdigit() and after.isdigit()) or after == ".":
            return "."
        return f". {marker}"
    return _replace


def apply_pacing_breaks(text: str, comma_seconds: str, period_seconds: str) -> str:
    """
    Insert pause markers after commas and sentence-ending periods.

    Idempotent: a comma or period already followed by a marker is left alone.
    """
    if not text:
        return ""
    comma_marker = break_marker(comma_seconds)
    period_marker = break_marker(period_seconds)

    output = _COMMA.sub(f", {comma_marker}", text)
    output = _PERIOD.sub(_period_replacement(output, period_marker), output)
    return output


def assemble_script(preparation: str, main: str, closing: str, config: PacingConfig) -> str:
    """
    Join already-paced segments with the configured segment pauses.

    A segment pause is only emitted between two non-empty segments.
    """
    preparation = (preparation or "").strip()
    main = (main or "").strip()
    closing = (closing or "").strip()

    parts = []
    if preparation:
        parts.append(preparation)
    if main:
        if preparation:
            parts.append(break_marker(config.before_segment_pause_seconds))
        parts.append(main)
        if closing:
            parts.append(break_marker(config.after_segment_pause_seconds))
    if closing:
        parts.append(closing)
    return "\n\n".join(parts)


def deterministic_script(preparation: str, main: str, closing: str, config: PacingConfig) -> str:
    """Rule-based pacing of each segment, then segment assembly."""
    def pace(segment: str) -> str:
        return apply_pacing_breaks(
            (segment or "").strip(),
            config.comma_pause_seconds,
            config.period_pause_seconds
        )
    return assemble_script(pace(preparation), pace(main), pace(closing), config)


def raw_script(preparation: str, main: str, closing: str) -> str:
    segments = [(s or "").strip() for s in (preparation, main, closing)]
    return "\n\n".join(s for s in segments if s)


class PacingSynthesizer:
    """Builds the spoken script, delegating to auto-pacing when enabled."""

    def __init__(self, auto_pacing_client=None):
        self.auto_pacing_client = auto_pacing_client

    async def build_script(
        self,
        preparation: str,
        main: str,
        closing: str,
        config: PacingConfig
    ) -> str:
        """
        Produce the pause-annotated script for speech synthesis.

        Returns:
            Annotated script (empty only if all segments are empty)
        """
        if config.auto_pacing_enabled and self.auto_pacing_client is not None:
            annotated = await self._auto_pace(raw_script(preparation, main, closing), config)
            if annotated:
                return annotated

        return deterministic_script(preparation, main, closing, config)

    async def _auto_pace(self, text: str, config: PacingConfig) -> Optional[str]:
        if not text:
            return None
        instruction = config.auto_pacing_instruction_template
        for placeholder in TEXT_PLACEHOLDERS:
            instruction = instruction.replace(placeholder, text)
        try:
            annotated = await self.auto_pacing_client.annotate(instruction)
        except Exception as e:
            logger.warning(f"Auto-pacing failed, using deterministic pauses: {e}")
            return None
        if not annotated or not annotated.strip():
            logger.warning("Auto-pacing returned no text, using deterministic pauses")
            return None
        logger.info("Auto-pacing applied", extra={"chars": len(annotated)})
        return annotated
