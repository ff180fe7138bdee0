"""
Pacing configuration model.

Pause durations are kept as normalized decimal strings ("0.3") because
they are spliced verbatim into `<break time="0.3s" />` markers.
"""

import re
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_SECONDS_PATTERN = re.compile(r"^[0-9]+(?:\.[0-9]+)?$")


def normalize_seconds(value: Union[str, float, int, None]) -> str:
    """
    Normalize a pause duration to one decimal with '.' as separator.

    Accepts ',' as the decimal separator. Anything that is not a plain
    non-negative number becomes "0.0".
    """
    if value is None or isinstance(value, bool):
        return "0.0"
    text = str(value).strip().replace(",", ".")
    if not _SECONDS_PATTERN.match(text):
        return "0.0"
    return f"{float(text):.1f}"

# Placeholders for the raw script; prompts saved by earlier admin screens use {texto}
TEXT_PLACEHOLDERS = ("{text}", "{texto}")

DEFAULT_AUTO_PACING_TEMPLATE = (
    "Add natural pauses to the prayer below using SSML break tags in the form "
    "<break time=\"Xs\" />. Use short pauses after commas and longer pauses "
    "between sentences. Do not change, add or remove any words. "
    "Return only the annotated text.\n\n{text}"
)

# app_settings keys, shared with the admin generator screen
PACING_SETTING_KEYS = {
    "comma_pause_seconds": "gmanual_pause_comma",
    "period_pause_seconds": "gmanual_pause_period",
    "before_segment_pause_seconds": "gmanual_pause_before_prayer",
    "after_segment_pause_seconds": "gmanual_pause_after_prayer",
    "auto_pacing_enabled": "gmanual_pauses_auto_enabled",
    "auto_pacing_instruction_template": "gmanual_auto_pauses_prompt",
}


class PacingConfig(BaseModel):
    """
    Pause configuration for speech scripts.

    Process-wide and read-mostly. Admin edits replace the whole value.
    """
    model_config = ConfigDict(frozen=True)

    comma_pause_seconds: str = Field("0.3", description="Pause after each comma")
    period_pause_seconds: str = Field("0.8", description="Pause after each sentence")
    before_segment_pause_seconds: str = Field("1.0", description="Pause between preparation and main text")
    after_segment_pause_seconds: str = Field("1.0", description="Pause between main text and closing")
    auto_pacing_enabled: bool = Field(False, description="Delegate pause placement to the auto-pacing backend")
    auto_pacing_instruction_template: str = Field(
        DEFAULT_AUTO_PACING_TEMPLATE,
        description="Instruction sent to the auto-pacing backend; {text} (or the older {texto}) is replaced with the raw script"
    )

    @field_validator(
        "comma_pause_seconds",
        "period_pause_seconds",
        "before_segment_pause_seconds",
        "after_segment_pause_seconds",
        mode="before"
    )
    @classmethod
    def _normalize(cls, value):
        return normalize_seconds(value)

    @classmethod
    def from_settings_rows(cls, rows: Dict[str, Optional[str]]) -> "PacingConfig":
        """Build from app_settings key/value rows, ignoring absent keys."""
        values = {}
        for attr, key in PACING_SETTING_KEYS.items():
            raw = rows.get(key)
            if raw is None or raw == "":
                continue
            if attr == "auto_pacing_enabled":
                values[attr] = str(raw).strip().lower() in ("1", "true", "yes", "on")
            else:
                values[attr] = raw
        return cls(**values)

    def to_settings_rows(self) -> Dict[str, str]:
        """Flatten to app_settings key/value rows."""
        rows = {}
        for attr, key in PACING_SETTING_KEYS.items():
            value = getattr(self, attr)
            rows[key] = ("true" if value else "false") if isinstance(value, bool) else value
        return rows
