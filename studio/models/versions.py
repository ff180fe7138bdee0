"""
Prompt version history model.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class VersionEntry(BaseModel):
    """One saved prompt revision. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    value: str = Field(..., description="Saved prompt text")
    label: Optional[str] = Field(None, description="Optional admin label")
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_storage(self) -> Dict[str, Any]:
        return {"value": self.value, "label": self.label, "date": self.saved_at.isoformat()}

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "VersionEntry":
        saved_at = data.get("date") or data.get("saved_at")
        values = {"value": data.get("value", ""), "label": data.get("label") or None}
        if saved_at:
            values["saved_at"] = saved_at
        return cls(**values)
