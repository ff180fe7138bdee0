"""
Process-wide pacing configuration.

Loaded from app_settings when a session starts; admin edits replace the
whole PacingConfig (last writer wins) and are written back immediately.
"""

from typing import Optional

from studio.models.pacing import PACING_SETTING_KEYS, PacingConfig
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class PacingSettings:
    """Holder of the current PacingConfig, backed by a settings store."""

    def __init__(self, settings_store=None, initial: Optional[PacingConfig] = None):
        self.settings_store = settings_store
        self._current = initial or PacingConfig()

    @property
    def current(self) -> PacingConfig:
        return self._current

    async def load(self) -> PacingConfig:
        """Refresh from configuration storage; keep the current value on failure."""
        if self.settings_store is None:
            return self._current
        try:
            rows = await self.settings_store.get_many(PACING_SETTING_KEYS.values())
        except Exception as e:
            logger.warning(f"Could not load pacing settings, keeping current values: {e}")
            return self._current

        self._current = PacingConfig.from_settings_rows(rows)
        logger.info(
            "Pacing settings loaded",
            extra={"auto_pacing": self._current.auto_pacing_enabled}
        )
        return self._current

    async def save(self, config: PacingConfig) -> PacingConfig:
        """Replace the configuration and persist it."""
        self._current = config
        if self.settings_store is not None:
            await self.settings_store.set_many(config.to_settings_rows())
        logger.info("Pacing settings saved")
        return config
