"""
Auto-Pacing Client for Devotional Studio

Delegates pause placement to a language model:

    request:  {"instruction": str}   ({text} already substituted)
    response: {"text": str}          (SSML-annotated script)
"""

from typing import Optional

import httpx

from config.settings import get_settings
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

SYSTEM_MESSAGE = (
    "You insert SSML pause markup of the form <break time=\"Xs\" /> into text "
    "meant to be read aloud. Never alter the words."
)


class AutoPacingClient:
    """Client for the auto-pacing backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.url = base_url or settings.AUTO_PACING_URL
        self.timeout = timeout or settings.AUTO_PACING_TIMEOUT
        self.transport = transport

    async def annotate(self, instruction: str) -> str:
        """
        Return the annotated text for instruction.

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
            ValueError: Empty or malformed response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.url,
                json={"instruction": instruction, "system": SYSTEM_MESSAGE}
            )
            response.raise_for_status()
            data = response.json()

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Auto-pacing backend returned no text")
        return text.strip()
