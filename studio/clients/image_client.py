"""
Image Synthesis Client for Devotional Studio

    request:  {"prompt": str}
    response: {"image_url": str, "model_used"?: str}

Errors propagate (httpx.HTTPError, ValueError). The image coordinator is
the boundary that turns them into a missing illustration.
"""

from typing import Any, Dict, Optional

import httpx

from config.settings import get_settings
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class ImageClient:
    """Client for the image synthesis backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.url = base_url or settings.IMAGE_SYNTHESIS_URL
        self.timeout = timeout or settings.IMAGE_SYNTHESIS_TIMEOUT
        self.transport = transport

    async def generate(self, prompt: str) -> Dict[str, Any]:
        """
        Generate one image.

        Returns:
            Dict with image_url (ephemeral) and optionally model_used

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
            ValueError: Response carries no image_url
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, json={"prompt": prompt})
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, dict) or not data.get("image_url"):
            raise ValueError("Image backend response has no image_url")

        logger.info("Image generated", extra={"model_used": data.get("model_used")})
        return data
