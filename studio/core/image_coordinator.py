"""
Image Synthesis Coordinator for Devotional Studio

Compiles the admin's image template, calls the image backend and copies
the ephemeral result into the media bucket.

Failure policy: a missing illustration must never stop the rest of the
artifact from being saved. synthesize() returns None on any failure and
only logs. If the copy to durable storage fails, the ephemeral URL is
returned as a degraded result.
"""

from typing import Mapping, Optional

from config.settings import get_settings
from studio.utils.logger import setup_logger
from studio.utils.templates import apply_placeholders

logger = setup_logger(__name__)

IMAGE_TEMPLATE_KEY = "gmanual_image_template"
DEFAULT_IMAGE_TEMPLATE = "{image_description}"


def compile_image_prompt(
    description: str,
    template: Optional[str],
    context: Optional[Mapping[str, Optional[str]]] = None
) -> str:
    """Render template with context; the description is `{image_description}`."""
    values = dict(context or {})
    values["image_description"] = description
    prompt = apply_placeholders(template or DEFAULT_IMAGE_TEMPLATE, values).strip()
    return prompt or description.strip()


class ImageCoordinator:
    """Image backend + relocation to durable storage, never raising."""

    def __init__(self, image_client, asset_storage=None, min_description_length: Optional[int] = None):
        self.image_client = image_client
        self.asset_storage = asset_storage
        self.min_description_length = (
            min_description_length
            if min_description_length is not None
            else get_settings().IMAGE_MIN_DESCRIPTION_LENGTH
        )

    async def synthesize(
        self,
        description: str,
        template: Optional[str] = None,
        context: Optional[Mapping[str, Optional[str]]] = None
    ) -> Optional[str]:
        """
        Generate an illustration for description.

        Returns:
            Durable (or, degraded, ephemeral) image URL; None on any failure
        """
        description = (description or "").strip()
        if len(description) < self.min_description_length:
            logger.warning(
                f"Image description too short ({len(description)} chars), skipping image",
                extra={"min_length": self.min_description_length}
            )
            return None

        prompt = compile_image_prompt(description, template, context)

        try:
            data = await self.image_client.generate(prompt)
        except Exception as e:
            logger.error(f"Image generation failed: {e}", extra={"prompt_chars": len(prompt)})
            return None

        ephemeral_url = data.get("image_url") if isinstance(data, dict) else None
        if not ephemeral_url:
            logger.error("Image backend returned no image_url")
            return None

        if self.asset_storage is None:
            return ephemeral_url

        try:
            return await self.asset_storage.upload_image_from_url(ephemeral_url)
        except Exception as e:
            logger.warning(f"Could not copy image to storage, using temporary URL: {e}")
            return ephemeral_url
