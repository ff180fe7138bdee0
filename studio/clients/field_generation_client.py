"""
Field Generation Client for Devotional Studio

Sends one named-field request to the text generation backend.

Flow per call:
1. Load the field's prompt template from app_settings (built-in default
   when the admin never saved one, or when configuration storage is down)
2. Substitute `{placeholders}` from the accumulated context
3. POST {field_name, context, prompt} and read {ok, content, error}
4. Sanitize: unwrap code fences and quotes, cap length per field

generate() never raises. Every failure comes back as a failed FieldResult
carrying a human-readable cause.
"""

import re
from typing import Any, Dict, Mapping, Optional

import httpx

from config.settings import get_settings
from studio.models.draft import FieldName
from studio.models.results import FieldResult
from studio.utils.logger import setup_logger
from studio.utils.retry import call_with_retry
from studio.utils.templates import apply_placeholders, placeholder_names

logger = setup_logger(__name__)

# app_settings key holding each field's prompt template
FIELD_PROMPT_KEYS: Dict[FieldName, str] = {
    FieldName.TITLE: "gmanual_title_prompt",
    FieldName.SUBTITLE: "gmanual_subtitle_prompt",
    FieldName.DESCRIPTION: "gmanual_description_prompt",
    FieldName.PREPARATION_TEXT: "gmanual_preparation_prompt",
    FieldName.MAIN_TEXT: "gmanual_text_prompt",
    FieldName.CLOSING_TEXT: "gmanual_final_message_prompt",
    FieldName.IMAGE_PROMPT: "gmanual_image_prompt",
}

DEFAULT_FIELD_PROMPTS: Dict[FieldName, str] = {
    FieldName.MAIN_TEXT: (
        "Write a heartfelt Christian prayer of about 180 words on the theme "
        "\"{topic}\". Scriptural basis: {biblical_reference}. Speak directly to God "
        "in the first person, in a warm and reverent tone. Return only the prayer."
    ),
    FieldName.TITLE: (
        "Write a short title (max 60 characters) for this prayer. "
        "Return only the title.\n\n{main_text}"
    ),
    FieldName.SUBTITLE: (
        "Write a one-line subtitle (max 100 characters) that invites the listener "
        "to pray along with this prayer. Return only the subtitle.\n\n{main_text}"
    ),
    FieldName.DESCRIPTION: (
        "Summarize this prayer in up to 240 characters for a listing page. "
        "Return only the description.\n\n{main_text}"
    ),
    FieldName.PREPARATION_TEXT: (
        "Write two or three calm sentences that prepare the listener to pray the "
        "prayer below: invite them to breathe, be still and open their heart. "
        "Return only the text.\n\n{main_text}"
    ),
    FieldName.CLOSING_TEXT: (
        "Write a short closing blessing (max 240 characters) to be spoken after "
        "this prayer. Return only the text.\n\n{main_text}"
    ),
    FieldName.IMAGE_PROMPT: (
        "Describe, in one paragraph, a serene illustration that captures the "
        "mood of this prayer. No text or letters in the image. Return only the "
        "description.\n\n{main_text}"
    ),
}

FIELD_CHAR_LIMITS: Dict[FieldName, Optional[int]] = {
    FieldName.TITLE: 60,
    FieldName.SUBTITLE: 100,
    FieldName.DESCRIPTION: 240,
    FieldName.PREPARATION_TEXT: None,
    FieldName.MAIN_TEXT: None,
    FieldName.CLOSING_TEXT: 240,
    FieldName.IMAGE_PROMPT: None,
}

_FENCE_PATTERN = re.compile(r"^`{3,}[^\n]*\n?(.*?)\n?`{3,}$", re.DOTALL)
_QUOTE_PATTERN = re.compile(r"^[\"'“”‘’](.*)[\"'“”‘’]$", re.DOTALL)


def sanitize_field(field: FieldName, text: str) -> str:
    """Strip code fences and wrapping quotes, then cap to the field's limit."""
    output = (text or "").strip()

    fenced = _FENCE_PATTERN.match(output)
    if fenced:
        output = fenced.group(1).strip()

    quoted = _QUOTE_PATTERN.match(output)
    if quoted:
        output = quoted.group(1).strip()

    limit = FIELD_CHAR_LIMITS.get(field)
    if limit is not None and len(output) > limit:
        output = output[:limit].strip()
    return output


class FieldGenerationClient:
    """
    Client for the text generation backend.

    Usage:
        client = FieldGenerationClient(settings_store=store)
        result = await client.generate(FieldName.TITLE, {"main_text": "..."})
        if result.ok:
            print(result.content)
    """

    def __init__(
        self,
        settings_store=None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            settings_store: Source of admin-edited prompt templates (optional)
            base_url: Override TEXT_GENERATION_URL
            timeout: Override TEXT_GENERATION_TIMEOUT
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        settings = get_settings()
        self.settings_store = settings_store
        self.url = base_url or settings.TEXT_GENERATION_URL
        self.timeout = timeout or settings.TEXT_GENERATION_TIMEOUT
        self.enabled = settings.TEXT_GENERATION_ENABLED
        self.max_retries = settings.MAX_BACKEND_RETRIES
        self.retry_base_delay = settings.BACKEND_RETRY_BASE_DELAY
        self.transport = transport

    async def load_template(self, field: FieldName) -> str:
        """Admin-saved template for field, else the built-in default."""
        if self.settings_store is not None:
            try:
                saved = await self.settings_store.get(FIELD_PROMPT_KEYS[field])
                if saved and saved.strip():
                    return saved
            except Exception as e:
                logger.warning(
                    f"Could not load prompt for {field.value}, using default: {e}",
                    extra={"field": field.value}
                )
        return DEFAULT_FIELD_PROMPTS[field]

    async def generate(self, field: FieldName, context: Mapping[str, Optional[str]]) -> FieldResult:
        """
        Generate one field.

        Args:
            field: Field to generate
            context: Known variables (seed inputs + fields generated so far)

        Returns:
            FieldResult with trimmed, sanitized content or a failure cause
        """
        if not self.enabled:
            return FieldResult.failure("Text generation is disabled in settings")

        template = await self.load_template(field)

        # Dependents must never run against an empty root
        if field != FieldName.MAIN_TEXT and FieldName.MAIN_TEXT.value in placeholder_names(template):
            if not (context.get(FieldName.MAIN_TEXT.value) or "").strip():
                return FieldResult.failure("main_text is required before generating this field")

        prompt = apply_placeholders(template, context)
        payload = {
            "field_name": field.value,
            "context": {k: v for k, v in context.items() if isinstance(v, str)},
            "prompt": prompt
        }

        logger.info(f"Generating field '{field.value}'", extra={"field": field.value, "prompt_chars": len(prompt)})

        try:
            data = await call_with_retry(
                lambda: self._post(payload),
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                operation_name=f"generate {field.value}"
            )
        except httpx.TimeoutException:
            logger.error(f"Text backend timed out for {field.value}", extra={"timeout": self.timeout})
            return FieldResult.failure(f"Text backend timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            body = e.response.text[:200]
            logger.error(f"Text backend error for {field.value}: {e.response.status_code}", extra={"body": body})
            return FieldResult.failure(f"Text backend returned HTTP {e.response.status_code}: {body}")
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach text backend: {str(e)}", extra={"url": self.url})
            return FieldResult.failure(f"Text backend unreachable: {e}")
        except ValueError as e:
            return FieldResult.failure(f"Malformed response from text backend: {e}")

        if not isinstance(data, dict):
            return FieldResult.failure("Malformed response from text backend: expected an object")
        if not data.get("ok", False):
            return FieldResult.failure(data.get("error") or "Text backend reported a failure")

        content = sanitize_field(field, data.get("content") or "")
        if not content:
            return FieldResult.failure("Text backend returned empty content")

        logger.info(f"Field '{field.value}' generated", extra={"field": field.value, "chars": len(content)})
        return FieldResult.success(content)

    async def _post(self, payload: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()
            return response.json()
