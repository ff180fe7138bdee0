"""
Local playback-duration measurement for speech assets.

The speech backend does not always report a duration. measure_duration()
downloads the MP3 (or decodes a `data:` URL) and reads its length with
mutagen, racing the whole thing against a timeout. A timeout or any
failure yields None: the duration is unknown, never an error.
"""

import asyncio
import base64
import io
from typing import Optional

import httpx
from mutagen.mp3 import MP3

from config.settings import get_settings
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)


def duration_from_bytes(data: bytes) -> float:
    """Playback length in seconds of an MP3 payload."""
    return MP3(io.BytesIO(data)).info.length


def decode_data_url(url: str) -> bytes:
    """Payload of a base64 `data:` URL."""
    header, _, payload = url.partition(",")
    if ";base64" not in header:
        raise ValueError("Only base64 data URLs are supported")
    return base64.b64decode(payload)


async def _fetch(url: str, transport: Optional[httpx.AsyncBaseTransport]) -> bytes:
    if url.startswith("data:"):
        return decode_data_url(url)
    async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.content


async def _measure(url: str, transport: Optional[httpx.AsyncBaseTransport]) -> float:
    data = await _fetch(url, transport)
    # mutagen parses synchronously; keep the event loop free
    return await asyncio.to_thread(duration_from_bytes, data)


async def measure_duration(
    url: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Optional[float]:
    """
    Measure the playback duration of the asset at url.

    Args:
        url: http(s) or base64 data URL of an MP3
        timeout: Upper bound in seconds (SPEECH_DURATION_TIMEOUT by default)
        transport: Custom httpx transport

    Returns:
        Duration in seconds, or None if unavailable within the timeout
    """
    if not url:
        return None
    limit = timeout if timeout is not None else get_settings().SPEECH_DURATION_TIMEOUT

    try:
        duration = await asyncio.wait_for(_measure(url, transport), timeout=limit)
    except asyncio.TimeoutError:
        logger.warning(f"Duration measurement timed out after {limit}s")
        return None
    except Exception as e:
        logger.warning(f"Duration unavailable: {e}")
        return None

    if duration <= 0:
        return None
    return round(duration, 2)
