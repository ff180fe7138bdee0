"""
Supabase client and storage adapters for Devotional Studio.

- ContentRepository: the `audios` table plus playlist links
- AssetStorage: relocates ephemeral generated assets into the media bucket
- SettingsStore: the `app_settings` key/value table (prompts, pacing, history)
"""
import secrets
import time
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import httpx
from supabase import acreate_client, AsyncClient

from config.settings import get_settings
from studio.core.errors import UniqueConstraintError
from studio.utils.logger import setup_logger

logger = setup_logger(__name__)

# Global client instance
_supabase_client: Optional[AsyncClient] = None

UNIQUE_VIOLATION_CODE = "23505"


async def get_supabase_client() -> AsyncClient:
    """
    Get or create the Supabase client instance.

    Returns:
        Supabase client

    Raises:
        RuntimeError: If Supabase is not configured or connection fails
    """
    global _supabase_client

    if _supabase_client is None:
        settings = get_settings()
        key = settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_ANON_KEY

        if not settings.SUPABASE_URL or not key:
            raise RuntimeError(
                "Supabase configuration missing. "
                "Please set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables."
            )

        try:
            _supabase_client = await acreate_client(settings.SUPABASE_URL, key)
            logger.info("Supabase async client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            raise RuntimeError(f"Cannot connect to Supabase: {str(e)}")

    return _supabase_client


def is_unique_violation(error: Exception) -> bool:
    """True when a PostgREST error reports a unique-key violation."""
    code = getattr(error, "code", None)
    if code is not None:
        return str(code) == UNIQUE_VIOLATION_CODE
    return UNIQUE_VIOLATION_CODE in str(error) or "duplicate key" in str(error).lower()


class ContentRepository:
    """Relational storage for generated prayers and their playlist links."""

    def __init__(self, client: AsyncClient):
        settings = get_settings()
        self.client = client
        self.audios_table = settings.AUDIOS_TABLE
        self.playlists_table = settings.PLAYLISTS_TABLE
        self.playlist_audios_table = settings.PLAYLIST_AUDIOS_TABLE

    async def insert_audio(self, record: Dict[str, Any]) -> str:
        """
        Insert one record and return its id.

        Raises:
            UniqueConstraintError: A record with the same unique key exists
        """
        try:
            result = await self.client.table(self.audios_table).insert(record).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.warning(f"Duplicate record rejected: {record.get('title')!r}")
                raise UniqueConstraintError(str(e), constraint=getattr(e, "details", None))
            logger.error(f"Error inserting record: {str(e)}")
            raise

        if not result.data:
            raise RuntimeError("Insert returned no rows")
        audio_id = str(result.data[0]["id"])
        logger.info(f"Created record {audio_id}")
        return audio_id

    async def update_audio(self, audio_id: str, updates: Dict[str, Any]) -> None:
        """
        Update one record.

        Raises:
            UniqueConstraintError: The update collides with another record
        """
        try:
            await self.client.table(self.audios_table).update(updates).eq("id", audio_id).execute()
            logger.info(f"Updated record {audio_id}", extra={"columns": sorted(updates)})
        except Exception as e:
            if is_unique_violation(e):
                raise UniqueConstraintError(str(e), constraint=getattr(e, "details", None))
            logger.error(f"Error updating record {audio_id}: {str(e)}")
            raise

    async def search_audios(self, term: str, category_id: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        """Newest records whose title, subtitle or description contains term."""
        query = self.client.table(self.audios_table).select("*")
        if term:
            pattern = f"%{term}%"
            query = query.or_(f"title.ilike.{pattern},description.ilike.{pattern},subtitle.ilike.{pattern}")
        if category_id:
            query = query.eq("category_id", category_id)

        result = await query.order("created_at", desc=True).limit(limit).execute()
        return result.data or []

    async def ensure_playlist(self, title: str, category_id: Optional[str] = None) -> str:
        """Return the id of the playlist titled title (case-insensitive), creating it if needed."""
        result = await (
            self.client.table(self.playlists_table)
            .select("id,title")
            .ilike("title", title)
            .limit(1)
            .execute()
        )
        if result.data:
            return str(result.data[0]["id"])

        row = {"title": title, "is_public": True}
        if category_id:
            row["category_id"] = category_id
        created = await self.client.table(self.playlists_table).insert(row).execute()
        playlist_id = str(created.data[0]["id"])
        logger.info(f"Created playlist '{title}' ({playlist_id})")
        return playlist_id

    async def add_to_playlist(self, playlist_id: str, audio_id: str) -> None:
        """Append audio_id at the end of a playlist. Already-linked audios are left alone."""
        existing = await (
            self.client.table(self.playlist_audios_table)
            .select("position")
            .eq("playlist_id", playlist_id)
            .order("position", desc=True)
            .limit(1)
            .execute()
        )
        position = (existing.data[0].get("position") or 0) + 1 if existing.data else 1

        try:
            await self.client.table(self.playlist_audios_table).insert({
                "playlist_id": playlist_id,
                "audio_id": audio_id,
                "position": position
            }).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.info(f"Audio {audio_id} already in playlist {playlist_id}")
                return
            raise


class AssetStorage:
    """Durable storage for generated media (Supabase Storage)."""

    def __init__(self, client: AsyncClient, bucket: Optional[str] = None, prefix: Optional[str] = None):
        settings = get_settings()
        self.client = client
        self.bucket = bucket or settings.MEDIA_BUCKET
        self.prefix = prefix if prefix is not None else settings.MEDIA_PREFIX
        self.public_base = f"{(settings.SUPABASE_URL or '').rstrip('/')}/storage/v1/object/public"
        self.download_timeout = settings.IMAGE_DOWNLOAD_TIMEOUT

    def public_url(self, path: str) -> str:
        return f"{self.public_base}/{self.bucket}/{path}"

    @staticmethod
    def is_public_url(url: str) -> bool:
        """Already a public object URL in our storage; no need to copy."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.hostname is not None and parsed.hostname.endswith(".supabase.co") \
            and "/storage/v1/object/public/" in parsed.path

    @staticmethod
    def image_extension(url: str, content_type: str) -> str:
        ext = "png"
        if "jpeg" in content_type or "jpg" in content_type:
            ext = "jpg"
        if "webp" in content_type:
            ext = "webp"
        path = urlparse(url).path.lower()
        for suffix, candidate in ((".jpg", "jpg"), (".jpeg", "jpg"), (".png", "png"), (".webp", "webp")):
            if path.endswith(suffix):
                ext = candidate
        return ext

    async def upload_image_from_url(self, source_url: str) -> str:
        """
        Copy an ephemeral image URL into the media bucket.

        Returns:
            Public URL of the stored copy

        Raises:
            httpx.HTTPError: Download failed
            RuntimeError: Upload failed
        """
        if self.is_public_url(source_url):
            return source_url

        async with httpx.AsyncClient(timeout=self.download_timeout, follow_redirects=True) as client:
            response = await client.get(source_url)
            response.raise_for_status()

        content_type = response.headers.get("content-type", "image/png").split(";")[0]
        ext = self.image_extension(source_url, content_type)
        path = f"{self.prefix}/images/{int(time.time() * 1000)}-{secrets.token_hex(5)}.{ext}"

        try:
            await self.client.storage.from_(self.bucket).upload(
                path,
                response.content,
                {"content-type": content_type, "cache-control": "3600", "upsert": "false"}
            )
        except Exception as e:
            raise RuntimeError(f"Upload to {self.bucket}/{path} failed: {e}") from e

        logger.info(f"Stored image at {self.bucket}/{path}", extra={"bytes": len(response.content)})
        return self.public_url(path)


class SettingsStore:
    """Key/value configuration in the app_settings table."""

    def __init__(self, client: AsyncClient):
        self.client = client
        self.table_name = get_settings().SETTINGS_TABLE

    async def get(self, key: str) -> Optional[str]:
        result = await self.client.table(self.table_name).select("key,value").eq("key", key).limit(1).execute()
        if result.data:
            return result.data[0].get("value")
        return None

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        keys = list(keys)
        result = await self.client.table(self.table_name).select("key,value").in_("key", keys).execute()
        return {row["key"]: row.get("value") for row in (result.data or [])}

    async def set(self, key: str, value: str) -> None:
        await self.client.table(self.table_name).upsert({"key": key, "value": value}, on_conflict="key").execute()
        logger.debug(f"Saved setting {key}")

    async def set_many(self, values: Dict[str, str]) -> None:
        rows = [{"key": key, "value": value} for key, value in values.items()]
        await self.client.table(self.table_name).upsert(rows, on_conflict="key").execute()
        logger.info(f"Saved {len(rows)} settings")
