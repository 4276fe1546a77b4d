"""
Object Store client — Supabase-compatible storage REST API over httpx.

Uploads use upsert semantics: writing the same path twice overwrites the
object. Public URLs are derived locally from bucket and stored path.
"""

import logging
from urllib.parse import quote

import httpx

from config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class StorageClient:
    def __init__(self, base_url: str, service_key: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._http: httpx.AsyncClient | None = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
            )
        return self._http

    async def upload(
        self, bucket: str, path: str, content: bytes, content_type: str = "image/jpeg",
    ) -> str:
        """Upload bytes to `bucket/path`. Returns the stored path."""
        url = f"{self.base_url}/storage/v1/object/{bucket}/{quote(path)}"
        try:
            resp = await self._client().post(
                url,
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Upload to {bucket}/{path} failed: {e}") from e

        if resp.status_code not in (200, 201):
            logger.warning(
                "Storage upload rejected: bucket=%s path=%s status=%s body=%s",
                bucket, path, resp.status_code, resp.text[:200],
            )
            raise StorageError(f"Upload to {bucket}/{path} rejected ({resp.status_code})")

        try:
            key = resp.json().get("Key") or f"{bucket}/{path}"
        except ValueError:
            key = f"{bucket}/{path}"
        # Key comes back prefixed with the bucket name
        stored = key[len(bucket) + 1:] if key.startswith(f"{bucket}/") else key
        logger.info("Stored object: bucket=%s path=%s size=%s", bucket, stored, len(content))
        return stored

    def get_public_url(self, bucket: str, stored_path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{quote(stored_path)}"

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


storage_client = StorageClient(
    settings.STORAGE_URL, settings.STORAGE_SERVICE_KEY, timeout=settings.HTTP_TIMEOUT,
)


def get_storage() -> StorageClient:
    """FastAPI dependency."""
    return storage_client
