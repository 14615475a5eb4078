"""Object storage clients used to turn stored video paths into URLs."""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import requests

from course_player.config import Settings, get_settings
from course_player.exceptions import StorageError
from course_player.logging.config import get_logger

logger = get_logger(__name__)


class StorageClient(ABC):
    """Abstract base class for object storage backends."""

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        """
        Build the public URL of an object. No network round-trip.

        Args:
            bucket: Bucket name
            path: Object path inside the bucket

        Returns:
            Absolute URL
        """
        pass

    @abstractmethod
    async def create_signed_url(self, bucket: str, path: str, expiry_seconds: int) -> str:
        """
        Issue a time-limited URL for an access-controlled object.

        Args:
            bucket: Bucket name
            path: Object path inside the bucket
            expiry_seconds: Lifetime of the URL

        Returns:
            Absolute signed URL

        Raises:
            StorageError: If the backend refuses or cannot be reached
        """
        pass


class SupabaseStorageClient(StorageClient):
    """Storage client for the Supabase storage REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the storage client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: API key used for the apikey and Authorization headers
            timeout: Per-request timeout in seconds
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def storage_root(self) -> str:
        return f"{self.base_url}/storage/v1"

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.storage_root}/object/public/{bucket}/{path.lstrip('/')}"

    async def create_signed_url(self, bucket: str, path: str, expiry_seconds: int) -> str:
        return await asyncio.to_thread(self._sign, bucket, path, expiry_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _sign(self, bucket: str, path: str, expiry_seconds: int) -> str:
        url = f"{self.storage_root}/object/sign/{bucket}/{path.lstrip('/')}"
        logger.debug(f"Requesting signed URL for {bucket}/{path} ({expiry_seconds}s)")

        try:
            response = self.session.post(
                url,
                json={"expiresIn": expiry_seconds},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"Storage request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not response.ok:
            message = (
                payload.get("message")
                or payload.get("error")
                or f"HTTP {response.status_code}"
            )
            raise StorageError(message, status_code=response.status_code)

        signed_path = payload.get("signedURL") or payload.get("signedUrl")
        if not signed_path:
            raise StorageError("Storage response did not include a signed URL")

        if signed_path.startswith("http"):
            return signed_path
        return f"{self.storage_root}/{signed_path.lstrip('/')}"


def get_storage_client(settings: Optional[Settings] = None) -> StorageClient:
    """
    Factory function for the configured storage client.

    Args:
        settings: Settings to read the storage URL and key from

    Returns:
        StorageClient instance
    """
    settings = settings or get_settings()
    return SupabaseStorageClient(base_url=settings.storage_url, api_key=settings.storage_key)
