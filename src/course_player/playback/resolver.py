"""Resolution of stored video references into playable URLs."""

import re
from typing import Optional

from course_player.config import Settings, get_settings
from course_player.exceptions import ResolutionError, StorageError
from course_player.logging.config import get_logger
from course_player.storage import StorageClient, get_storage_client

logger = get_logger(__name__)

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def is_absolute_url(reference: str) -> bool:
    """True if the reference already carries a URL scheme."""
    return bool(_SCHEME.match(reference))


class MediaSourceResolver:
    """
    Turns a video reference into a URL a media engine can fetch.

    References are either absolute URLs, paths in the public course video
    bucket, or paths in the protected lesson bucket that need a signed URL.
    """

    def __init__(
        self,
        storage: StorageClient,
        course_bucket: str = "course-videos",
        lesson_bucket: str = "videos",
        signed_url_expiry: int = 3600,
    ):
        self.storage = storage
        self.course_bucket = course_bucket
        self.lesson_bucket = lesson_bucket
        self.signed_url_expiry = signed_url_expiry

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        storage: Optional[StorageClient] = None,
    ) -> "MediaSourceResolver":
        settings = settings or get_settings()
        return cls(
            storage=storage or get_storage_client(settings),
            course_bucket=settings.course_video_bucket,
            lesson_bucket=settings.lesson_video_bucket,
            signed_url_expiry=settings.signed_url_expiry,
        )

    async def resolve(self, source_reference: str, is_public_asset: bool = False) -> str:
        """
        Resolve a reference.

        Args:
            source_reference: Absolute URL or storage path
            is_public_asset: Path lives in the publicly served course bucket

        Returns:
            Fetchable URL

        Raises:
            ResolutionError: If the reference is empty or signing fails
        """
        if not source_reference or not source_reference.strip():
            raise ResolutionError("No video URL provided")

        if is_absolute_url(source_reference):
            logger.debug(f"Using direct URL: {source_reference}")
            return source_reference

        if is_public_asset:
            url = self.storage.get_public_url(self.course_bucket, source_reference)
            logger.debug(f"Public URL for {self.course_bucket}/{source_reference}: {url}")
            return url

        try:
            url = await self.storage.create_signed_url(
                self.lesson_bucket, source_reference, self.signed_url_expiry
            )
        except StorageError as e:
            logger.error(f"Error getting signed URL for {source_reference}: {e.message}")
            raise ResolutionError(f"Error loading video: {e.message}") from e

        logger.debug(f"Generated signed URL for {self.lesson_bucket}/{source_reference}")
        return url
