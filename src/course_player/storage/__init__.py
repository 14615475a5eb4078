"""Object storage access for Course Player."""

from course_player.storage.client import StorageClient, SupabaseStorageClient, get_storage_client

__all__ = ["StorageClient", "SupabaseStorageClient", "get_storage_client"]
