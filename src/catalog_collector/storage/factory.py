"""Storage factory selecting the backend from job settings."""

from supabase import create_client

from .base import Storage
from .file_storage import FileStorage
from .supabase_storage import SupabaseStorage
from ..config.loader import ConfigurationError
from ..config.settings import JobSettings


def split_storage_path(storage_path: str) -> tuple[str, str]:
    """Split ``bucket[/prefix]`` into bucket and prefix."""
    bucket, _, prefix = storage_path.strip("/").partition("/")
    if not bucket:
        raise ConfigurationError(f"Invalid target storage path: {storage_path!r}")
    return bucket, prefix


def create_storage(settings: JobSettings) -> Storage:
    """Create the storage the job writes to.

    A local directory takes precedence over cloud storage.

    Raises:
        ConfigurationError: If cloud storage is selected without credentials
    """
    if settings.target_local_directory:
        return FileStorage(settings.target_base_address, settings.target_local_directory)

    if not settings.supabase.url or not settings.supabase.service_role_key:
        raise ConfigurationError("Supabase url and service role key are required for cloud storage")

    bucket, prefix = split_storage_path(settings.target_storage_path)
    client = create_client(settings.supabase.url, settings.supabase.service_role_key)
    return SupabaseStorage(settings.target_base_address, client, bucket, prefix)
