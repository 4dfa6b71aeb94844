"""Blob storage backends for resolver artifacts and checkpoints."""

from .base import Storage, StorageContent
from .file_storage import FileStorage
from .supabase_storage import SupabaseStorage
from .factory import create_storage, split_storage_path

__all__ = [
    "Storage",
    "StorageContent",
    "FileStorage",
    "SupabaseStorage",
    "create_storage",
    "split_storage_path"
]
