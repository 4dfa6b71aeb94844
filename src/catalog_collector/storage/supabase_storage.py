"""Supabase Storage backend for resolver blobs."""

import re
from typing import Any, Dict, Optional

from supabase import Client

from .base import Storage, StorageContent
from ..core.errors import StorageError


_MAX_AGE = re.compile(r"max-age\s*=\s*(\d+)")


def cache_seconds(cache_control: Optional[str]) -> str:
    """Translate a Cache-Control value into the max-age seconds Supabase accepts."""
    if not cache_control:
        return "3600"
    if "no-store" in cache_control or "no-cache" in cache_control:
        return "0"
    match = _MAX_AGE.search(cache_control)
    if match:
        return match.group(1)
    return "3600"


_NOT_FOUND_CODES = ("not_found", "notfound", "nosuchkey")


def error_details(error: Exception) -> Dict[str, Any]:
    """Collect the status, code and message a Supabase Storage error carries.

    Storage errors hold the JSON body of the reply as their first argument;
    client-side errors expose the same fields as attributes.
    """
    details: Dict[str, Any] = {}
    if error.args and isinstance(error.args[0], dict):
        details.update(error.args[0])
    for name in ("status", "status_code", "statusCode", "code", "error", "message"):
        value = getattr(error, name, None)
        if value is not None:
            details.setdefault(name, value)
    return details


def is_not_found(error: Exception) -> bool:
    """Whether a Supabase Storage error reports a missing object.

    Bucket-level failures such as ``Bucket not found`` are not missing objects.
    """
    details = error_details(error)
    message = str(details.get("message") or ("" if details else error)).strip().lower()
    code = str(details.get("error") or details.get("code") or "").strip().lower()

    if "bucket" in message or "bucket" in code:
        return False

    status = details.get("statusCode") or details.get("status") or details.get("status_code")
    if str(status) == "404":
        return True
    if code in _NOT_FOUND_CODES:
        return True
    return message == "object not found"


class SupabaseStorage(Storage):
    """Stores blobs as objects in a Supabase Storage bucket."""

    def __init__(self, base_address: str, client: Client, bucket: str, prefix: str = ""):
        """Initialize Supabase storage.

        Args:
            base_address: Public address the blobs are served from
            client: Supabase client with storage access
            bucket: Bucket holding the blobs
            prefix: Optional folder inside the bucket
        """
        super().__init__(base_address)
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    def object_path(self, uri: str) -> str:
        """Object path of a blob inside the bucket."""
        name = self.relative_name(uri)
        return f"{self.prefix}/{name}" if self.prefix else name

    async def load(self, uri: str) -> Optional[StorageContent]:
        path = self.object_path(uri)
        try:
            data = self.client.storage.from_(self.bucket).download(path)
        except Exception as e:
            if is_not_found(e):
                self.logger.debug("Object not found", bucket=self.bucket, path=path)
                return None
            raise StorageError(f"Failed to download {self.bucket}/{path}: {e}", uri=uri) from e

        return StorageContent(data=data)

    async def save(self, uri: str, content: StorageContent) -> None:
        path = self.object_path(uri)
        file_options = {
            "content-type": content.content_type,
            "cache-control": cache_seconds(content.cache_control),
            "upsert": "true",
        }
        try:
            self.client.storage.from_(self.bucket).upload(path, content.data, file_options)
        except Exception as e:
            raise StorageError(f"Failed to upload {self.bucket}/{path}: {e}", uri=uri) from e

        self.logger.debug("Uploaded object", bucket=self.bucket, path=path, size=len(content.data))

    def describe(self) -> str:
        return f"supabase://{self.bucket}/{self.prefix}" if self.prefix else f"supabase://{self.bucket}"
