"""
Google Cloud Storage filesystem adapter.

Authenticates with a service account key file and binds to one bucket.
"""

import logging
from datetime import datetime
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage
from google.oauth2 import service_account

from .base import FilesystemAdapter, StorageEntry, normalize_path
from ...exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024 * 1024  # must be a multiple of 256 KiB


class GoogleCloudStorageAdapter(FilesystemAdapter):
    """Google Cloud Storage implementation of FilesystemAdapter."""

    driver = "google"

    def __init__(self, client, bucket_name: str, prefix: str = ""):
        """
        Initialize GCS adapter.

        Args:
            client: google.cloud.storage.Client
            bucket_name: Name of the GCS bucket
            prefix: Object name prefix that every path is rooted under
        """
        self.client = client
        self.bucket_name = bucket_name
        self.bucket = client.bucket(bucket_name)
        self.prefix = normalize_path(prefix)

    @classmethod
    def from_config(cls, configuration: Mapping[str, Any]) -> 'GoogleCloudStorageAdapter':
        credentials = service_account.Credentials.from_service_account_file(
            configuration["key_file"]
        )
        client = storage.Client(project=configuration["project_id"], credentials=credentials)
        return cls(client, configuration["bucket"], configuration.get("prefix") or "")

    def is_not_found(self, error: Exception) -> bool:
        return isinstance(error, gcs_exceptions.NotFound) or super().is_not_found(error)

    def _name(self, path: str) -> str:
        path = normalize_path(path)
        if self.prefix:
            return f"{self.prefix}/{path}" if path else self.prefix
        return path

    def _directory_name(self, path: str) -> str:
        name = self._name(path)
        return f"{name}/" if name else ""

    def _relative(self, name: str) -> str:
        if self.prefix and name.startswith(self.prefix + "/"):
            name = name[len(self.prefix) + 1:]
        return name.rstrip("/")

    def _blob(self, path: str):
        """Fetch a blob with its metadata loaded."""
        with self.translate_errors("read metadata of", path):
            blob = self.bucket.get_blob(self._name(path))
        if blob is None:
            raise NotFoundError(f"File not found: {path}")
        return blob

    def list_contents(self, path: str = "", recursive: bool = False) -> Iterator[StorageEntry]:
        prefix = self._directory_name(path)

        with self.translate_errors("list", path):
            iterator = self.client.list_blobs(
                self.bucket_name,
                prefix=prefix or None,
                delimiter=None if recursive else "/",
            )
            for page in iterator.pages:
                for sub_prefix in page.prefixes:
                    yield StorageEntry(self._relative(sub_prefix), "dir")
                for blob in page:
                    if blob.name == prefix:
                        continue
                    if blob.name.endswith("/"):
                        yield StorageEntry(self._relative(blob.name), "dir")
                    else:
                        yield StorageEntry(self._relative(blob.name), "file")

    def file_exists(self, path: str) -> bool:
        if not normalize_path(path):
            return False
        with self.translate_errors("check", path):
            return self.bucket.blob(self._name(path)).exists()

    def directory_exists(self, path: str) -> bool:
        with self.translate_errors("check directory", path):
            blobs = self.client.list_blobs(
                self.bucket_name,
                prefix=self._directory_name(path) or None,
                max_results=1,
            )
            return any(True for _ in blobs)

    def file_size(self, path: str) -> int:
        return int(self._blob(path).size or 0)

    def mime_type(self, path: str) -> Optional[str]:
        return self._blob(path).content_type or None

    def last_modified(self, path: str) -> Optional[datetime]:
        return self._blob(path).updated

    def visibility(self, path: str) -> str:
        blob = self._blob(path)
        with self.translate_errors("read visibility of", path):
            try:
                blob.acl.reload()
            except gcs_exceptions.BadRequest as e:
                if not _acls_disabled(e):
                    raise
                # Access is granted through bucket IAM only
                return "private"
            roles = blob.acl.all().get_roles()
        return "public" if "READER" in roles or "OWNER" in roles else "private"

    def write_stream(
        self,
        path: str,
        stream: BinaryIO,
        *,
        mime_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        visibility: str = "private",
    ) -> None:
        blob = self.bucket.blob(self._name(path), chunk_size=CHUNK_SIZE)
        if metadata:
            blob.metadata = {k: str(v) for k, v in metadata.items()}

        with self.translate_errors("write", path):
            blob.upload_from_file(
                stream,
                content_type=mime_type,
                predefined_acl="publicRead" if visibility == "public" else None,
            )
        logger.debug(f"Uploaded gs://{self.bucket_name}/{blob.name}")

    def read_stream(self, path: str) -> BinaryIO:
        with self.translate_errors("open", path):
            return self.bucket.blob(self._name(path)).open("rb")

    def delete(self, path: str) -> None:
        with self.translate_errors("delete", path):
            self.bucket.blob(self._name(path)).delete()

    def delete_directory(self, path: str) -> None:
        prefix = self._directory_name(path)
        if not prefix:
            raise ValidationError({"path": "refusing to delete the storage root"})

        with self.translate_errors("delete directory", path):
            blobs = list(self.client.list_blobs(self.bucket_name, prefix=prefix))
            if blobs:
                self.bucket.delete_blobs(blobs)


def _acls_disabled(error: gcs_exceptions.BadRequest) -> bool:
    """Whether the bucket uses uniform bucket-level access."""
    return "uniform bucket-level access" in str(error).lower()
