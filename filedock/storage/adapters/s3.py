"""
S3-compatible filesystem adapter.

Works against AWS S3 and S3-compatible services (MinIO, Wasabi, ...) via
the optional endpoint setting. All keys are rooted under an optional prefix.
"""

import logging
from datetime import datetime
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import ClientError

from .base import FilesystemAdapter, StorageEntry, normalize_path
from ...exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})
# Returned by buckets with object ownership set to BucketOwnerEnforced
ACLS_DISABLED_CODES = frozenset({"AccessControlListNotSupported"})
ALL_USERS_GROUP = "http://acs.amazonaws.com/groups/global/AllUsers"
DELETE_BATCH_SIZE = 1000
# Uploads above this size switch to multipart, read in chunks of the same size
MULTIPART_CHUNK_SIZE = 8 * 1024 * 1024


class S3FilesystemAdapter(FilesystemAdapter):
    """Amazon S3 (and compatible) implementation of FilesystemAdapter."""

    driver = "s3"

    def __init__(self, client, bucket: str, prefix: str = ""):
        """
        Initialize S3 adapter.

        Args:
            client: boto3 S3 client
            bucket: Bucket name
            prefix: Key prefix that every path is rooted under
        """
        self.client = client
        self.bucket = bucket
        self.prefix = normalize_path(prefix)
        self.transfer_config = TransferConfig(
            multipart_threshold=MULTIPART_CHUNK_SIZE,
            multipart_chunksize=MULTIPART_CHUNK_SIZE,
        )

    @classmethod
    def from_config(cls, configuration: Mapping[str, Any]) -> 'S3FilesystemAdapter':
        """
        Build a boto3 client from key/secret/region and bind it to the bucket.

        Raises whatever boto3 raises for malformed settings; the factory
        translates it.
        """
        client_kwargs = {
            "region_name": configuration["region"],
            "aws_access_key_id": configuration["key"],
            "aws_secret_access_key": configuration["secret"],
        }
        if configuration.get("token"):
            client_kwargs["aws_session_token"] = configuration["token"]
        if configuration.get("endpoint"):
            client_kwargs["endpoint_url"] = configuration["endpoint"]
        if configuration.get("use_path_style_endpoint"):
            client_kwargs["config"] = Config(s3={"addressing_style": "path"})

        client = boto3.client("s3", **client_kwargs)
        return cls(client, configuration["bucket"], configuration.get("prefix") or "")

    def is_not_found(self, error: Exception) -> bool:
        if isinstance(error, ClientError):
            return _error_code(error) in NOT_FOUND_CODES
        return super().is_not_found(error)

    def _key(self, path: str) -> str:
        """Get full S3 key for a path."""
        path = normalize_path(path)
        if self.prefix:
            return f"{self.prefix}/{path}" if path else self.prefix
        return path

    def _directory_key(self, path: str) -> str:
        key = self._key(path)
        return f"{key}/" if key else ""

    def _relative(self, key: str) -> str:
        """Strip the adapter prefix from a key."""
        if self.prefix and key.startswith(self.prefix + "/"):
            key = key[len(self.prefix) + 1:]
        return key.rstrip("/")

    def _head(self, path: str) -> Dict[str, Any]:
        with self.translate_errors("read metadata of", path):
            return self.client.head_object(Bucket=self.bucket, Key=self._key(path))

    def list_contents(self, path: str = "", recursive: bool = False) -> Iterator[StorageEntry]:
        prefix = self._directory_key(path)
        params = {"Bucket": self.bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = "/"

        with self.translate_errors("list", path):
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for common_prefix in page.get("CommonPrefixes", []):
                    yield StorageEntry(self._relative(common_prefix["Prefix"]), "dir")

                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key == prefix:
                        # Marker of the listed directory itself
                        continue
                    if key.endswith("/"):
                        yield StorageEntry(self._relative(key), "dir")
                    else:
                        yield StorageEntry(self._relative(key), "file")

    def file_exists(self, path: str) -> bool:
        if not normalize_path(path):
            return False
        try:
            self._head(path)
            return True
        except NotFoundError:
            return False

    def directory_exists(self, path: str) -> bool:
        with self.translate_errors("check directory", path):
            response = self.client.list_objects_v2(
                Bucket=self.bucket,
                Prefix=self._directory_key(path),
                MaxKeys=1,
            )
        return response.get("KeyCount", 0) > 0 or bool(response.get("Contents"))

    def file_size(self, path: str) -> int:
        return int(self._head(path)["ContentLength"])

    def mime_type(self, path: str) -> Optional[str]:
        content_type = self._head(path).get("ContentType")
        if not content_type or content_type in ("binary/octet-stream",):
            return None
        return content_type

    def last_modified(self, path: str) -> Optional[datetime]:
        return self._head(path).get("LastModified")

    def visibility(self, path: str) -> str:
        with self.translate_errors("read visibility of", path):
            try:
                acl = self.client.get_object_acl(Bucket=self.bucket, Key=self._key(path))
            except ClientError as e:
                if _error_code(e) not in ACLS_DISABLED_CODES:
                    raise
                # Objects are only reachable through the bucket policy
                return "private"
        for grant in acl.get("Grants", []):
            grantee = grant.get("Grantee", {})
            if grantee.get("URI") == ALL_USERS_GROUP and grant.get("Permission") in ("READ", "FULL_CONTROL"):
                return "public"
        return "private"

    def write_stream(
        self,
        path: str,
        stream: BinaryIO,
        *,
        mime_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        visibility: str = "private",
    ) -> None:
        # Only public writes carry an ACL; buckets with ACLs disabled reject any ACL header
        extra_args: Dict[str, Any] = {}
        if visibility == "public":
            extra_args["ACL"] = "public-read"
        if mime_type:
            extra_args["ContentType"] = mime_type
        if metadata:
            extra_args["Metadata"] = {k: str(v) for k, v in metadata.items()}

        with self.translate_errors("write", path):
            self.client.upload_fileobj(
                stream,
                self.bucket,
                self._key(path),
                ExtraArgs=extra_args,
                Config=self.transfer_config,
            )
        logger.debug(f"Uploaded s3://{self.bucket}/{self._key(path)}")

    def read_stream(self, path: str) -> BinaryIO:
        with self.translate_errors("open", path):
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(path))
        return response["Body"]

    def delete(self, path: str) -> None:
        with self.translate_errors("delete", path):
            self.client.delete_object(Bucket=self.bucket, Key=self._key(path))

    def delete_directory(self, path: str) -> None:
        prefix = self._directory_key(path)
        if not prefix:
            raise ValidationError({"path": "refusing to delete the storage root"})

        with self.translate_errors("delete directory", path):
            paginator = self.client.get_paginator("list_objects_v2")
            batch = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    batch.append({"Key": obj["Key"]})
                    if len(batch) == DELETE_BATCH_SIZE:
                        self._delete_batch(batch)
                        batch = []
            if batch:
                self._delete_batch(batch)

    def _delete_batch(self, batch) -> None:
        response = self.client.delete_objects(
            Bucket=self.bucket,
            Delete={"Objects": batch, "Quiet": True},
        )
        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise RuntimeError(f"{len(errors)} objects not deleted, first: {first.get('Key')}: {first.get('Message')}")


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")
