"""File-based object store adapter.

Implements ObjectStorePort on the local filesystem. Object content is a
plain file; metadata and access policy live in a JSON sidecar that is
rewritten atomically (write to a temp file, then rename).

Usage:
    store = FileObjectStore("/path/to/data")
    store.put_object("bucket", "dir/file.bin", b"data")
    metadata = store.get_metadata("bucket", "dir/file.bin")

Directory structure:
    data_dir/
        <bucket>/
            <quoted key>.data
            <quoted key>.meta.json
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote

from object_checksum.domain.errors import (
    ChecksumIOError,
    InvalidEventError,
    ObjectNotFoundError,
)
from object_checksum.domain.value_objects import (
    AccessPolicy,
    ByteRange,
    Grant,
    ObjectContent,
    ObjectMetadata,
)


DATA_SUFFIX = ".data"
METADATA_SUFFIX = ".meta.json"
# quote() leaves these unchanged and they resolve outside the bucket layout
RESERVED_BUCKET_NAMES = frozenset({"", ".", ".."})


class FileObjectStore:
    """File-based implementation of ObjectStorePort.

    Suitable for single-node deployments and local development.

    Attributes:
        data_dir: Root directory for all buckets
    """

    def __init__(self, data_dir: str | Path) -> None:
        """Initialize file storage.

        Args:
            data_dir: Root directory for storage
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        """Root data directory."""
        return self._data_dir

    def _object_paths(self, bucket: str, key: str) -> tuple[Path, Path]:
        """Get content and sidecar paths for an object.

        Raises:
            InvalidEventError: If the bucket name would escape data_dir.
        """
        bucket_name = quote(bucket, safe="")
        if bucket_name in RESERVED_BUCKET_NAMES:
            raise InvalidEventError(f"Invalid bucket name: {bucket!r}")
        bucket_dir = self._data_dir / bucket_name
        name = quote(key, safe="")
        return bucket_dir / f"{name}{DATA_SUFFIX}", bucket_dir / f"{name}{METADATA_SUFFIX}"

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        user_metadata: dict[str, str] | None = None,
        access_policy: AccessPolicy | None = None,
    ) -> ObjectMetadata:
        """Write an object and its metadata, replacing any previous one."""
        data_path, _ = self._object_paths(bucket, key)
        data_path.parent.mkdir(parents=True, exist_ok=True)
        data_path.write_bytes(data)

        metadata = ObjectMetadata(
            content_length=len(data),
            content_type=content_type,
            user_metadata=dict(user_metadata or {}),
        )
        self._write_sidecar(bucket, key, metadata, access_policy or AccessPolicy(owner="owner"))
        return metadata

    def get_metadata(self, bucket: str, key: str) -> ObjectMetadata:
        data_path, _ = self._object_paths(bucket, key)
        sidecar = self._read_sidecar(bucket, key)
        try:
            content_length = data_path.stat().st_size
        except FileNotFoundError:
            raise ObjectNotFoundError(bucket, key) from None

        return ObjectMetadata(
            content_length=content_length,
            content_type=sidecar.get("content_type", "application/octet-stream"),
            user_metadata=dict(sidecar.get("user_metadata", {})),
        )

    def get_content(
        self, bucket: str, key: str, byte_range: ByteRange | None = None
    ) -> ObjectContent:
        """Open object content positioned at the start of the range.

        The declared length is clamped to the end of the file; the stream
        itself is not bounded, so readers must stop after ``length`` bytes.
        """
        data_path, _ = self._object_paths(bucket, key)
        try:
            stream = data_path.open("rb")
        except FileNotFoundError:
            raise ObjectNotFoundError(bucket, key) from None
        except OSError as e:
            raise ChecksumIOError(f"Cannot open {bucket}/{key}: {e}") from e

        size = os.fstat(stream.fileno()).st_size
        if byte_range is None:
            return ObjectContent(stream=stream, length=size)

        if byte_range.start >= size:
            stream.close()
            raise ChecksumIOError(
                f"Range {byte_range} not satisfiable for {size}-byte object {bucket}/{key}"
            )
        stream.seek(byte_range.start)
        return ObjectContent(stream=stream, length=min(byte_range.end, size - 1) - byte_range.start + 1)

    def get_access_policy(self, bucket: str, key: str) -> AccessPolicy:
        policy = self._read_sidecar(bucket, key).get("access_policy") or {}
        return AccessPolicy(
            owner=policy.get("owner", ""),
            grants=tuple(Grant(**grant) for grant in policy.get("grants", [])),
        )

    def replace_metadata(
        self,
        bucket: str,
        key: str,
        metadata: ObjectMetadata,
        access_policy: AccessPolicy,
    ) -> None:
        data_path, _ = self._object_paths(bucket, key)
        if not data_path.exists():
            raise ObjectNotFoundError(bucket, key)
        self._write_sidecar(bucket, key, metadata, access_policy)

    def _read_sidecar(self, bucket: str, key: str) -> dict[str, Any]:
        _, meta_path = self._object_paths(bucket, key)
        try:
            with meta_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise ObjectNotFoundError(bucket, key) from None

    def _write_sidecar(
        self,
        bucket: str,
        key: str,
        metadata: ObjectMetadata,
        access_policy: AccessPolicy,
    ) -> None:
        _, meta_path = self._object_paths(bucket, key)
        document = {
            "content_type": metadata.content_type,
            "user_metadata": dict(metadata.user_metadata),
            "access_policy": {
                "owner": access_policy.owner,
                "grants": [
                    {"grantee": g.grantee, "permission": g.permission}
                    for g in access_policy.grants
                ],
            },
        }

        fd, tmp_name = tempfile.mkstemp(dir=meta_path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, meta_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
