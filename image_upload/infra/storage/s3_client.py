"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from image_upload.domain.models import StorageConfig
from image_upload.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageError,
)

DEFAULT_MAX_POOL_CONNECTIONS = 10


class S3StorageClient:
    """S3-compatible object storage client.

    Uses one boto3 client for all operations; boto3 clients are thread-safe,
    so part uploads can share it. The connection pool is sized to the part
    concurrency.
    """

    def __init__(
        self,
        *,
        config: StorageConfig,
        addressing_style: str = "virtual",
        max_pool_connections: int = DEFAULT_MAX_POOL_CONNECTIONS,
    ) -> None:
        """Initialize the S3 client.

        Args:
            config: Bucket, region and credentials.
            addressing_style: ``virtual`` or ``path`` bucket addressing.
            max_pool_connections: HTTP connection pool size.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._config = config
        self._client = self._build_client(
            config,
            addressing_style=addressing_style,
            max_pool_connections=max_pool_connections,
        )

    @staticmethod
    def _build_client(
        config: StorageConfig,
        *,
        addressing_style: str,
        max_pool_connections: int,
    ) -> Any:
        """Create a boto3 S3 client from the storage config."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        style = (addressing_style or "virtual").strip().lower()
        client_config = Config(
            s3={"addressing_style": style},
            max_pool_connections=max(1, int(max_pool_connections)),
        )

        return boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            region_name=config.region,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            aws_session_token=config.session_token,
            config=client_config,
        )

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str,
        acl: str,
        metadata: Mapping[str, str] | None = None,
    ) -> str | None:
        """Store an object in a single request."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "Body": body,
            "ContentType": content_type,
            "ACL": acl,
        }
        if metadata:
            params["Metadata"] = dict(metadata)

        try:
            response = self._client.put_object(**params)
        except Exception as exc:
            raise StorageError(f"Failed to put object: {exc}") from exc

        return response.get("ETag")

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        acl: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if acl:
            params["ACL"] = acl
        if metadata:
            params["Metadata"] = dict(metadata)

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart session."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise StorageError(f"Failed to upload part {part_number}: {exc}") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")

        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in parts
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(f"Failed to delete object: {exc}") from exc
