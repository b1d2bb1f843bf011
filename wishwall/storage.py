"""
Blob storage abstraction for an S3-compatible bucket and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from wishwall.errors import UpstreamStoreError


class BlobStore(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...


@dataclass
class InMemoryBlobStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1/object/public/wishes"
    stored_objects: dict = None
    content_types: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}
        if self.content_types is None:
            self.content_types = {}

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        if key in self.stored_objects:
            raise UpstreamStoreError(f"The resource already exists: {key}")
        self.stored_objects[key] = bytes(data)
        self.content_types[key] = content_type

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"


@dataclass
class S3BlobStore:
    """
    S3-compatible storage client (e.g. Supabase Storage's S3 endpoint).

    Public retrieval does not go through the client: objects are read from a
    fixed URL template over the public base address and bucket name.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str
    session_token: str | None = None

    def __post_init__(self):
        # Path-style addressing: the bucket lives under the endpoint path.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            aws_session_token=self.session_token,
            config=config,
        )

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamStoreError(str(exc)) from exc

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{key}"
