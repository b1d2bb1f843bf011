"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends

from wishwall.config import Settings, get_settings
from wishwall.db import InMemoryRowStore, RowStore, SqlRowStore
from wishwall.errors import ServerMisconfiguredError
from wishwall.identity import RateLimitGuard
from wishwall.images import ImageNormalizer
from wishwall.storage import BlobStore, InMemoryBlobStore, S3BlobStore
from wishwall.submissions import SubmissionService

_row_store: RowStore | None = None
_blob_store: BlobStore | None = None


def get_row_store() -> RowStore:
    """
    Return a singleton row store so submissions persist across requests.
    """
    global _row_store
    if _row_store:
        return _row_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _row_store = InMemoryRowStore()
    elif not settings.database_url:
        raise ServerMisconfiguredError()
    else:
        _row_store = SqlRowStore(settings.database_url)
    return _row_store


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store:
        return _blob_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _blob_store = InMemoryBlobStore()
    elif not settings.storage_url or not settings.service_credential:
        raise ServerMisconfiguredError()
    else:
        _blob_store = S3BlobStore(
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            endpoint=settings.storage_endpoint,
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
            session_token=settings.service_credential,
            public_base_url=settings.public_base_url,
        )
    return _blob_store


def get_submission_service(
    rows: RowStore = Depends(get_row_store),
    blobs: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> SubmissionService:
    guard = RateLimitGuard(
        rows,
        per_minute=settings.rate_limit_per_min,
        per_day=settings.rate_limit_per_day,
    )
    return SubmissionService(
        rows,
        blobs,
        guard,
        normalizer=ImageNormalizer(),
        hash_salt=settings.hash_salt,
    )
