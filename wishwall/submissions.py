"""
Submission handling: validate, rate-limit, normalize the photo, upload, insert.

Ordering matters: every check that can reject the request runs before the
first side effect, and the blob upload completes before the row that
references it is inserted.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

from wishwall.db import RowStore, SubmissionRecord
from wishwall.errors import UpstreamStoreError, ValidationError
from wishwall.identity import RateLimitGuard, identify_client
from wishwall.images import ImageNormalizer
from wishwall.storage import BlobStore

logger = logging.getLogger(__name__)

ALLOWED_AVATARS = frozenset({"slyv1", "slyv2", "slyv3", "slyv4", "slyv5", "slyv6"})

NAME_MIN, NAME_MAX = 1, 60
WISH_MIN, WISH_MAX = 5, 1200
KEY_PREFIX = "wishes"


@dataclass
class PhotoUpload:
    data: bytes
    content_type: Optional[str]


def validate_fields(name: str, wish: str, avatar: str) -> tuple[str, str, str]:
    """Trim and check the text fields, returning the cleaned values."""
    name = (name or "").strip()
    wish = (wish or "").strip()
    avatar = (avatar or "").strip()

    if not NAME_MIN <= len(name) <= NAME_MAX:
        raise ValidationError("Invalid name length")
    if not WISH_MIN <= len(wish) <= WISH_MAX:
        raise ValidationError("Invalid wish length")
    if avatar not in ALLOWED_AVATARS:
        raise ValidationError("Please pick a valid avatar.")
    return name, wish, avatar


def new_photo_key(extension: str, now: Optional[float] = None) -> str:
    """Unique, roughly time-ordered blob key."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{KEY_PREFIX}/{millis}-{uuid.uuid4()}.{extension}"


class SubmissionService:
    def __init__(
        self,
        rows: RowStore,
        blobs: BlobStore,
        guard: RateLimitGuard,
        normalizer: ImageNormalizer | None = None,
        hash_salt: str = "salt",
    ):
        self.rows = rows
        self.blobs = blobs
        self.guard = guard
        self.normalizer = normalizer or ImageNormalizer()
        self.hash_salt = hash_salt

    def submit(
        self,
        *,
        name: str,
        wish: str,
        avatar: str,
        headers: Mapping[str, str],
        photo: Optional[PhotoUpload] = None,
        now: Optional[float] = None,
    ) -> str:
        """Create one submission and return the store-generated id.

        Performs at most one blob write and one row insert. Nothing is retried;
        any raised error leaves no row behind.
        """
        name, wish, avatar = validate_fields(name, wish, avatar)

        client = identify_client(headers, self.hash_salt)
        self.guard.check(client.raw, now=now)

        photo_path = None
        if photo is not None and photo.data:
            photo_path = self._store_photo(photo, now)

        record = SubmissionRecord(
            name=name,
            wish=wish,
            avatar_id=avatar,
            photo_path=photo_path,
            ip_plain=client.raw,
            ip_truncated=client.truncated,
            ip_hash=client.hashed,
            ua=headers.get("user-agent") or None,
        )
        try:
            row_id = self.rows.insert(record)
        except UpstreamStoreError as exc:
            logger.error("Insert error: %s", exc.message)
            raise UpstreamStoreError(f"Insert failed: {exc.message}") from exc
        if not row_id:
            raise UpstreamStoreError("Insert failed: no id returned")

        logger.info(
            "Stored wish %s from %s (photo=%s)", row_id, client.truncated, bool(photo_path)
        )
        return row_id

    def _store_photo(self, photo: PhotoUpload, now: Optional[float]) -> str:
        normalized = self.normalizer.normalize(photo.data, photo.content_type)

        key = new_photo_key(normalized.extension, now)
        try:
            self.blobs.upload(key, normalized.data, normalized.content_type)
        except UpstreamStoreError as exc:
            logger.error("Upload error for %s: %s", key, exc.message)
            raise UpstreamStoreError(f"Upload failed: {exc.message}") from exc
        return key
