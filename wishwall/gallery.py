"""
Read path: map stored rows to display records for the public gallery.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from wishwall.db import RowStore, SubmissionRecord
from wishwall.errors import UpstreamStoreError
from wishwall.schemas import DisplayRecord
from wishwall.storage import BlobStore
from wishwall.submissions import ALLOWED_AVATARS

logger = logging.getLogger(__name__)

GALLERY_LIMIT = 200


def avatar_url_for(avatar_id: Optional[str]) -> Optional[str]:
    if avatar_id not in ALLOWED_AVATARS:
        return None
    return f"/{avatar_id}.png"


def _iso(timestamp: Optional[float]) -> Optional[str]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def to_display_record(row: SubmissionRecord, blobs: BlobStore) -> DisplayRecord:
    return DisplayRecord(
        id=row.id,
        name=row.name,
        wish=row.wish,
        created_at=_iso(row.created_at),
        avatar_url=avatar_url_for(row.avatar_id),
        photo_url=blobs.public_url(row.photo_path) if row.photo_path else None,
    )


def list_gallery(
    rows: RowStore, blobs: BlobStore, limit: int = GALLERY_LIMIT
) -> List[DisplayRecord]:
    """Most recent submissions first. Read-only."""
    try:
        stored = rows.list_recent(limit=limit)
    except UpstreamStoreError as exc:
        logger.error("DB read error: %s", exc.message)
        raise UpstreamStoreError("DB read error") from exc
    return [to_display_record(row, blobs) for row in stored]
