"""
Client identity and submission rate limiting.

Counts come from the row store. The check-then-insert sequence is not atomic,
so two concurrent requests from one address can both be admitted.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import re
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from wishwall.db import RowStore
from wishwall.errors import RateLimitError, UpstreamStoreError

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown"
MINUTE_SECONDS = 60
DAY_SECONDS = 24 * 60 * 60

_IPV4_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True)
class ClientIdentity:
    raw: str
    truncated: str
    hashed: str


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    """First x-forwarded-for entry, else x-real-ip, else ``"unknown"``."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real = headers.get("x-real-ip")
    if real and real.strip():
        return real.strip()
    return UNKNOWN_ADDRESS


def truncate_ip(ip: str) -> str:
    """Mask the host part of an address so it can be kept for audit."""
    if ":" in ip:
        try:
            exploded = ipaddress.IPv6Address(ip).exploded
        except ValueError:
            return ":".join(ip.split(":")[:4]) + ":*"
        return ":".join(exploded.split(":")[:4]) + ":*"
    match = _IPV4_PATTERN.match(ip)
    if not match:
        return UNKNOWN_ADDRESS
    return f"{match.group(1)}.{match.group(2)}.{match.group(3)}.xxx"


def hash_ip(ip: str, salt: str) -> str:
    return hashlib.sha256((ip + salt).encode("utf-8")).hexdigest()


def identify_client(headers: Mapping[str, str], salt: str) -> ClientIdentity:
    raw = client_ip_from_headers(headers)
    return ClientIdentity(raw=raw, truncated=truncate_ip(raw), hashed=hash_ip(raw, salt))


class RateLimitGuard:
    """Per-address submission caps over trailing minute and day windows."""

    def __init__(self, rows: RowStore, per_minute: int = 3, per_day: int = 25):
        self.rows = rows
        self.per_minute = per_minute
        self.per_day = per_day

    def _count_since(self, raw_address: str, since: float, window: str) -> int:
        try:
            return len(self.rows.query(ip_plain=raw_address, since=since))
        except UpstreamStoreError as exc:
            logger.error("Rate limit query failed (%s): %s", window, exc.message)
            raise UpstreamStoreError(f"DB error ({window}): {exc.message}") from exc

    def check(self, raw_address: str, now: Optional[float] = None) -> None:
        """Raise ``RateLimitError`` when either window is already full.

        Both windows are checked before the caller performs any mutation.
        """
        now = time.time() if now is None else now

        minute_count = self._count_since(raw_address, now - MINUTE_SECONDS, "minute")
        day_count = self._count_since(raw_address, now - DAY_SECONDS, "day")

        if minute_count >= self.per_minute:
            logger.warning(
                "Per-minute limit hit for %s (%d)", truncate_ip(raw_address), minute_count
            )
            raise RateLimitError(
                "Too many requests. Try again in a minute.", retry_after=MINUTE_SECONDS
            )
        if day_count >= self.per_day:
            logger.warning(
                "Per-day limit hit for %s (%d)", truncate_ip(raw_address), day_count
            )
            raise RateLimitError("Daily limit reached.", retry_after=DAY_SECONDS)
