"""
Error taxonomy for the submission and gallery paths.

Every error carries the HTTP status it maps to and a message that is safe to
return to the client as ``{"error": message}``.
"""

from __future__ import annotations

from typing import Optional


class WishwallError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(WishwallError):
    """Bad field length or an avatar outside the allow-set."""

    status_code = 400


class UnsupportedMediaError(WishwallError):
    """Upload is not an image, cannot be decoded, or is too large."""

    status_code = 400


class RateLimitError(WishwallError):
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamStoreError(WishwallError):
    """Read, write or upload failure against the row or blob store."""

    status_code = 500


class ServerMisconfiguredError(WishwallError):
    status_code = 500

    def __init__(self, message: str = "Server misconfigured"):
        super().__init__(message)
