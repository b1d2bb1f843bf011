"""
Pydantic schemas for the wishwall API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class SubmitResponse(BaseModel):
    ok: Literal[True] = True
    id: str


class DisplayRecord(BaseModel):
    id: str
    name: str
    wish: str
    created_at: Optional[str] = None
    avatar_url: Optional[str] = None
    photo_url: Optional[str] = None


class ListWishesResponse(BaseModel):
    items: list[DisplayRecord]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool
    in_memory_backends: bool
