"""
HTTP routes for the wishwall API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from wishwall.db import RowStore
from wishwall.dependencies import get_blob_store, get_row_store, get_submission_service
from wishwall.gallery import list_gallery
from wishwall.images import MAX_INPUT_BYTES
from wishwall.schemas import ErrorResponse, ListWishesResponse, SubmitResponse
from wishwall.storage import BlobStore
from wishwall.submissions import PhotoUpload, SubmissionService

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _read_photo(photo: Optional[UploadFile]) -> Optional[PhotoUpload]:
    if photo is None:
        return None
    # One byte past the limit is enough to reject without buffering the rest.
    data = photo.file.read(MAX_INPUT_BYTES + 1)
    if not data:
        return None
    return PhotoUpload(data=data, content_type=photo.content_type)


@router.post("/wish", response_model=SubmitResponse, responses=_ERROR_RESPONSES)
def create_wish(
    request: Request,
    name: str = Form(""),
    wish: str = Form(""),
    avatar: str = Form(""),
    photo: Optional[UploadFile] = File(None),
    service: SubmissionService = Depends(get_submission_service),
):
    """
    Accept one wish with an optional photo.
    """
    row_id = service.submit(
        name=name,
        wish=wish,
        avatar=avatar,
        headers=request.headers,
        photo=_read_photo(photo),
    )
    return SubmitResponse(id=row_id)


@router.get("/wish", response_model=ListWishesResponse, responses={500: {"model": ErrorResponse}})
def list_wishes(
    rows: RowStore = Depends(get_row_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    return ListWishesResponse(items=list_gallery(rows, blobs))
