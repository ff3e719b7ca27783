"""
app/routes/media.py – multipart upload, download and deletion of media files.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from app.config import settings
from app.dependencies import get_current_user, get_media_storage
from app.models import ApiResponse, FileInfo
from app.services.storage import (
    FileTooLargeError,
    InvalidFilenameError,
    MediaStorage,
    StorageError,
    StoredFile,
    UnsupportedMediaTypeError,
    guess_mime_type,
)
from app.services.tokens import TokenUser

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/media",
    tags=["Media"],
    dependencies=[Depends(get_current_user)],
)

_STATUS_FOR_ERROR = {
    UnsupportedMediaTypeError: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    FileTooLargeError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    InvalidFilenameError: status.HTTP_400_BAD_REQUEST,
}


def _to_http(exc: StorageError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_FOR_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=str(exc),
    )


def _info(stored: StoredFile) -> dict:
    return FileInfo(**asdict(stored)).model_dump()


def _resolve_existing(storage: MediaStorage, filename: str) -> Path:
    try:
        path = storage.path_for(filename)
    except InvalidFilenameError as exc:
        raise _to_http(exc) from exc
    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="The requested file does not exist",
        )
    return path


@router.post("/upload", response_model=ApiResponse, summary="Upload a single file")
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    user: TokenUser = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
) -> ApiResponse:
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file was uploaded")
    try:
        stored = await storage.save(file, user_id=user.id)
    except StorageError as exc:
        raise _to_http(exc) from exc
    finally:
        await file.close()

    logger.info(
        "File uploaded",
        extra={"user_id": user.id, "file_size": stored.size, "mimetype": stored.mimetype},
    )
    return ApiResponse(message="File uploaded successfully", data=_info(stored))


@router.post("/upload/multiple", response_model=ApiResponse, summary="Upload several files")
async def upload_files(
    files: Optional[list[UploadFile]] = File(default=None),
    user: TokenUser = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
) -> ApiResponse:
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files were uploaded")
    if len(files) > settings.max_files_per_request:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.max_files_per_request} files may be uploaded per request",
        )

    stored: list[StoredFile] = []
    try:
        for upload in files:
            stored.append(await storage.save(upload, user_id=user.id))
    except StorageError as exc:
        # All-or-nothing: drop what this request already wrote.
        for done in stored:
            storage.delete(done.filename)
        raise _to_http(exc) from exc
    finally:
        for upload in files:
            await upload.close()

    logger.info(
        "Multiple files uploaded",
        extra={"user_id": user.id, "count": len(stored), "total_size": sum(f.size for f in stored)},
    )
    return ApiResponse(
        message=f"{len(stored)} files uploaded successfully",
        data=[_info(f) for f in stored],
    )


@router.get("/files", response_model=ApiResponse, summary="List uploaded files")
async def list_files(storage: MediaStorage = Depends(get_media_storage)) -> ApiResponse:
    files = [_info(f) for f in storage.list_files()]
    return ApiResponse(data={"files": files, "total": len(files)})


@router.get("/files/{filename}", summary="Download an uploaded file")
async def get_file(filename: str, storage: MediaStorage = Depends(get_media_storage)) -> FileResponse:
    path = _resolve_existing(storage, filename)
    return FileResponse(
        path,
        media_type=guess_mime_type(path.name),
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.delete("/files/{filename}", response_model=ApiResponse, summary="Delete an uploaded file")
async def delete_file(
    filename: str,
    user: TokenUser = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
) -> ApiResponse:
    _resolve_existing(storage, filename)
    storage.delete(filename)
    logger.info("File deleted", extra={"user_id": user.id, "deleted_file": filename})
    return ApiResponse(message="File deleted successfully")
