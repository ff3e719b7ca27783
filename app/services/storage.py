"""
app/services/storage.py – local disk storage for uploaded media files.

Files are written under ``upload_dir`` with a unique name derived from the
client's filename (``{stem}-{timestamp}-{random}{ext}``). Only a fixed set of
image / audio / video MIME types is accepted.
"""
from __future__ import annotations

import logging
import mimetypes
import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

ALLOWED_TYPES: dict[str, frozenset[str]] = {
    "image": frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"}),
    "audio": frozenset({"audio/mpeg", "audio/wav", "audio/mp3", "audio/ogg"}),
    "video": frozenset({"video/mp4", "video/webm", "video/avi", "video/mov"}),
}
ALL_ALLOWED_TYPES = frozenset().union(*ALLOWED_TYPES.values())

_EXTENSION_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".webm": "audio/webm",
}


# ── Exceptions ────────────────────────────────────────────────────────────────


class StorageError(Exception):
    """Base class for rejected storage operations."""


class UnsupportedMediaTypeError(StorageError):
    pass


class FileTooLargeError(StorageError):
    pass


class InvalidFilenameError(StorageError):
    pass


# ── Types ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StoredFile:
    id: str
    original_name: str
    filename: str
    mimetype: str
    size: int
    uploaded_at: str
    url: str
    uploaded_by: Optional[str] = None


def _unique_name(original: str) -> str:
    path = Path(original or "upload")
    stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", path.stem) or "upload"
    suffix = re.sub(r"[^A-Za-z0-9.]+", "", path.suffix)
    return f"{stem}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"


def guess_mime_type(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[suffix]
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


# ── Storage ───────────────────────────────────────────────────────────────────


class MediaStorage:
    def __init__(self, upload_dir: str | Path, max_file_size: int, url_prefix: str = "/api/media/files") -> None:
        self.root = Path(upload_dir).resolve()
        self.max_file_size = max_file_size
        self.url_prefix = url_prefix.rstrip("/")

    def path_for(self, filename: str) -> Path:
        """Resolve ``filename`` inside the upload dir, rejecting traversal."""
        if not filename or filename in {".", ".."} or "/" in filename or "\\" in filename:
            raise InvalidFilenameError(f"Invalid filename: {filename!r}")
        path = (self.root / filename).resolve()
        if path.parent != self.root:
            raise InvalidFilenameError(f"Invalid filename: {filename!r}")
        return path

    def _describe(self, path: Path, original_name: str, mimetype: str, user_id: Optional[str]) -> StoredFile:
        stat = path.stat()
        return StoredFile(
            id=f"file_{int(time.time() * 1000)}_{secrets.token_hex(6)}",
            original_name=original_name,
            filename=path.name,
            mimetype=mimetype,
            size=stat.st_size,
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
            url=f"{self.url_prefix}/{path.name}",
            uploaded_by=user_id,
        )

    async def save(self, upload: UploadFile, user_id: Optional[str] = None) -> StoredFile:
        mimetype = upload.content_type or ""
        if mimetype not in ALL_ALLOWED_TYPES:
            raise UnsupportedMediaTypeError(f"File type {mimetype or 'unknown'} is not allowed")

        self.root.mkdir(parents=True, exist_ok=True)
        original_name = upload.filename or "upload"
        target = self.root / _unique_name(original_name)

        written = 0
        try:
            with target.open("wb") as fh:
                while chunk := await upload.read(CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_file_size:
                        raise FileTooLargeError(
                            f"File {original_name!r} exceeds the {self.max_file_size} byte limit"
                        )
                    fh.write(chunk)
        except BaseException:
            target.unlink(missing_ok=True)
            raise

        logger.info(
            "File stored",
            extra={"stored_file": target.name, "size": written, "mimetype": mimetype},
        )
        return self._describe(target, original_name, mimetype, user_id)

    def read(self, filename: str) -> bytes:
        path = self.path_for(filename)
        if not path.is_file():
            raise FileNotFoundError(filename)
        return path.read_bytes()

    def delete(self, filename: str) -> None:
        path = self.path_for(filename)
        if not path.is_file():
            raise FileNotFoundError(filename)
        path.unlink()
        logger.info("File deleted", extra={"stored_file": filename})

    def list_files(self) -> list[StoredFile]:
        if not self.root.is_dir():
            return []
        files = [p for p in self.root.iterdir() if p.is_file()]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [self._describe(p, p.name, guess_mime_type(p.name), None) for p in files]
