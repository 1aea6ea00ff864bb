from __future__ import annotations

import os
import re
import shutil
import time
from pathlib import Path
from typing import IO, Any

from flask import current_app

from .errors import BlobNotFoundError, StorageError, ValidationError


PATH_SEPARATOR_PATTERN = re.compile(r"[\\/]")
UNSAFE_BLOB_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def validate_node_name(name: Any, label: str = "Name") -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("INVALID_NAME", f"{label} is required.")
    cleaned = name.strip()
    if PATH_SEPARATOR_PATTERN.search(cleaned):
        raise ValidationError("INVALID_NAME", f"{label} cannot contain path separators.")
    return cleaned


def _safe_resolve(storage_root: Path, relative_path: str) -> Path:
    root = storage_root.resolve()
    candidate = (root / relative_path).resolve()
    if os.path.commonpath([str(root), str(candidate)]) != str(root):
        raise StorageError("Invalid storage path.", code="INVALID_PATH", status_code=400)
    return candidate


def blob_name(file_id: int, filename: str) -> str:
    """``{file_id}_{epoch_ms}_{stem}{ext}`` with stem and extension reduced to ``[A-Za-z0-9_-]``."""
    source = Path(filename or "")
    suffix = source.suffix
    stem = source.name[: -len(suffix)] if suffix else source.name
    safe_stem = UNSAFE_BLOB_CHARS.sub("_", stem) or "file"
    safe_suffix = f".{UNSAFE_BLOB_CHARS.sub('_', suffix[1:])}" if suffix else ""
    return f"{file_id}_{int(time.time() * 1000)}_{safe_stem}{safe_suffix}"


class LocalBlobStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def save(self, file_id: int, stream: IO[bytes], filename: str) -> str:
        relative_path = blob_name(file_id, filename)
        target_path = _safe_resolve(self.root, relative_path)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            with target_path.open("wb") as output:
                shutil.copyfileobj(stream, output)
        except OSError as error:
            if target_path.exists():
                target_path.unlink()
            raise StorageError(f"Could not store file data: {error.strerror or error}") from error
        return relative_path

    def resolve(self, storage_path: str | None) -> Path:
        if not storage_path:
            raise BlobNotFoundError()
        target_path = _safe_resolve(self.root, storage_path)
        if not target_path.is_file():
            raise BlobNotFoundError()
        return target_path

    def delete(self, storage_path: str | None) -> None:
        if not storage_path:
            return

        target_path = _safe_resolve(self.root, storage_path)
        try:
            target_path.unlink()
        except FileNotFoundError:
            return
        except OSError as error:
            raise StorageError(f"Could not delete file data: {error.strerror or error}") from error


def get_blob_store() -> LocalBlobStore:
    return current_app.extensions["blob_store"]


def discard_blob(file_id: int, storage_path: str | None) -> None:
    """Best-effort blob removal after the owning row is gone; failures are only logged."""
    try:
        get_blob_store().delete(storage_path)
    except Exception:
        current_app.logger.warning("Failed to delete stored data for file_id=%s", file_id, exc_info=True)
