from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from flask import current_app
from werkzeug.datastructures import FileStorage

from ..common.errors import ConflictError, NotFoundError
from ..common.hierarchy import build_path, file_name_taken
from ..common.storage import discard_blob, get_blob_store
from ..extensions import db
from ..models import File, Folder, FolderFile


def file_urls(file_id: int) -> dict[str, str]:
    base = f"{current_app.config['BASE_URL'].rstrip('/')}{current_app.config['API_PREFIX']}/files/{file_id}"
    return {"previewUrl": f"{base}/preview", "downloadUrl": f"{base}/download"}


def file_payload(item: File) -> dict[str, Any]:
    payload = item.to_dict()
    payload.update(file_urls(item.id))
    return payload


def _require_folder(folder_id: int | None) -> None:
    if folder_id is not None and db.session.get(Folder, folder_id) is None:
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.", {"folderId": folder_id})


def _assert_name_available(name: str, folder_id: int | None, exclude_id: int | None = None) -> None:
    if not file_name_taken(name, folder_id, exclude_id=exclude_id):
        return
    where = "the root" if folder_id is None else "the same folder"
    raise ConflictError("DUPLICATE_SIBLING", f"A file with this name already exists in {where}.")


def find_all() -> list[File]:
    return File.query.order_by(File.path.asc()).all()


def find_by_id(file_id: int) -> File | None:
    return db.session.get(File, file_id)


def find_by_folder_id(folder_id: int | None) -> list[File]:
    if folder_id is None:
        query = File.query.filter(~File.membership.has())
    else:
        query = File.query.join(FolderFile, FolderFile.file_id == File.id).filter(FolderFile.folder_id == folder_id)
    return query.order_by(File.name.asc()).all()


def create_file(name: str, folder_id: int | None = None, mime_type: str | None = None, size: int = 0) -> File:
    _require_folder(folder_id)
    _assert_name_available(name, folder_id)

    item = File(name=name, path=build_path(name, folder_id), mime_type=mime_type, size=size or 0, storage_path=None)
    try:
        db.session.add(item)
        db.session.flush()
        if folder_id is not None:
            db.session.add(FolderFile(file_id=item.id, folder_id=folder_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Created file %s at %s", item.id, item.path)
    return item


def _stream_size(upload: FileStorage) -> int:
    stream = upload.stream
    current = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(current)
    return size


def create_with_upload(upload: FileStorage, folder_id: int | None = None, name: str | None = None) -> File:
    """Insert the file row, store its bytes, then attach it to ``folder_id``.

    If the blob store fails the pending row is rolled back so no row without
    data survives, and the storage error propagates to the caller.
    """
    file_name = name or Path(upload.filename or "").name
    _require_folder(folder_id)
    _assert_name_available(file_name, folder_id)

    item = File(
        name=file_name,
        path=build_path(file_name, folder_id),
        mime_type=upload.mimetype or None,
        size=_stream_size(upload),
        storage_path=None,
    )
    db.session.add(item)
    db.session.flush()

    try:
        upload.stream.seek(0)
        item.storage_path = get_blob_store().save(item.id, upload.stream, file_name)
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Upload of %r failed, file row discarded", file_name)
        raise

    file_id, storage_path = item.id, item.storage_path
    try:
        if folder_id is not None:
            db.session.add(FolderFile(file_id=file_id, folder_id=folder_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        discard_blob(file_id, storage_path)
        raise

    current_app.logger.info("Uploaded file %s (%s bytes) to %s", item.id, item.size, item.path)
    return item


def update_file(file_id: int, changes: Mapping[str, Any]) -> File | None:
    """Apply ``name`` / ``folder_id`` / ``mime_type`` / ``size`` from ``changes``.

    Only keys present in ``changes`` are considered; None when the file is missing.
    """
    item = db.session.get(File, file_id)
    if item is None:
        return None

    current_folder_id = item.folder_id
    target_name = changes.get("name") or item.name
    target_folder_id = changes["folder_id"] if "folder_id" in changes else current_folder_id
    folder_changed = target_folder_id != current_folder_id
    name_changed = target_name != item.name

    if folder_changed:
        _require_folder(target_folder_id)
        _assert_name_available(target_name, target_folder_id, exclude_id=item.id)
    elif name_changed:
        _assert_name_available(target_name, current_folder_id, exclude_id=item.id)

    new_path = item.path
    if "name" in changes or "folder_id" in changes:
        new_path = build_path(target_name, target_folder_id)

    updates: dict[str, Any] = {}
    if name_changed:
        updates["name"] = target_name
    if "mime_type" in changes and changes["mime_type"] != item.mime_type:
        updates["mime_type"] = changes["mime_type"]
    if "size" in changes and changes["size"] is not None and changes["size"] != item.size:
        updates["size"] = changes["size"]
    if new_path != item.path:
        updates["path"] = new_path

    if not updates and not folder_changed:
        return item

    try:
        for field, value in updates.items():
            setattr(item, field, value)
        db.session.flush()
        if folder_changed:
            if item.membership is not None:
                db.session.delete(item.membership)
                db.session.flush()
            if target_folder_id is not None:
                db.session.add(FolderFile(file_id=item.id, folder_id=target_folder_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return item


def delete_file(file_id: int) -> bool:
    item = db.session.get(File, file_id)
    if item is None:
        return False

    storage_path = item.storage_path
    try:
        db.session.delete(item)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Deleted file %s", file_id)
    discard_blob(file_id, storage_path)
    return True


def open_content(item: File) -> Path:
    return get_blob_store().resolve(item.storage_path)
