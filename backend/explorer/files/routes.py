from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request, send_file

from ..common.errors import NotFoundError, ValidationError, success_payload
from ..common.params import MISSING, json_payload, parse_nullable_int, parse_optional_str, parse_size, pick
from ..common.storage import validate_node_name
from ..models import File
from . import service


files_bp = Blueprint("files", __name__)

ROOT_FOLDER_SENTINEL = "root"
PREVIEW_MAX_AGE_SECONDS = 3600


def _get_file(file_id: int) -> File:
    item = service.find_by_id(file_id)
    if item is None:
        raise NotFoundError("FILE_NOT_FOUND", "File not found.")
    return item


def _file_changes(payload: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    name = pick(payload, "name")
    if name is not MISSING:
        changes["name"] = validate_node_name(name, "File name")

    folder_id = pick(payload, "folderId", "folder_id")
    if folder_id is not MISSING:
        changes["folder_id"] = parse_nullable_int(folder_id, "folderId")

    mime_type = pick(payload, "mimeType", "mime_type")
    if mime_type is not MISSING:
        changes["mime_type"] = parse_optional_str(mime_type, "mimeType")

    size = pick(payload, "size")
    if size is not MISSING and size is not None:
        changes["size"] = parse_size(size)

    return changes


def _etag(item: File) -> str:
    stamp = int(item.updated_at.timestamp() * 1000) if item.updated_at else 0
    return f"{item.id}-{stamp}"


@files_bp.get("/", strict_slashes=False)
def list_files():
    items = service.find_all()
    return jsonify(success_payload([service.file_payload(item) for item in items], "Files retrieved successfully"))


@files_bp.get("/folder/<folder_ref>")
def list_folder_files(folder_ref: str):
    if folder_ref == ROOT_FOLDER_SENTINEL:
        folder_id = None
    else:
        try:
            folder_id = int(folder_ref)
        except ValueError as error:
            raise ValidationError("INVALID_PARAMETER", "Invalid folder ID.") from error

    items = service.find_by_folder_id(folder_id)
    return jsonify(success_payload([service.file_payload(item) for item in items], "Files retrieved successfully"))


@files_bp.get("/<int:file_id>")
def get_file(file_id: int):
    item = _get_file(file_id)
    return jsonify(success_payload(service.file_payload(item), "File retrieved successfully"))


@files_bp.post("/", strict_slashes=False)
def create_file():
    payload = json_payload()
    name = validate_node_name(payload.get("name"), "File name")
    changes = _file_changes(payload)

    item = service.create_file(
        name,
        folder_id=changes.get("folder_id"),
        mime_type=changes.get("mime_type"),
        size=changes.get("size", 0),
    )
    return jsonify(success_payload(service.file_payload(item), "File created successfully")), 201


@files_bp.post("/upload")
def upload_file():
    upload = request.files.get("file")
    if upload is None:
        raise ValidationError("INVALID_FILE", "File is required. Please include a file in the multipart form data.")

    name = validate_node_name(upload.filename or "", "File name")
    raw_folder_id = request.form.get("folderId", request.form.get("folder_id"))
    folder_id = parse_nullable_int(raw_folder_id, "folderId")

    item = service.create_with_upload(upload, folder_id=folder_id, name=name)
    return jsonify(success_payload(service.file_payload(item), "File uploaded successfully")), 201


@files_bp.put("/<int:file_id>")
def update_file(file_id: int):
    item = service.update_file(file_id, _file_changes(json_payload()))
    if item is None:
        raise NotFoundError("FILE_NOT_FOUND", "File not found.")
    return jsonify(success_payload(service.file_payload(item), "File updated successfully"))


@files_bp.patch("/<int:file_id>/move")
def move_file(file_id: int):
    folder_id = pick(json_payload(), "folderId", "folder_id")
    if folder_id is MISSING:
        raise ValidationError("INVALID_PARAMETER", "folderId is required (null moves the file to the root).")

    item = service.update_file(file_id, {"folder_id": parse_nullable_int(folder_id, "folderId")})
    if item is None:
        raise NotFoundError("FILE_NOT_FOUND", "File not found.")
    return jsonify(success_payload(service.file_payload(item), "File moved successfully"))


@files_bp.get("/<int:file_id>/preview")
def preview_file(file_id: int):
    item = _get_file(file_id)
    content_path = service.open_content(item)
    return send_file(
        content_path,
        mimetype=item.mime_type or "application/octet-stream",
        as_attachment=False,
        download_name=item.name,
        max_age=PREVIEW_MAX_AGE_SECONDS,
        etag=_etag(item),
    )


@files_bp.get("/<int:file_id>/download")
def download_file(file_id: int):
    item = _get_file(file_id)
    content_path = service.open_content(item)
    return send_file(
        content_path,
        mimetype=item.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=item.name,
    )


@files_bp.delete("/<int:file_id>")
def delete_file(file_id: int):
    if not service.delete_file(file_id):
        raise NotFoundError("FILE_NOT_FOUND", "File not found.")
    return jsonify(success_payload(None, "File deleted successfully"))
