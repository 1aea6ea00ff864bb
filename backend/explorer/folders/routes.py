from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from ..common.errors import NotFoundError, ValidationError, success_payload
from ..common.params import MISSING, json_payload, parse_bool, parse_nullable_int, pick
from ..common.storage import validate_node_name
from ..models import Folder
from . import service


folders_bp = Blueprint("folders", __name__)


def _get_folder(folder_id: int) -> Folder:
    folder = service.find_by_id(folder_id)
    if folder is None:
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.")
    return folder


def _folder_changes(payload: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    name = pick(payload, "name")
    if name is not MISSING:
        changes["name"] = validate_node_name(name, "Folder name")

    parent_id = pick(payload, "parentId", "parent_id")
    if parent_id is not MISSING:
        changes["parent_id"] = parse_nullable_int(parent_id, "parentId")

    is_expanded = pick(payload, "isExpanded", "is_expanded")
    if is_expanded is not MISSING:
        changes["is_expanded"] = parse_bool(is_expanded, "isExpanded")

    return changes


@folders_bp.get("/", strict_slashes=False)
def list_folders():
    folders = service.find_all()
    return jsonify(success_payload([folder.to_dict() for folder in folders], "Folders retrieved successfully"))


@folders_bp.get("/tree")
def folder_tree():
    raw_parent = request.args.get("parentId", request.args.get("parent_id"))
    parent_id = parse_nullable_int(raw_parent, "parentId")
    return jsonify(success_payload(service.find_tree(parent_id), "Folder tree retrieved successfully"))


@folders_bp.get("/roots")
def root_folders():
    roots = service.find_roots()
    return jsonify(success_payload([folder.to_dict() for folder in roots], "Root folders retrieved successfully"))


@folders_bp.get("/<int:folder_id>/children")
def folder_children(folder_id: int):
    folder = _get_folder(folder_id)
    children = service.find_children(folder.id)
    return jsonify(success_payload([child.to_dict() for child in children], "Folder children retrieved successfully"))


@folders_bp.get("/<int:folder_id>")
def get_folder(folder_id: int):
    folder = _get_folder(folder_id)
    return jsonify(success_payload(folder.to_dict(), "Folder retrieved successfully"))


@folders_bp.post("/", strict_slashes=False)
def create_folder():
    payload = json_payload()
    name = validate_node_name(payload.get("name"), "Folder name")
    parent_id = pick(payload, "parentId", "parent_id")
    parent_id = None if parent_id is MISSING else parse_nullable_int(parent_id, "parentId")

    folder = service.create_folder(name, parent_id)
    return jsonify(success_payload(folder.to_dict(), "Folder created successfully")), 201


@folders_bp.put("/<int:folder_id>")
def update_folder(folder_id: int):
    folder = service.update_folder(folder_id, _folder_changes(json_payload()))
    if folder is None:
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.")
    return jsonify(success_payload(folder.to_dict(), "Folder updated successfully"))


@folders_bp.patch("/<int:folder_id>/move")
def move_folder(folder_id: int):
    parent_id = pick(json_payload(), "parentId", "parent_id")
    if parent_id is MISSING:
        raise ValidationError("INVALID_PARAMETER", "parentId is required (null moves the folder to the root).")

    folder = service.update_folder(folder_id, {"parent_id": parse_nullable_int(parent_id, "parentId")})
    if folder is None:
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.")
    return jsonify(success_payload(folder.to_dict(), "Folder moved successfully"))


@folders_bp.patch("/<int:folder_id>/toggle-expand")
def toggle_expand(folder_id: int):
    folder = service.toggle_expanded(folder_id)
    if folder is None:
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.")
    return jsonify(success_payload(folder.to_dict(), "Folder expansion toggled successfully"))


@folders_bp.delete("/<int:folder_id>")
def delete_folder(folder_id: int):
    if not service.delete_folder(folder_id):
        raise NotFoundError("FOLDER_NOT_FOUND", "Folder not found.")
    return jsonify(success_payload(None, "Folder deleted successfully"))
