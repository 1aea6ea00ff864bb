from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any

from flask import current_app

from ..common.errors import ConflictError, NotFoundError
from ..common.hierarchy import build_path, creates_cycle, folder_name_taken, repath_descendants, subtree_folder_ids
from ..common.storage import discard_blob
from ..extensions import db
from ..models import File, Folder, FolderFile


def find_all() -> list[Folder]:
    return Folder.query.order_by(Folder.path.asc()).all()


def find_by_id(folder_id: int) -> Folder | None:
    return db.session.get(Folder, folder_id)


def find_children(parent_id: int | None) -> list[Folder]:
    query = Folder.query
    if parent_id is None:
        query = query.filter(Folder.parent_id.is_(None))
    else:
        query = query.filter(Folder.parent_id == parent_id)
    return query.order_by(Folder.name.asc()).all()


def find_roots() -> list[Folder]:
    return find_children(None)


def count_subfolders(folder_id: int) -> int:
    return Folder.query.filter(Folder.parent_id == folder_id).count()


def find_tree(parent_id: int | None = None) -> list[dict[str, Any]]:
    """Nested folder dicts from ``parent_id`` (root when None) downward.

    Every node carries ``subfolderCount``; ``children`` is present only when
    the node has subfolders. Siblings are ordered by name. All folders are
    loaded in one query and grouped in memory.
    """
    by_parent: dict[int | None, list[Folder]] = defaultdict(list)
    for folder in Folder.query.order_by(Folder.name.asc()).all():
        by_parent[folder.parent_id].append(folder)

    max_depth = int(current_app.config.get("TREE_MAX_DEPTH", 256))
    tree: list[dict[str, Any]] = []
    stack: list[tuple[int | None, list[dict[str, Any]], int]] = [(parent_id, tree, 1)]

    while stack:
        level_parent_id, bucket, depth = stack.pop()
        for folder in by_parent.get(level_parent_id, []):
            node = folder.to_dict()
            subfolders = by_parent.get(folder.id, [])
            node["subfolderCount"] = len(subfolders)
            bucket.append(node)
            if subfolders and depth < max_depth:
                node["children"] = []
                stack.append((folder.id, node["children"], depth + 1))

    return tree


def create_folder(name: str, parent_id: int | None = None) -> Folder:
    if parent_id is not None and db.session.get(Folder, parent_id) is None:
        raise NotFoundError("PARENT_NOT_FOUND", "Parent folder not found.", {"parentId": parent_id})

    if folder_name_taken(name, parent_id):
        raise ConflictError("DUPLICATE_SIBLING", "A folder with this name already exists in the same location.")

    folder = Folder(name=name, parent_id=parent_id, path=build_path(name, parent_id), is_expanded=False)
    db.session.add(folder)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Created folder %s at %s", folder.id, folder.path)
    return folder


def update_folder(folder_id: int, changes: Mapping[str, Any]) -> Folder | None:
    """Apply ``name`` / ``parent_id`` / ``is_expanded`` from ``changes``.

    Only keys present in ``changes`` are considered. Returns None when the
    folder does not exist. A rename or move rewrites the cached path of the
    folder and everything below it in the same transaction.
    """
    folder = db.session.get(Folder, folder_id)
    if folder is None:
        return None

    target_name = changes.get("name") or folder.name
    target_parent_id = changes["parent_id"] if "parent_id" in changes else folder.parent_id
    parent_changed = target_parent_id != folder.parent_id
    name_changed = target_name != folder.name

    if parent_changed:
        if target_parent_id is not None and db.session.get(Folder, target_parent_id) is None:
            raise NotFoundError("PARENT_NOT_FOUND", "Parent folder not found.", {"parentId": target_parent_id})
        if creates_cycle(folder.id, target_parent_id):
            raise ConflictError("CIRCULAR_REFERENCE", "Cannot move folder: would create a circular reference.")
        if folder_name_taken(target_name, target_parent_id, exclude_id=folder.id):
            raise ConflictError("DUPLICATE_SIBLING", "A folder with this name already exists in the target location.")
    elif name_changed and folder_name_taken(target_name, target_parent_id, exclude_id=folder.id):
        raise ConflictError("DUPLICATE_SIBLING", "A folder with this name already exists in the same location.")

    new_path = folder.path
    if "name" in changes or "parent_id" in changes:
        new_path = build_path(target_name, target_parent_id)
    path_changed = new_path != folder.path

    expanded_changed = "is_expanded" in changes and bool(changes["is_expanded"]) != folder.is_expanded
    if not (name_changed or parent_changed or path_changed or expanded_changed):
        return folder

    try:
        if name_changed:
            folder.name = target_name
        if parent_changed:
            folder.parent_id = target_parent_id
        if expanded_changed:
            folder.is_expanded = bool(changes["is_expanded"])
        if path_changed:
            folder.path = new_path
            db.session.flush()
            rewritten = repath_descendants(folder.id, new_path)
            current_app.logger.info("Repathed folder %s to %s (%s descendants)", folder.id, new_path, rewritten)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return folder


def toggle_expanded(folder_id: int) -> Folder | None:
    folder = db.session.get(Folder, folder_id)
    if folder is None:
        return None
    return update_folder(folder_id, {"is_expanded": not folder.is_expanded})


def delete_folder(folder_id: int) -> bool:
    """Delete a folder, its subfolders, and every file filed anywhere below it."""
    folder = db.session.get(Folder, folder_id)
    if folder is None:
        return False

    folder_ids = subtree_folder_ids(folder.id)
    files = File.query.join(FolderFile, FolderFile.file_id == File.id).filter(FolderFile.folder_id.in_(folder_ids)).all()
    orphaned_blobs = [(item.id, item.storage_path) for item in files if item.storage_path]

    try:
        for item in files:
            db.session.delete(item)
        db.session.flush()
        db.session.delete(folder)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Deleted folder %s with %s subfolders and %s files", folder_id, len(folder_ids) - 1, len(files)
    )
    for file_id, storage_path in orphaned_blobs:
        discard_blob(file_id, storage_path)
    return True
