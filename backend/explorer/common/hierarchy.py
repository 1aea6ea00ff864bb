"""Materialized-path maintenance shared by the folder and file services.

``parent_id`` links (and membership rows for files) are the source of truth;
``path`` columns are a cached ``/a/b/c`` rendering of that chain and must be
rewritten whenever an ancestor is renamed or moved.
"""

from __future__ import annotations

from ..extensions import db
from ..models import File, Folder, FolderFile
from .errors import NotFoundError


def join_path(parent_path: str | None, name: str) -> str:
    if parent_path is None:
        return f"/{name}"
    return f"{parent_path}/{name}"


def build_path(name: str, parent_id: int | None) -> str:
    if parent_id is None:
        return join_path(None, name)

    parent = db.session.get(Folder, parent_id)
    if parent is None:
        raise NotFoundError("PARENT_NOT_FOUND", "Parent folder not found.", {"parentId": parent_id})
    return join_path(parent.path, name)


def folder_name_taken(name: str, parent_id: int | None, exclude_id: int | None = None) -> bool:
    query = Folder.query.filter(Folder.name == name)
    if parent_id is None:
        query = query.filter(Folder.parent_id.is_(None))
    else:
        query = query.filter(Folder.parent_id == parent_id)
    if exclude_id is not None:
        query = query.filter(Folder.id != exclude_id)
    return query.first() is not None


def file_name_taken(name: str, folder_id: int | None, exclude_id: int | None = None) -> bool:
    query = File.query.filter(File.name == name)
    if folder_id is None:
        query = query.filter(~File.membership.has())
    else:
        query = query.join(FolderFile, FolderFile.file_id == File.id).filter(FolderFile.folder_id == folder_id)
    if exclude_id is not None:
        query = query.filter(File.id != exclude_id)
    return query.first() is not None


def creates_cycle(folder_id: int, proposed_parent_id: int | None) -> bool:
    if proposed_parent_id is None:
        return False
    if proposed_parent_id == folder_id:
        return True

    seen: set[int] = set()
    current_id: int | None = proposed_parent_id
    while current_id is not None and current_id not in seen:
        if current_id == folder_id:
            return True
        seen.add(current_id)
        current = db.session.get(Folder, current_id)
        if current is None:
            break
        current_id = current.parent_id
    return False


def _repath_member_files(folder_id: int, folder_path: str) -> None:
    members = File.query.join(FolderFile, FolderFile.file_id == File.id).filter(FolderFile.folder_id == folder_id).all()
    for item in members:
        item.path = join_path(folder_path, item.name)


def repath_descendants(folder_id: int, new_path: str) -> int:
    """Rewrite paths below ``folder_id`` after its own path became ``new_path``.

    Walks the subtree with an explicit stack so deep trees cannot exhaust the
    interpreter stack. Files filed in any visited folder are repathed too.
    Returns the number of descendant folders rewritten.
    """
    stack: list[tuple[int, str]] = [(folder_id, new_path)]
    visited = {folder_id}
    rewritten = 0

    while stack:
        parent_id, parent_path = stack.pop()
        _repath_member_files(parent_id, parent_path)

        for child in Folder.query.filter(Folder.parent_id == parent_id).all():
            if child.id in visited:
                continue
            visited.add(child.id)
            child.path = join_path(parent_path, child.name)
            rewritten += 1
            stack.append((child.id, child.path))

    return rewritten


def subtree_folder_ids(folder_id: int) -> list[int]:
    collected: list[int] = []
    stack = [folder_id]
    seen: set[int] = set()
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        collected.append(current)
        child_ids = db.session.execute(db.select(Folder.id).where(Folder.parent_id == current)).scalars().all()
        stack.extend(child_ids)
    return collected
