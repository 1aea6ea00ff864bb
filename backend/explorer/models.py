from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .extensions import db


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Folder(db.Model):
    __tablename__ = "folders"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True)
    path = db.Column(db.Text, nullable=False, index=True)
    is_expanded = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    parent = db.relationship("Folder", remote_side=[id], back_populates="children")
    children = db.relationship("Folder", back_populates="parent", cascade="all, delete-orphan", passive_deletes=True)
    memberships = db.relationship("FolderFile", back_populates="folder", cascade="all, delete-orphan", passive_deletes=True)

    # Root-level duplicates (parent_id NULL) are not caught here; the folder service checks them.
    __table_args__ = (db.UniqueConstraint("parent_id", "name", name="uq_folder_parent_name"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "path": self.path,
            "isExpanded": self.is_expanded,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class File(db.Model):
    __tablename__ = "files"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    path = db.Column(db.Text, nullable=False)
    mime_type = db.Column(db.String(255), nullable=True)
    size = db.Column(db.BigInteger, nullable=False, default=0)
    storage_path = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    membership = db.relationship(
        "FolderFile",
        back_populates="file",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def folder_id(self) -> int | None:
        return self.membership.folder_id if self.membership is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "mimeType": self.mime_type,
            "size": self.size,
            "storagePath": self.storage_path,
            "folderId": self.folder_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class FolderFile(db.Model):
    """Membership row: a file belongs to at most one folder, no row means root."""

    __tablename__ = "folders_files"

    file_id = db.Column(db.Integer, db.ForeignKey("files.id", ondelete="CASCADE"), primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("folders.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    file = db.relationship("File", back_populates="membership")
    folder = db.relationship("Folder", back_populates="memberships")
