from __future__ import annotations

import os

from explorer import create_app
from explorer.extensions import db
from explorer.files import service as file_service
from explorer.folders import service as folder_service
from explorer.models import Folder


DEMO_TREE: dict[str, dict] = {
    "Documents": {"Reports": {"2026": {}}, "Invoices": {}},
    "Pictures": {"Holidays": {}},
    "Music": {},
}

DEMO_FILES: list[tuple[str, str | None, str]] = [
    ("readme.txt", None, "text/plain"),
    ("summary.pdf", "/Documents/Reports", "application/pdf"),
    ("beach.jpg", "/Pictures/Holidays", "image/jpeg"),
]


def _seed_folders(tree: dict[str, dict], parent_id: int | None = None) -> int:
    created = 0
    pending = [(parent_id, tree)]
    while pending:
        current_parent, level = pending.pop()
        for name, subtree in level.items():
            folder = Folder.query.filter_by(parent_id=current_parent, name=name).one_or_none()
            if folder is None:
                folder = folder_service.create_folder(name, current_parent)
                created += 1
            pending.append((folder.id, subtree))
    return created


def _seed_files() -> int:
    created = 0
    for name, folder_path, mime_type in DEMO_FILES:
        folder_id = None
        if folder_path is not None:
            folder = Folder.query.filter_by(path=folder_path).one()
            folder_id = folder.id
        existing = [item for item in file_service.find_by_folder_id(folder_id) if item.name == name]
        if existing:
            continue
        file_service.create_file(name, folder_id=folder_id, mime_type=mime_type, size=0)
        created += 1
    return created


def main() -> None:
    app = create_app()

    with app.app_context():
        db.create_all()
        if os.getenv("SEED_DEMO_DATA", "true").strip().lower() in {"0", "false", "no", "off"}:
            print("Schema ready, demo data skipped.")
            return

        folders = _seed_folders(DEMO_TREE)
        files = _seed_files()
        print(f"Seeded {folders} folders and {files} files.")


if __name__ == "__main__":
    main()
