from __future__ import annotations

from pathlib import Path

import pytest

from explorer import create_app
from explorer.extensions import db


@pytest.fixture
def app(tmp_path: Path):
    db_path = tmp_path / "test.db"
    storage_path = tmp_path / "storage"

    app = create_app(
        {
            "TESTING": True,
            "APP_ENV": "test",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "STORAGE_ROOT": str(storage_path),
            "BASE_URL": "http://files.test",
            "API_PREFIX": "/api/v1",
        }
    )

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage_root(app) -> Path:
    return Path(app.config["STORAGE_ROOT"])
