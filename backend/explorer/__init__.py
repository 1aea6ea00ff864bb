from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from flask import Flask, jsonify

from .common.errors import register_error_handlers, success_payload
from .common.request_logging import register_request_logging
from .common.storage import LocalBlobStore
from .config import Config, engine_options
from .extensions import cors, db, migrate
from .files import files_bp
from .folders import folders_bp


load_dotenv()


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)
        if "SQLALCHEMY_DATABASE_URI" in config_override and "SQLALCHEMY_ENGINE_OPTIONS" not in config_override:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(app.config["SQLALCHEMY_DATABASE_URI"])

    app.logger.setLevel(app.config["LOG_LEVEL"])

    storage_root = Path(app.config["STORAGE_ROOT"])
    storage_root.mkdir(parents=True, exist_ok=True)
    app.extensions["blob_store"] = LocalBlobStore(storage_root)

    api_prefix = app.config["API_PREFIX"].rstrip("/")

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={rf"{api_prefix}/*": {"origins": app.config["FRONTEND_ORIGINS"]}})

    app.register_blueprint(folders_bp, url_prefix=f"{api_prefix}/folders")
    app.register_blueprint(files_bp, url_prefix=f"{api_prefix}/files")

    def healthcheck():
        payload = success_payload({"timestamp": datetime.now(timezone.utc).isoformat()}, "Server is healthy")
        return jsonify(payload)

    app.add_url_rule("/health", "health", healthcheck, methods=["GET"])
    app.add_url_rule(f"{api_prefix}/health", "api_health", healthcheck, methods=["GET"])

    register_error_handlers(app)
    register_request_logging(app)

    return app
