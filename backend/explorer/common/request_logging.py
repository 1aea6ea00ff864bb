from __future__ import annotations

import time

from flask import Flask, Response, g, request


SKIP_PREFIXES = ("/health",)


def _skipped(path: str, api_prefix: str) -> bool:
    return any(path.startswith(prefix) or path.startswith(f"{api_prefix}{prefix}") for prefix in SKIP_PREFIXES)


def register_request_logging(app: Flask) -> None:
    api_prefix = app.config["API_PREFIX"].rstrip("/")

    @app.before_request
    def log_request_start() -> None:
        g.request_started_at = time.perf_counter()
        if not _skipped(request.path, api_prefix):
            app.logger.info("%s %s", request.method, request.path)

    @app.after_request
    def log_request_end(response: Response) -> Response:
        if _skipped(request.path, api_prefix):
            return response
        started = g.get("request_started_at")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        app.logger.info("%s %s - %s (%.1f ms)", request.method, request.path, response.status_code, elapsed_ms)
        return response
