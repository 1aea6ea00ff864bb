from __future__ import annotations

from typing import Any

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class ValidationError(APIError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(400, code, message, details)


class NotFoundError(APIError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(404, code, message, details)


class ConflictError(APIError):
    """Name collision or circular move; reported as a bad request like other validation failures."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(400, code, message, details)


class StorageError(APIError):
    def __init__(
        self,
        message: str,
        code: str = "STORAGE_FAILURE",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code, code, message, details)


class BlobNotFoundError(StorageError):
    def __init__(self, message: str = "File data not found on disk.", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="FILE_MISSING", status_code=404, details=details)


def success_payload(data: Any, message: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return payload


def error_payload(message: str, error: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "message": message}
    if error:
        payload["error"] = error
    return payload


def _is_development() -> bool:
    return str(current_app.config.get("APP_ENV", "")).lower() == "development"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):  # type: ignore[no-untyped-def]
        if error.status_code >= 500:
            app.logger.error("%s: %s", error.code, error.message, exc_info=error)
        return jsonify(error_payload(error.message, error.code)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):  # type: ignore[no-untyped-def]
        status = error.code or 500
        message = "Resource not found" if status == 404 else (error.description or "Request failed")
        return jsonify(error_payload(message, error.name)), status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[no-untyped-def]
        app.logger.exception("Unhandled exception", exc_info=error)
        detail = str(error) if _is_development() else "Something went wrong"
        return jsonify(error_payload("Internal server error", detail)), 500
