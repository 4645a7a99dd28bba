# hub/errors.py
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger


class BaaSError(Exception):
    """Failure reported by the data tier (table, auth or storage call)."""

    status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        if status is not None:
            self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
        }

    @classmethod
    def from_body(cls, body: Any, status: int) -> "BaaSError":
        # PostgREST: {message, code, details, hint}; GoTrue: {msg|error_description, error_code}
        if not isinstance(body, dict):
            return cls(str(body) or f"HTTP {status}", status=status)
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or f"HTTP {status}"
        )
        code = body.get("error_code") or body.get("code")
        return cls(
            str(message),
            code=str(code) if code is not None else None,
            details=body.get("details"),
            hint=body.get("hint"),
            status=status,
        )


class AuthError(BaaSError):
    status = 401


class NotFoundError(BaaSError):
    status = 404


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaaSError)
    async def _baas_error(request: Request, exc: BaaSError):
        if exc.status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status}: {exc.message}")
        return JSONResponse(status_code=exc.status, content=exc.to_dict())
