"""Error taxonomy for the identity service.

Every failure surfaced to a caller is one of the classes below. The FastAPI
handlers in `oraclenet_identity.main` render them as
``{"success": false, "error": ...}`` with the class' HTTP status code.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class IdentityServiceError(Exception):
    """Base error carrying an HTTP status and optional debug details."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, debug: dict[str, Any] | None = None) -> None:
        self.message = message
        self.debug = debug
        super().__init__(message)

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"success": False, "error": self.message}
        if self.debug:
            content["debug"] = self.debug
        return content


class ValidationError(IdentityServiceError):
    """Malformed input. The caller must fix the request."""

    status_code = status.HTTP_400_BAD_REQUEST


class VerificationError(IdentityServiceError):
    """A signature or proof did not check out. The caller must re-sign."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(IdentityServiceError):
    """An expired or absent nonce, root, or request. The caller restarts the flow."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(IdentityServiceError):
    """Address mismatch or a state-machine precondition was violated."""

    status_code = status.HTTP_403_FORBIDDEN


class UpstreamError(IdentityServiceError):
    """GitHub or the state store failed; the upstream message is passed through."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def identity_error_handler(request: Request, exc: IdentityServiceError) -> JSONResponse:
    """Render an IdentityServiceError in the public error envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request-body validation failures as 400s in the same envelope."""
    missing = [
        str(err["loc"][-1])
        for err in exc.errors()
        if err.get("type") == "missing" and err.get("loc")
    ]
    if missing:
        message = f"{', '.join(missing)} required"
    else:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any other exception as a generic 500."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "An unexpected error occurred"},
    )
