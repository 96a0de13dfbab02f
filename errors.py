from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from logger import get_logger

logger = get_logger(__name__)


class GatewayError(Exception):
    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingParameter(GatewayError):
    status_code = 400
    default_message = "Missing shop parameter"


class Unauthorized(GatewayError):
    status_code = 401
    default_message = "Invalid API key"


class NotFound(GatewayError):
    status_code = 404
    default_message = "Store not found"


class UpstreamError(GatewayError):
    status_code = 500
    default_message = "An error occurred while fetching store data"


class AuthError(GatewayError):
    status_code = 500
    default_message = "Error during authentication"


def gateway_error_handler(request: Request, exc: GatewayError):
    # API routes answer in JSON, browser-facing routes in plain text
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    if request.url.path.startswith("/auth/"):
        return gateway_error_handler(request, AuthError())
    return gateway_error_handler(request, GatewayError())


def format_validation_errors(errors) -> str:
    fields = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.append(f"{'.'.join(loc) or 'body'}: {error.get('msg')}")
    return "Invalid request body (" + "; ".join(fields) + ")"


def validation_error_handler(request: Request, exc: RequestValidationError):
    return gateway_error_handler(request, MissingParameter(format_validation_errors(exc.errors())))
