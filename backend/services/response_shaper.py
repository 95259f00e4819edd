"""Maps pipeline outcomes to the external response and error bodies."""
import base64
import logging
from http import HTTPStatus
from typing import Dict, Tuple

from models.api import VoiceResponse, ErrorResponse
from services.errors import ErrorKind, PipelineError
from services.orchestrator import PipelineResult

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UPSTREAM: 503,
    ErrorKind.INTERNAL: 500,
}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def audio_data_url(audio: bytes, mime_type: str = "audio/mpeg") -> str:
    """Inline audio as a data: URL the browser can play without another fetch."""
    return f"data:{mime_type};base64,{base64.b64encode(audio).decode('ascii')}"


def shape_success(result: PipelineResult) -> VoiceResponse:
    return VoiceResponse(
        textResponse=result.text,
        audioUrl=audio_data_url(result.audio) if result.audio else ""
    )


def error_body(kind: ErrorKind, message: str) -> Tuple[int, ErrorResponse]:
    status_code = STATUS_CODES[kind]
    return status_code, ErrorResponse(error=kind.value, message=message, statusCode=status_code)


def shape_error(exc: Exception) -> Tuple[int, ErrorResponse]:
    """
    Turn any exception into a status code and error body.

    Pipeline errors keep their message; anything else becomes a generic
    internal error so that internal details are not exposed.
    """
    if isinstance(exc, PipelineError):
        return error_body(exc.kind, exc.message)

    logger.error(f"Unhandled error: {exc!r}")
    return error_body(ErrorKind.INTERNAL, GENERIC_ERROR_MESSAGE)


def shape_http_error(status_code: int, method: str, path: str, detail: str) -> ErrorResponse:
    """
    Error body for failures raised by routing rather than the pipeline
    (unknown route, wrong method and the like).
    """
    if status_code == 404:
        return ErrorResponse(
            error="NotFound",
            message=f"Route {method} {path} not found",
            statusCode=404
        )
    try:
        name = HTTPStatus(status_code).phrase.replace(" ", "").replace("-", "")
    except ValueError:
        name = ErrorKind.INTERNAL.value if status_code >= 500 else "HTTPError"
    return ErrorResponse(error=name, message=detail or GENERIC_ERROR_MESSAGE, statusCode=status_code)
