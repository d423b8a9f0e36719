"""Error types and schemas for the MCP server."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for tool responses."""

    ARGUMENT_DECODE_ERROR = "ARGUMENT_DECODE_ERROR"
    INVALID_TIME_EXPRESSION = "INVALID_TIME_EXPRESSION"
    MALFORMED_BASE_URL = "MALFORMED_BASE_URL"
    BACKEND_UNREACHABLE = "BACKEND_UNREACHABLE"
    BACKEND_HTTP_ERROR = "BACKEND_HTTP_ERROR"
    BACKEND_DECODE_ERROR = "BACKEND_DECODE_ERROR"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    FORMAT_RENDER_ERROR = "FORMAT_RENDER_ERROR"


class ErrorDetail(BaseModel):
    """Structured error details."""

    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorDetail


class LokiMCPError(Exception):
    """
    Base exception for loki-mcp errors.

    Subclasses fix the error code and the pipeline stage. The stage prefixes
    the string form so callers can tell which step of a tool call failed.
    """

    code: ErrorCode
    stage: str = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"

    def to_response(self) -> ErrorResponse:
        """Convert to error response model."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.code,
                message=str(self),
                details=self.details if self.details else None,
            )
        )


class ArgumentDecodeError(LokiMCPError):
    """Tool arguments are malformed or a required argument is missing."""

    code = ErrorCode.ARGUMENT_DECODE_ERROR
    stage = "invalid arguments"


class InvalidTimeExpression(LokiMCPError):
    """Time string is neither 'now', a negative offset, nor RFC3339."""

    code = ErrorCode.INVALID_TIME_EXPRESSION
    stage = "invalid time"


class MalformedBaseURL(LokiMCPError):
    """Loki base URL cannot be parsed."""

    code = ErrorCode.MALFORMED_BASE_URL
    stage = "failed to build URL"


class BackendUnreachable(LokiMCPError):
    """Network, connect or timeout failure talking to Loki."""

    code = ErrorCode.BACKEND_UNREACHABLE
    stage = "query execution failed"


class BackendHTTPError(LokiMCPError):
    """Loki answered with a non-2xx status."""

    code = ErrorCode.BACKEND_HTTP_ERROR
    stage = "query execution failed"

    def __init__(self, status_code: int, body: str, url: str | None = None):
        self.status_code = status_code
        self.body = body
        details: dict[str, Any] = {"status_code": status_code, "response": body}
        if url:
            details["url"] = url
        super().__init__(f"Loki returned HTTP {status_code}: {body}", details)


class BackendDecodeError(LokiMCPError):
    """Loki response body is not the JSON envelope we expect."""

    code = ErrorCode.BACKEND_DECODE_ERROR
    stage = "query execution failed"


class UnsupportedFormat(LokiMCPError):
    """Output format is not one of raw, json or text."""

    code = ErrorCode.UNSUPPORTED_FORMAT
    stage = "failed to format results"


class FormatRenderError(LokiMCPError):
    """Decoded result could not be rendered."""

    code = ErrorCode.FORMAT_RENDER_ERROR
    stage = "failed to format results"
