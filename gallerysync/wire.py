"""Parse-at-the-boundary helpers for remote API responses.

The API wraps every payload in a ``{success, message, data}`` envelope, and
errors as ``{success: false, error | message}``. Responses are decoded here
into tagged results so unvalidated shapes never reach the rest of the client.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

T = TypeVar("T")


class ApiEnvelope(BaseModel):
    """Standard response envelope."""

    success: bool = True
    message: str | None = None
    error: str | None = None
    data: Any = None


class UploadResponseData(BaseModel):
    """Payload returned by the upload endpoint."""

    url: str
    filename: str | None = None
    folder: str | None = None
    size: int | None = None
    type: str | None = None
    id: str | int | None = None


@dataclass
class Decoded(Generic[T]):
    """A response that matched the expected shape."""

    value: T
    message: str | None = None


@dataclass
class DecodeFailure:
    """A response that did not match the expected shape, or reported failure."""

    reason: str


def parse_envelope(payload: Any, data_type: Any) -> Decoded | DecodeFailure:
    """Decode an envelope and validate its ``data`` against ``data_type``."""
    try:
        envelope = ApiEnvelope.model_validate(payload)
    except PydanticValidationError as e:
        return DecodeFailure(reason=f"Malformed response: {e.error_count()} validation error(s)")

    if not envelope.success:
        return DecodeFailure(reason=envelope.error or envelope.message or "Request failed")

    if data_type is None:
        return Decoded(value=None, message=envelope.message)

    try:
        value = TypeAdapter(data_type).validate_python(envelope.data)
    except PydanticValidationError as e:
        return DecodeFailure(reason=f"Unexpected response data: {e.errors()[0]['msg']}")

    return Decoded(value=value, message=envelope.message)


def parse_upload_response(payload: Any) -> Decoded[UploadResponseData] | DecodeFailure:
    """Decode the upload endpoint response."""
    return parse_envelope(payload, UploadResponseData)


def error_message_from(payload: Any, fallback: str) -> str:
    """Best-effort error message from an error response body."""
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback
