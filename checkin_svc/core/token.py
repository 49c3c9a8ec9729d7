"""
Check-in token payload and its codec.

The payload is the flat JSON object carried inside the attendee's QR code::

    {"registrationId": str, "eventId": str, "userId": str, "timestamp": int}

``decode`` sits directly behind a camera feed, so it never raises: anything
that is not a well-formed token comes back as ``None``.
"""
from __future__ import annotations
import json
import time
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import EncodingError
from .qr import render_png, to_data_uri

class CheckinToken(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True, populate_by_name=True, extra="ignore")

    registration_id: str = Field(alias="registrationId", min_length=1)
    event_id: str = Field(alias="eventId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    issued_at: int = Field(alias="timestamp", ge=0)  # ms since epoch

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

WIRE_KEYS = ("registrationId", "eventId", "userId", "timestamp")

@dataclass(frozen=True)
class TokenParse:
    token: CheckinToken | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.token is not None

@dataclass(frozen=True)
class RenderedToken:
    text: str
    data_uri: str

def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
    return f"{loc}: {err.get('msg', 'invalid')}"

def parse(raw_text: Any) -> TokenParse:
    if not isinstance(raw_text, str):
        return TokenParse(error="scan is not text")
    try:
        data = json.loads(raw_text)
    except (ValueError, RecursionError):
        return TokenParse(error="not JSON")
    if not isinstance(data, dict):
        return TokenParse(error="not a JSON object")
    # only the wire keys count; extra keys are ignored
    wire = {k: data[k] for k in WIRE_KEYS if k in data}
    try:
        return TokenParse(token=CheckinToken.model_validate(wire))
    except ValidationError as exc:
        return TokenParse(error=_first_error(exc))

def decode(raw_text: Any) -> CheckinToken | None:
    return parse(raw_text).token

def shape_error(token: Any) -> str | None:
    """Re-check a token object that may not have passed through ``parse``
    (e.g. built with ``model_construct``). None when well formed."""
    try:
        wire = {
            "registrationId": getattr(token, "registration_id"),
            "eventId": getattr(token, "event_id"),
            "userId": getattr(token, "user_id"),
            "timestamp": getattr(token, "issued_at"),
        }
    except AttributeError as exc:
        return str(exc)
    try:
        CheckinToken.model_validate(wire)
    except ValidationError as exc:
        return _first_error(exc)
    return None

def encode_payload(token: CheckinToken) -> str:
    err = shape_error(token)
    if err:
        raise EncodingError(f"malformed token: {err}")
    return json.dumps(token.to_wire(), separators=(",", ":"))

def encode(
    token: CheckinToken,
    *,
    width: int = 256,
    margin: int = 2,
    dark: str = "#000000",
    light: str = "#ffffff",
) -> RenderedToken:
    text = encode_payload(token)
    png = render_png(text, width=width, margin=margin, dark=dark, light=light)
    return RenderedToken(text=text, data_uri=to_data_uri(png))

def now_ms() -> int:
    return time.time_ns() // 1_000_000
