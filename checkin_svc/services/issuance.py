from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from ..core.errors import EncodingError
from ..core.token import CheckinToken, encode, now_ms

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class IssuedToken:
    token: CheckinToken
    text: str
    data_uri: str

class IssuanceService:
    """Creates the check-in token for an approved registration and renders its QR."""

    def __init__(
        self,
        *,
        width: int = 256,
        margin: int = 2,
        dark: str = "#000000",
        light: str = "#ffffff",
        clock: Callable[[], int] = now_ms,
    ):
        self.width = width
        self.margin = margin
        self.dark = dark
        self.light = light
        self._clock = clock

    def issue(self, *, registration_id: str, event_id: str, user_id: str) -> IssuedToken:
        try:
            token = CheckinToken(
                registration_id=registration_id,
                event_id=event_id,
                user_id=user_id,
                issued_at=self._clock(),
            )
        except ValidationError as exc:
            raise EncodingError(f"malformed token for registration {registration_id!r}") from exc
        rendered = encode(token, width=self.width, margin=self.margin, dark=self.dark, light=self.light)
        logger.info("issued check-in token for %s (event %s)", registration_id, event_id)
        return IssuedToken(token=token, text=rendered.text, data_uri=rendered.data_uri)
