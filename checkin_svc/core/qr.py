from __future__ import annotations
import base64
import logging
from io import BytesIO

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image

from .errors import EncodingError

logger = logging.getLogger(__name__)

PNG_DATA_URI_PREFIX = "data:image/png;base64,"

def render_png(
    text: str,
    *,
    width: int = 256,
    margin: int = 2,
    dark: str = "#000000",
    light: str = "#ffffff",
) -> bytes:
    """
    Render ``text`` as a square QR PNG exactly ``width`` pixels wide,
    with a quiet zone of ``margin`` modules on every side.
    """
    if width <= 0:
        raise EncodingError(f"width must be positive, got {width}")
    if margin < 0:
        raise EncodingError(f"margin must not be negative, got {margin}")

    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=1, border=margin)
    try:
        qr.add_data(text)
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as exc:
        logger.warning("QR payload of %d chars does not fit a QR symbol", len(text))
        raise EncodingError("payload exceeds QR capacity") from exc

    modules = qr.modules_count + 2 * margin
    if width < modules:
        raise EncodingError(f"width {width}px is smaller than the {modules} modules of the symbol")
    qr.box_size = width // modules

    try:
        img = qr.make_image(fill_color=dark, back_color=light).get_image().convert("RGB")
    except ValueError as exc:
        raise EncodingError(f"invalid QR colors {dark!r}/{light!r}") from exc
    if img.size != (width, width):
        img = img.resize((width, width), Image.Resampling.NEAREST)

    b = BytesIO()
    img.save(b, format="PNG")
    return b.getvalue()

def to_data_uri(png: bytes) -> str:
    return PNG_DATA_URI_PREFIX + base64.b64encode(png).decode("ascii")

def from_data_uri(uri: str) -> bytes:
    if not uri.startswith(PNG_DATA_URI_PREFIX):
        raise ValueError("not a PNG data URI")
    return base64.b64decode(uri[len(PNG_DATA_URI_PREFIX):])
