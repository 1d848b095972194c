"""
Image preparation — normalise the upload before it goes to the model.

The source is centre-cropped to the target aspect ratio and drawn onto a
white canvas of fixed width (transparent areas become white), then encoded
as JPEG. Also: data-URL helpers for callers that pass images as strings.
"""

from __future__ import annotations

import base64
import io
import re
from pathlib import Path
from typing import Tuple, Union

from PIL import Image

from .models import AspectRatio, ImagePayload

JPEG_QUALITY = 95
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.+)$", re.DOTALL)

_EXT_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


class ImagePreparationError(ValueError):
    pass


# ── Data URLs ─────────────────────────────────────────────────────────────────

def data_url_to_payload(data_url: str) -> ImagePayload:
    m = _DATA_URL_RE.match(data_url.strip())
    if not m:
        raise ImagePreparationError("Invalid data URL")
    try:
        data = base64.b64decode(m.group("data"), validate=True)
    except ValueError as e:
        raise ImagePreparationError("Invalid data URL") from e
    return ImagePayload(data=data, mime_type=m.group("mime"))


def payload_to_data_url(payload: ImagePayload) -> str:
    return f"data:{payload.mime_type};base64,{base64.b64encode(payload.data).decode('ascii')}"


def load_image_file(path: Union[str, Path]) -> ImagePayload:
    path = Path(path)
    mime = _EXT_MIME.get(path.suffix.lower(), "image/jpeg")
    return ImagePayload(data=path.read_bytes(), mime_type=mime)


def extension_for(mime_type: str) -> str:
    for ext, mime in _EXT_MIME.items():
        if mime == mime_type and ext != ".jpeg":
            return ext
    return ".png"


# ── Canvas ────────────────────────────────────────────────────────────────────

def canvas_size(aspect_ratio: AspectRatio, width: int = 1024) -> Tuple[int, int]:
    ratio = AspectRatio(aspect_ratio).ratio
    return width, round(width / ratio)


def _crop_box(iw: int, ih: int, target_ratio: float) -> Tuple[int, int, int, int]:
    """Largest centred box in (iw × ih) with the target ratio."""
    if iw / ih > target_ratio:
        sw = round(ih * target_ratio)
        sx = (iw - sw) // 2
        return sx, 0, sx + sw, ih
    sh = round(iw / target_ratio)
    sy = (ih - sh) // 2
    return 0, sy, iw, sy + sh


def prepare_image(payload: ImagePayload, aspect_ratio: AspectRatio, width: int = 1024) -> ImagePayload:
    """Centre-crop to `aspect_ratio`, scale onto a white `width`-wide canvas, encode JPEG q95."""
    try:
        img = Image.open(io.BytesIO(payload.data))
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ImagePreparationError(f"Could not read image: {e}") from e

    w, h = canvas_size(aspect_ratio, width)
    src = img.convert("RGBA")
    cropped = src.crop(_crop_box(src.width, src.height, w / h)).resize((w, h), Image.LANCZOS)

    canvas = Image.new("RGB", (w, h), (255, 255, 255))
    canvas.paste(cropped, (0, 0), cropped)

    buf = io.BytesIO()
    canvas.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return ImagePayload(data=buf.getvalue(), mime_type="image/jpeg")
