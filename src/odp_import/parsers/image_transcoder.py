"""Embedded image transcoding with Pillow."""

import base64
import binascii
import io
import logging
from typing import Iterable, Optional, Tuple

from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_TYPES = ("image/png", "image/jpeg", "image/gif")

# 1x1 transparent PNG
PLACEHOLDER_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

_CONTENT_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}
_SAVEABLE_MODES = {"1", "L", "LA", "P", "RGB", "RGBA"}


class ImageTranscoder:
    """
    Re-encodes images whose content type the front end cannot display.

    Supported types pass through untouched. Anything else is decoded with
    Pillow and saved in ``target_format``; images Pillow cannot read are
    replaced by a 1x1 placeholder PNG.
    """

    def __init__(
        self,
        supported_types: Optional[Iterable[str]] = None,
        target_format: str = "PNG",
    ):
        self.supported_types = frozenset(
            t.lower() for t in (supported_types or DEFAULT_SUPPORTED_TYPES)
        )
        self.target_format = target_format.upper()
        self.converted_count = 0
        self.placeholder_count = 0

    @property
    def target_content_type(self) -> str:
        return f"image/{self.target_format.lower()}"

    def transcode(self, content_type: str, payload: str) -> Tuple[str, str]:
        """Return ``(content_type, base64 payload)`` suitable for embedding."""
        content_type = _CONTENT_TYPE_ALIASES.get(content_type.lower(), content_type.lower())
        if content_type in self.supported_types:
            return content_type, payload

        try:
            raw = base64.b64decode(payload, validate=True)
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                if img.mode not in _SAVEABLE_MODES:
                    img = img.convert("RGBA")
                buffer = io.BytesIO()
                img.save(buffer, format=self.target_format)
        except (binascii.Error, OSError, ValueError) as e:
            logger.warning(f"Could not transcode {content_type} image, using placeholder: {e}")
            self.placeholder_count += 1
            return "image/png", PLACEHOLDER_PNG

        self.converted_count += 1
        logger.debug(f"Transcoded {content_type} image to {self.target_content_type}")
        return self.target_content_type, base64.b64encode(buffer.getvalue()).decode("ascii")
