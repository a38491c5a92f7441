"""Image encoding helpers and the anchor image cache."""

import base64
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

from .errors import AnchorNotFoundError

logger = logging.getLogger(__name__)

_PNG_MODES = {"1", "L", "LA", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class EncodedImage:
    """A PNG image as raw base64, ready for model payloads."""

    data: str
    media_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


def encode_image(image: Union[Image.Image, Path, str]) -> EncodedImage:
    """Re-encode an image file or PIL image as base64 PNG.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file is not a readable image.
    """
    if isinstance(image, (str, Path)):
        try:
            with Image.open(image) as opened:
                opened.load()
                image = opened.copy()
        except UnidentifiedImageError as exc:
            raise ValueError(f"Not a readable image: {image}") from exc

    if image.mode not in _PNG_MODES:
        image = image.convert("RGB")

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return EncodedImage(data=base64.b64encode(buffer.getvalue()).decode("utf-8"))


class AnchorCache:
    """Keeps encoded anchor images so shots sharing an anchor read it once.

    Not thread-safe; shots are processed sequentially.
    """

    def __init__(self):
        self._entries: dict[Path, EncodedImage] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: Path) -> bool:
        return Path(path).resolve() in self._entries

    def load(self, path: Path) -> EncodedImage:
        """Return the encoded anchor at ``path``, reading it on first use.

        Raises:
            AnchorNotFoundError: If the anchor file is missing, unreadable
                or not an image.
        """
        key = Path(path).resolve()
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        if not key.is_file():
            raise AnchorNotFoundError(f"Anchor image not found: {key}")
        try:
            encoded = encode_image(key)
        except (OSError, ValueError) as exc:
            raise AnchorNotFoundError(str(exc)) from exc

        logger.debug("Cached anchor %s", key.name)
        self._entries[key] = encoded
        return encoded

    def clear(self) -> None:
        self._entries.clear()
