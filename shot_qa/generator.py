"""Reference-conditioned image edits via the fal.ai nano-banana endpoint."""

import logging
from pathlib import Path
from typing import Any, Optional

import fal_client
import requests

import config

from .errors import GenerationError
from .images import EncodedImage

logger = logging.getLogger(__name__)


class ImageGenerator:
    """Edits an anchor image into a new shot with a text prompt."""

    def __init__(
        self,
        model_id: str = config.FAL_EDIT_MODEL,
        output_format: str = "png",
        download_timeout: float = config.DOWNLOAD_TIMEOUT,
    ):
        """Initialize the generator.

        Args:
            model_id: fal.ai application id of the edit model.
            output_format: Image format requested from the service.
            download_timeout: Seconds to wait when fetching the result.
        """
        self.model_id = model_id
        self.output_format = output_format
        self.download_timeout = download_timeout

    @staticmethod
    def _on_queue_update(update) -> None:
        if isinstance(update, fal_client.InProgress) and update.logs:
            for entry in update.logs:
                logger.debug("fal: %s", entry.get("message", entry))

    @staticmethod
    def _extract_image_url(result: Any) -> Optional[str]:
        """Return the first image URL whatever envelope the SDK used."""
        if not isinstance(result, dict):
            return None
        images = result.get("images")
        if not images and isinstance(result.get("data"), dict):
            images = result["data"].get("images")
        if not images:
            return None
        first = images[0]
        if isinstance(first, dict):
            return first.get("url")
        return first if isinstance(first, str) else None

    def _download(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self.download_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise GenerationError(f"Failed to download generated image: {exc}") from exc
        return response.content

    def generate(self, reference: EncodedImage, prompt: str) -> bytes:
        """Generate a new image from the anchor and a prompt.

        Args:
            reference: The encoded anchor image. Required.
            prompt: The edit prompt.

        Returns:
            Raw bytes of the generated image.

        Raises:
            GenerationError: If the service fails or returns no image.
        """
        if reference is None:
            raise GenerationError("A reference image is required for every edit")

        try:
            result = fal_client.subscribe(
                self.model_id,
                arguments={
                    "prompt": prompt,
                    "image_urls": [reference.data_url],
                    "num_images": 1,
                    "output_format": self.output_format,
                },
                with_logs=True,
                on_queue_update=self._on_queue_update,
            )
        except Exception as exc:
            raise GenerationError(f"Image edit request failed: {exc}") from exc

        url = self._extract_image_url(result)
        if not url:
            raise GenerationError(f"No image returned from {self.model_id}")

        return self._download(url)

    def generate_and_save(
        self,
        reference: EncodedImage,
        prompt: str,
        output_path: Path,
    ) -> Path:
        """Generate an image and save it to disk, overwriting any existing file.

        Returns:
            The saved image path.
        """
        content = self.generate(reference, prompt)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(content)
        except OSError as exc:
            raise GenerationError(f"Could not save generated image: {exc}") from exc
        logger.info("Saved generated image to %s", output_path)

        return output_path
