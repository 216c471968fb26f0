"""Fetch photos and recognise their image format."""

import logging

import httpx

from .models import Image
from .tasks import AsyncTask

logger = logging.getLogger(__name__)

# (magic prefix, format); WebP is checked separately
_SIGNATURES = [
    (b"\xff\xd8\xff", "jpeg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
]


def decode_image(data: bytes) -> Image | None:
    """Return an Image if ``data`` starts like a known image format."""
    for signature, fmt in _SIGNATURES:
        if data.startswith(signature):
            return Image(data=data, format=fmt)
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return Image(data=data, format="webp")
    return None


class FetchImageTask(AsyncTask):
    """Downloads one image. ``image`` is set once the task finishes, or stays None."""

    def __init__(self, url: str, http: httpx.Client):
        super().__init__(name=f"fetch {url}")
        self.url = url
        self.image: Image | None = None
        self._http = http
        self.set_execution_block(self._execute)

    def _execute(self, finish) -> None:
        try:
            self.image = self._fetch()
        finally:
            finish()

    def _fetch(self) -> Image | None:
        try:
            response = self._http.get(self.url)
        except httpx.HTTPError as e:
            logger.warning("Error fetching %s: %s", self.url, e)
            return None

        if not response.is_success:
            logger.warning(
                "Error fetching %s: HTTP %d", self.url, response.status_code
            )
            return None

        image = decode_image(response.content)
        if image is None:
            logger.warning("Response from %s is not a recognised image", self.url)
        return image
