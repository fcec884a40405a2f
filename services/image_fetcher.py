import logging
import mimetypes
from dataclasses import dataclass
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class FetchError(Exception):
    pass


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    mime_type: str


def create_session():
    session = requests.Session()
    session.headers.update({
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/90.0.4430.93 Safari/537.36"
        ),
        "Accept": "image/*,*/*;q=0.8",
    })
    return session


def guess_mime_type(url, content_type=None):
    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        if mime.startswith("image/"):
            return mime
    try:
        guessed, _ = mimetypes.guess_type(urlparse(url).path)
    except ValueError:
        return DEFAULT_MIME_TYPE
    if guessed and guessed.startswith("image/"):
        return guessed
    return DEFAULT_MIME_TYPE


class ImageFetcher:
    """Single-shot image download. Callers own the fallback; nothing is retried here."""

    def __init__(self, timeout=10.0, session=None):
        self.timeout = timeout
        self.session = session or create_session()

    def fetch_image(self, url: str) -> FetchedImage:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Image fetch failed: {url} -> {e}") from e

        if not response.content:
            raise FetchError(f"Image fetch returned no data: {url}")

        mime_type = guess_mime_type(url, response.headers.get("Content-Type"))
        logger.debug("Fetched %s (%d bytes, %s)", url, len(response.content), mime_type)
        return FetchedImage(data=response.content, mime_type=mime_type)
