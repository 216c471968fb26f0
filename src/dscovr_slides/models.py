"""Data models for timeline posts and slideshow slides."""

import re
from dataclasses import dataclass

import httpx

from .json_value import JSONValue, TypeMismatch

# Suffix asking pbs.twimg.com for the large rendition of a photo
LARGE_PHOTO_SUFFIX = ":large"

# Trailing sentence punctuation stays in the caption
LINK_RE = re.compile(r"(?:https?://|www\.)\S*[^\s.,;:!?)]", re.IGNORECASE)


class Post:
    """Read-only view over one entry of a user_timeline response."""

    __slots__ = ("json",)

    def __init__(self, json: JSONValue):
        self.json = json

    @classmethod
    def from_json(cls, value: JSONValue) -> "Post":
        if value.as_object() is None:
            raise TypeMismatch("Post must be a JSON object")
        return cls(value)

    def __repr__(self) -> str:
        return f"Post(id={self.id!r}, screen_name={self.screen_name!r})"

    def _string(self, *path: str | int) -> str | None:
        value = self.json.get(*path)
        return value.as_string() if value else None

    @property
    def id(self) -> str | None:
        return self._string("id_str")

    @property
    def text(self) -> str | None:
        return self._string("text")

    @property
    def screen_name(self) -> str | None:
        return self._string("user", "screen_name")

    @property
    def caption(self) -> str:
        """The post text with links removed, prefixed with "@<screen_name> "."""
        text = self.text
        if text is None:
            return ""
        prefix = f"@{self.screen_name} " if self.screen_name else ""
        return prefix + LINK_RE.sub("", text)

    @property
    def photo_url(self) -> str | None:
        """URL of the large rendition of the first attached photo, if any."""
        media_url = self._string("entities", "media", 0, "media_url_https")
        if media_url is None:
            return None
        url = media_url + LARGE_PHOTO_SUFFIX
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL:
            return None
        if parsed.scheme not in ("http", "https") or not parsed.host:
            return None
        return url


@dataclass(frozen=True)
class Image:
    data: bytes
    format: str  # "jpeg", "png", "gif", "webp"

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format


@dataclass(frozen=True)
class Slide:
    caption: str
    image: Image
