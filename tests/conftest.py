"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from dscovr_slides.json_value import JSONValue
from dscovr_slides.models import Image, Post, Slide

FIXTURES_DIR = Path(__file__).parent / "fixtures"

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def timeline_data() -> list[dict]:
    """Load the sample user_timeline response."""
    with open(FIXTURES_DIR / "user_timeline.json") as f:
        return json.load(f)


@pytest.fixture
def sample_post() -> Post:
    return Post(
        JSONValue(
            {
                "text": "Check this out https://t.co/abc",
                "user": {"screen_name": "bot"},
                "entities": {
                    "media": [{"media_url_https": "https://pbs.example/img.jpg"}]
                },
            }
        )
    )


@pytest.fixture
def sample_slides() -> list[Slide]:
    return [
        Slide(
            caption="@dscovr_epic 2016-04-20 18:13:24 ",
            image=Image(data=JPEG_BYTES, format="jpeg"),
        ),
        Slide(
            caption="@dscovr_epic 2016-04-19 17:02:11 ",
            image=Image(data=PNG_BYTES, format="png"),
        ),
    ]
