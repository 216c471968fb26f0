"""Fetch a user's timeline, download the photos, and hand slides to a display.

    timeline GET ──> FetchImageTask per photo ──> show task ──> display(slides)

The show task depends on every fetch task, so the display only sees slides
once all downloads have finished (successfully or not).
"""

import logging
from collections.abc import Callable
from concurrent.futures import Future

import httpx

from .client import USER_TIMELINE_ENDPOINT, APIClient, HTTPMethod
from .images import FetchImageTask
from .models import Post, Slide
from .tasks import AsyncTask, TaskQueue

logger = logging.getLogger(__name__)

DEFAULT_SCREEN_NAME = "dscovr_epic"
DEFAULT_COUNT = 20


def assemble_slides(posts: list[Post], fetches: list[FetchImageTask]) -> list[Slide]:
    """Pair posts with their fetched images, dropping failed downloads."""
    return [
        Slide(caption=post.caption, image=fetch.image)
        for post, fetch in zip(posts, fetches)
        if fetch.image is not None
    ]


def show_timeline(
    client: APIClient,
    display: Callable[[list[Slide]], None],
    *,
    http: httpx.Client,
    image_queue: TaskQueue,
    screen_name: str = DEFAULT_SCREEN_NAME,
    count: int = DEFAULT_COUNT,
) -> "Future[list[Slide] | None]":
    """Start the pipeline and return a future for the slides shown.

    The future resolves to None when the timeline could not be fetched, and
    carries the exception if ``display`` raised. Raises APIError if the
    timeline request cannot be built.
    """
    result: Future = Future()

    def show(posts: list[Post], fetches: list[FetchImageTask], finish) -> None:
        try:
            slides = assemble_slides(posts, fetches)
            logger.info("Showing %d slides", len(slides))
            display(slides)
        except Exception as e:
            result.set_exception(e)
        else:
            result.set_result(slides)
        finally:
            finish()

    def on_posts(posts: list[Post] | None) -> None:
        if posts is None:
            logger.error("Failed to fetch posts for @%s", screen_name)
            result.set_result(None)
            return

        try:
            with_photos = [post for post in posts if post.photo_url]
            logger.info(
                "%d of %d posts from @%s have photos",
                len(with_photos),
                len(posts),
                screen_name,
            )
            fetches = [FetchImageTask(post.photo_url, http) for post in with_photos]

            show_task = AsyncTask(
                lambda finish: show(with_photos, fetches, finish),
                name="show slideshow",
            )
            for fetch in fetches:
                show_task.add_dependency(fetch)
                image_queue.add_task(fetch)
            image_queue.add_task(show_task)
        except Exception as e:
            result.set_exception(e)

    client.make_api_call(
        HTTPMethod.GET,
        USER_TIMELINE_ENDPOINT,
        list[Post],
        on_posts,
        params={"screen_name": screen_name, "count": str(count)},
    )
    return result
