"""Display slides: caption playback in the terminal and a markdown export.

Export layout:
    <output_dir>/001.jpg, 002.png, ...
    <output_dir>/slides.md
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path

import click

from .models import Slide

logger = logging.getLogger(__name__)

SLIDES_FILE = "slides.md"


class Slideshow:
    """Cycles through slides, showing one every ``speed`` seconds."""

    def __init__(
        self,
        speed: float = 3.0,
        echo: Callable[[str], None] = click.echo,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if speed <= 0:
            raise ValueError("speed must be positive")
        self.speed = speed
        self.slides: list[Slide] = []
        self._echo = echo
        self._sleep = sleep

    def __call__(self, slides: list[Slide]) -> None:
        self.slides = list(slides)

    def play(self, loops: int = 1) -> None:
        if not self.slides:
            self._echo("No slides to show.")
            return

        total = len(self.slides)
        for loop in range(loops):
            for index, slide in enumerate(self.slides):
                if loop or index:
                    self._sleep(self.speed)
                self._echo(f"[{index + 1}/{total}] {slide.caption.strip()}")


def render_slides_markdown(slides: list[Slide], image_names: list[str]) -> str:
    """Render a slides.md file, one entry per slide in display order."""
    if not slides:
        return ""

    lines: list[str] = []
    for slide, image_name in zip(slides, image_names):
        caption = slide.caption.strip()
        lines.append(f"![{_alt_text(caption)}]({image_name})")
        lines.append("")
        if caption:
            for text_line in caption.split("\n"):
                lines.append(f"> {text_line}")
            lines.append("")
        lines.append("---")
        lines.append("")

    return "\n".join(lines)


def _alt_text(caption: str) -> str:
    """Caption text usable inside ![...]: single line, no brackets."""
    text = " ".join(caption.split())
    return text.replace("[", "(").replace("]", ")")


def export_slides(slides: list[Slide], directory: Path) -> Path:
    """Write slide images and slides.md into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)

    image_names: list[str] = []
    for number, slide in enumerate(slides, start=1):
        name = f"{number:03d}.{slide.image.extension}"
        (directory / name).write_bytes(slide.image.data)
        image_names.append(name)

    markdown_path = directory / SLIDES_FILE
    markdown_path.write_text(
        render_slides_markdown(slides, image_names), encoding="utf-8"
    )
    logger.info("Exported %d slides to %s", len(slides), directory)
    return markdown_path
