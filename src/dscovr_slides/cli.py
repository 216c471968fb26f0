"""CLI interface for dscovr-slides.

Commands:
    setup   - Configure Twitter consumer credentials
    show    - Fetch photo posts and show them as a slideshow
    status  - Show current configuration and last export
"""

import sys
from pathlib import Path

import click

from .config import (
    CONFIG_FILE,
    AppConfig,
    AuthConfig,
    config_exists,
    load_config,
    save_config,
)
from .logging_config import setup_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.pass_context
def main(ctx, verbose, config):
    """DSCOVR Slides — Animate photos from a Twitter timeline."""
    setup_logging(debug=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else CONFIG_FILE


@main.command()
@click.pass_context
def setup(ctx):
    """Configure Twitter consumer credentials."""
    config_path = ctx.obj["config_path"]

    click.echo("DSCOVR Slides — Setup")
    click.echo("=" * 40)
    click.echo()
    click.echo("You need a consumer key and secret for a Twitter app.")
    click.echo("Create an app at https://developer.twitter.com/ and copy its")
    click.echo("API key and API secret.")
    click.echo()

    consumer_key = click.prompt("consumer_key", hide_input=True)
    consumer_secret = click.prompt("consumer_secret", hide_input=True)

    click.echo()
    screen_name = click.prompt("screen_name", default="dscovr_epic")

    config = AppConfig(
        auth=AuthConfig(consumer_key=consumer_key, consumer_secret=consumer_secret),
        screen_name=screen_name.lstrip("@"),
    )

    save_config(config, config_path)
    click.echo(f"\nConfig saved to {config_path}")
    click.echo("Run 'dscovr-slides show' to build the slideshow.")


@main.command()
@click.option("--screen-name", default=None, help="Account whose posts to show")
@click.option("-n", "--count", type=int, default=None, help="Number of posts to fetch")
@click.option("--speed", type=float, default=None, help="Seconds per slide")
@click.option("-o", "--output", type=click.Path(), default=None, help="Export directory")
@click.option("--no-play", is_flag=True, help="Only export, don't play captions")
@click.option(
    "--timeout", type=float, default=120.0, help="Seconds to wait for all downloads"
)
@click.pass_context
def show(ctx, screen_name, count, speed, output, no_play, timeout):
    """Fetch photo posts and show them as a slideshow."""
    config_path = ctx.obj["config_path"]
    if not config_exists(config_path):
        click.echo(
            "Error: No config found. Run 'dscovr-slides setup' first.",
            err=True,
        )
        sys.exit(1)

    try:
        config = load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    # Lazy imports so --help stays fast
    import httpx

    from .client import APIClient, APIError
    from .pipeline import show_timeline
    from .slideshow import Slideshow, export_slides
    from .tasks import TaskQueue

    screen_name = (screen_name or config.screen_name).lstrip("@")
    effective_count = count if count is not None else config.count
    output_dir = Path(output) if output else config.output_dir

    try:
        slideshow = Slideshow(speed=speed if speed is not None else config.speed)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    client_options = {"host": config.api_host} if config.api_host else {}

    click.echo(f"Fetching photo posts from @{screen_name}...")
    try:
        client = APIClient(
            config.auth.consumer_key,
            config.auth.consumer_secret,
            **client_options,
        )
    except APIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    http = httpx.Client(timeout=30.0, follow_redirects=True)
    image_queue = TaskQueue(name="images")
    completed = False
    try:
        future = show_timeline(
            client,
            slideshow,
            http=http,
            image_queue=image_queue,
            screen_name=screen_name,
            count=effective_count,
        )
        slides = future.result(timeout=timeout)
        completed = True
    except APIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except TimeoutError:
        click.echo(f"Error: Timed out after {timeout:g}s.", err=True)
        sys.exit(1)
    finally:
        # After a timeout, downloads that have not started are skipped
        image_queue.shutdown(wait=completed)
        client.close(wait=completed)
        http.close()

    if slides is None:
        click.echo(
            f"Error: Failed to fetch posts from @{screen_name}. "
            "Check your consumer key and secret (run with -v for details).",
            err=True,
        )
        sys.exit(1)

    if not slides:
        click.echo(f"No photos found in the latest posts from @{screen_name}.")
        return

    markdown_path = export_slides(slides, output_dir)
    click.echo(f"Saved {len(slides)} slides to {markdown_path}")

    if not no_play:
        slideshow.play()


@main.command()
@click.pass_context
def status(ctx):
    """Show current configuration and last export."""
    config_path = ctx.obj["config_path"]
    has_config = config_exists(config_path)

    click.echo("DSCOVR Slides — Status")
    click.echo("=" * 40)
    click.echo(f"Config: {'Found' if has_config else 'Not configured'} ({config_path})")

    if not has_config:
        click.echo("\nRun 'dscovr-slides setup' to get started.")
        return

    config = load_config(config_path)

    from .slideshow import SLIDES_FILE

    click.echo(f"Account: @{config.screen_name} (latest {config.count} posts)")
    click.echo(f"Output directory: {config.output_dir}")

    slides_file = config.output_dir / SLIDES_FILE
    if slides_file.exists():
        exported = slides_file.read_text(encoding="utf-8").count("![")
        click.echo(f"Exported slides: {exported}")
    else:
        click.echo("Exported slides: Not yet created")
