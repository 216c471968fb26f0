"""Configuration loading and saving.

Config file location: ~/.config/dscovr-slides/config.toml

Schema:
    [auth]
    consumer_key = "..."
    consumer_secret = "..."

    [timeline]
    screen_name = "dscovr_epic"
    count = 20

    [slideshow]
    speed = 3.0
    output_dir = "slides"

    [api]
    host = "api.twitter.com"  # optional
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w

CONFIG_DIR = Path.home() / ".config" / "dscovr-slides"
CONFIG_FILE = CONFIG_DIR / "config.toml"


@dataclass
class AuthConfig:
    consumer_key: str
    consumer_secret: str


@dataclass
class AppConfig:
    auth: AuthConfig
    screen_name: str = "dscovr_epic"
    count: int = 20
    speed: float = 3.0
    output_dir: Path = Path("slides")
    api_host: str | None = None


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    auth_data = data.get("auth", {})
    consumer_key = auth_data.get("consumer_key", "")
    consumer_secret = auth_data.get("consumer_secret", "")

    if not consumer_key or not consumer_secret:
        raise ValueError(
            "Config missing required auth.consumer_key and auth.consumer_secret"
        )

    timeline_data = data.get("timeline", {})
    slideshow_data = data.get("slideshow", {})
    api_data = data.get("api", {})

    count = int(timeline_data.get("count", 20))
    speed = float(slideshow_data.get("speed", 3.0))
    if count <= 0:
        raise ValueError("timeline.count must be positive")
    if speed <= 0:
        raise ValueError("slideshow.speed must be positive")

    return AppConfig(
        auth=AuthConfig(consumer_key=consumer_key, consumer_secret=consumer_secret),
        screen_name=timeline_data.get("screen_name", "dscovr_epic"),
        count=count,
        speed=speed,
        output_dir=Path(slideshow_data.get("output_dir", "slides")),
        api_host=api_data.get("host"),
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file with restricted permissions."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "auth": {
            "consumer_key": config.auth.consumer_key,
            "consumer_secret": config.auth.consumer_secret,
        },
        "timeline": {
            "screen_name": config.screen_name,
            "count": config.count,
        },
        "slideshow": {
            "speed": config.speed,
            "output_dir": str(config.output_dir),
        },
    }

    if config.api_host:
        data["api"] = {"host": config.api_host}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)

    # Contains the consumer secret
    os.chmod(config_path, 0o600)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()
