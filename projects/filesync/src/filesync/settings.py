"""Layout settings read from an optional ``erd-pets.toml``."""

from logging import getLogger
from pathlib import Path
from tomllib import load
from typing import Any, NotRequired, TypedDict

from reconcile.placement import Strategy, make_generator
from reconcile.types import PositionGenerator

logger = getLogger(__name__)

SETTINGS_FILE = "erd-pets.toml"

# Options each placement strategy understands
STRATEGY_OPTIONS: dict[str, tuple[str, ...]] = {
    "circular": ("radius", "schema_spacing"),
    "scatter": ("seed", "width", "height", "margin"),
}


class LayoutSettings(TypedDict):
    """The ``[layout]`` table of the settings file."""

    strategy: Strategy
    seed: NotRequired[int]
    radius: NotRequired[float]
    schema_spacing: NotRequired[float]
    width: NotRequired[float]
    height: NotRequired[float]
    margin: NotRequired[float]


def default_settings() -> LayoutSettings:
    """Settings used when no file is present."""
    return {"strategy": "circular"}


def find_settings(start: Path) -> Path | None:
    """Nearest settings file in ``start`` or one of its parents."""
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        path = candidate / SETTINGS_FILE
        if path.is_file():
            return path
    return None


def parse_settings(data: dict[str, Any]) -> LayoutSettings:
    """Validate the ``[layout]`` table of a loaded settings document."""
    layout = data.get("layout", {})
    settings = default_settings()
    strategy = layout.get("strategy", settings["strategy"])
    if strategy not in STRATEGY_OPTIONS:
        msg = f"Unknown layout strategy: {strategy}"
        raise ValueError(msg)
    settings["strategy"] = strategy

    allowed = {option for options in STRATEGY_OPTIONS.values() for option in options}
    for key, value in layout.items():
        if key == "strategy":
            continue
        if key not in allowed:
            logger.warning("Ignoring unknown layout setting: %s", key)
            continue
        if not isinstance(value, int | float) or isinstance(value, bool):
            msg = f"Layout setting {key} must be a number, got {value!r}"
            raise ValueError(msg)
        settings[key] = value  # type: ignore[literal-required]
    return settings


def load_settings(start: Path) -> LayoutSettings:
    """Load settings for a schema file, falling back to the defaults."""
    path = find_settings(start)
    if path is None:
        return default_settings()
    logger.debug("Reading layout settings from %s", path)
    with path.open("rb") as file:
        return parse_settings(load(file))


def settings_generator(settings: LayoutSettings) -> PositionGenerator:
    """Position generator configured by ``settings``."""
    strategy = settings["strategy"]
    options = {
        key: settings[key]  # type: ignore[literal-required]
        for key in STRATEGY_OPTIONS[strategy]
        if key in settings
    }
    return make_generator(strategy, **options)
