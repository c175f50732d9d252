"""Console color theme.

Colors come from the bundled ``ncctl/data/theme.toml``; any subset can be
overridden in ``~/.config/ncctl/theme.toml``. Both files use a single
``[colors]`` table of ``name = "#RRGGBB"`` entries.
"""

import logging
import re
import tomllib
from functools import cache
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from ncctl.core.paths import get_user_config_dir

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Styles rendered bold on top of their color
_BOLD_STYLES = frozenset({"error", "state_succeeded", "state_failed"})


class ThemeColors(BaseModel):
    """Hex colors for every named console style."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"

    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"

    # One per ComponentState shown in run tables
    state_succeeded: str = "#03b971"
    state_skipped: str = "#0e8ac8"
    state_failed: str = "#f53263"
    state_pending: str = "#636e72"

    @field_validator("*", mode="before")
    @classmethod
    def check_hex(cls, v: object) -> object:
        if isinstance(v, str) and _HEX_COLOR.match(v.strip()):
            return v.strip()
        raise ValueError(f"expected a #RGB or #RRGGBB color, got {v!r}")


def get_user_theme_path() -> Path:
    """Return ``<XDG config>/ncctl/theme.toml``."""
    return get_user_config_dir() / "theme.toml"


def get_bundled_theme_path() -> Path:
    return Path(str(resources.files("ncctl.data").joinpath("theme.toml")))


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the ``[colors]`` table of a theme file.

    Non-string values are dropped.

    Returns:
        Color name to value mapping, or None if the file is missing,
        unreadable or not valid TOML.
    """
    try:
        with open(path, "rb") as f:
            table = tomllib.load(f).get("colors", {})
    except FileNotFoundError:
        return None
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    if not isinstance(table, dict):
        logger.warning("Ignoring theme file %s: [colors] is not a table", path)
        return None
    return {name: value for name, value in table.items() if isinstance(value, str)}


def load_theme() -> ThemeColors:
    """Merge the bundled colors with the user's overrides.

    An invalid override is reported and the bundled colors are used
    unchanged.
    """
    bundled = _load_toml_colors(get_bundled_theme_path()) or {}
    try:
        base = ThemeColors(**bundled)
    except ValidationError as e:
        logger.error("Bundled theme is invalid, using built-in colors: %s", e)
        base = ThemeColors()

    user_path = get_user_theme_path()
    overrides = _load_toml_colors(user_path)
    if not overrides:
        return base

    try:
        colors = ThemeColors(**{**base.model_dump(), **overrides})
    except ValidationError as e:
        logger.warning("Invalid colors in %s, ignoring overrides: %s", user_path, e)
        return base
    logger.debug("Applied theme overrides from %s", user_path)
    return colors


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Build the Rich theme used by every console.

    ``state_*`` colors become ``state.*`` styles (``state.failed``, ...),
    matching the markup used in the run tables.
    """
    colors = colors or load_theme()
    styles: dict[str, str] = {}
    for name, value in colors.model_dump().items():
        style = f"bold {value}" if name in _BOLD_STYLES else value
        styles[name.replace("state_", "state.", 1)] = style
    styles["bold_header"] = f"bold {colors.header}"
    return Theme(styles)


@cache
def get_theme() -> Theme:
    """Return the Rich theme, loading it on first use."""
    return get_rich_theme()
