"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

from pathlib import Path
from unittest.mock import patch

import pytest
from ncctl.core.theme import (
    ThemeColors,
    _load_toml_colors,
    get_bundled_theme_path,
    get_rich_theme,
    get_user_theme_path,
    load_theme,
)
from rich.theme import Theme


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        colors = ThemeColors()
        assert colors.text == "#ffffff"
        assert colors.state_failed == "#f53263"

    def test_short_hex_accepted(self) -> None:
        assert ThemeColors(muted="#abc").muted == "#abc"

    @pytest.mark.parametrize("value", ["red", "#12", "#gggggg"])
    def test_invalid_colors_rejected(self, value: str) -> None:
        with pytest.raises(ValueError):
            ThemeColors(text=value)

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValueError):
            ThemeColors(sparkle="#ffffff")  # type: ignore[call-arg]


class TestLoadTheme:
    """Tests for theme file loading."""

    def test_bundled_theme_is_valid(self) -> None:
        colors = _load_toml_colors(get_bundled_theme_path())

        assert colors is not None
        ThemeColors(**colors)

    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert _load_toml_colors(tmp_path / "missing.toml") is None

    def test_broken_toml_returns_none(self, tmp_path: Path) -> None:
        broken = tmp_path / "theme.toml"
        broken.write_text("[colors\n")

        assert _load_toml_colors(broken) is None

    def test_user_override_merges(self, tmp_path: Path) -> None:
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nerror = "#ff0000"\n')

        with patch("ncctl.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors.error == "#ff0000"
        assert colors.success == ThemeColors().success

    def test_invalid_user_override_falls_back(self, tmp_path: Path) -> None:
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nerror = "red"\n')

        with patch("ncctl.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors == ThemeColors()

    def test_user_theme_path(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_user_theme_path() == tmp_path / "ncctl" / "theme.toml"


class TestRichTheme:
    """Tests for Rich theme generation."""

    def test_state_styles_present(self) -> None:
        theme = get_rich_theme(ThemeColors())

        assert isinstance(theme, Theme)
        for name in ("state.succeeded", "state.skipped", "state.failed", "state.pending"):
            assert name in theme.styles
        assert "state_failed" not in theme.styles

    def test_bold_styles(self) -> None:
        theme = get_rich_theme(ThemeColors())

        assert theme.styles["state.failed"].bold is True
        assert theme.styles["error"].bold is True
        assert theme.styles["bold_header"].bold is True
        assert not theme.styles["state.pending"].bold
