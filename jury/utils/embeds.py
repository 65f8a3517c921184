"""
Embeddable poll widgets.

Builds the iframe snippet poll owners paste into their sites and resolves
the theme an embed renders with. Themes live in ``polls.embed_settings``.
"""

import html
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from jury import config
from jury.utils.feature_gate import can_use_feature, require_feature

DEFAULT_EMBED_THEME: Dict[str, Any] = {
    "primary_color": "#10b981",
    "background_color": "#0f172a",
    "text_color": "#f8fafc",
    "border_radius": 12,
    "font_family": "Outfit",
}

BUILTIN_THEMES = ("dark", "light")
COLOR_KEYS = ("primary_color", "background_color", "text_color")
HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")
DIMENSION = re.compile(r"^\d{1,4}(px|%)?$")


class EmbedSettingsError(ValueError):
    pass


def validate_dimension(value: str, name: str) -> str:
    value = value.strip()
    if not DIMENSION.match(value):
        raise EmbedSettingsError(f"Invalid {name}: use a number of pixels or a percentage")
    return value


def validate_embed_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Keep known theme keys (plus ``logo_url``), rejecting malformed values."""
    clean: Dict[str, Any] = {}
    for key in COLOR_KEYS:
        if key in settings:
            if not isinstance(settings[key], str) or not HEX_COLOR.match(settings[key]):
                raise EmbedSettingsError(f"{key} must be a hex colour like #10b981")
            clean[key] = settings[key]
    if "border_radius" in settings:
        radius = settings["border_radius"]
        if not isinstance(radius, int) or isinstance(radius, bool) or not 0 <= radius <= 48:
            raise EmbedSettingsError("border_radius must be between 0 and 48")
        clean["border_radius"] = radius
    if "font_family" in settings:
        clean["font_family"] = str(settings["font_family"])[:60]
    if settings.get("logo_url"):
        logo = str(settings["logo_url"])
        if not logo.startswith("https://"):
            raise EmbedSettingsError("logo_url must be an https:// URL")
        clean["logo_url"] = logo
    return clean


def check_embed_settings_allowed(tier: Optional[str], settings: Dict[str, Any]):
    """403 unless the tier may store these settings."""
    if any(key in settings for key in DEFAULT_EMBED_THEME):
        require_feature(tier, "custom_embed_themes")
    if settings.get("logo_url"):
        require_feature(tier, "custom_logo_embed")


def resolve_theme(tier: Optional[str], settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Theme an embed renders with.

    Stored customisations only apply while the owner's tier still allows
    them; after a downgrade the embed falls back to the defaults.
    """
    theme = dict(DEFAULT_EMBED_THEME)
    settings = settings or {}
    if can_use_feature(tier, "custom_embed_themes"):
        theme.update({k: v for k, v in settings.items() if k in DEFAULT_EMBED_THEME})
    if can_use_feature(tier, "custom_logo_embed") and settings.get("logo_url"):
        theme["logo_url"] = settings["logo_url"]
    return theme


def show_branding(tier: Optional[str]) -> bool:
    return not can_use_feature(tier, "remove_branding")


def embed_url(code: str, theme: Optional[str] = None) -> str:
    url = f"{config.APP_URL}/embed/{code}"
    if theme:
        url += "?" + urlencode({"theme": theme})
    return url


def build_iframe(src: str, width: str, height: str) -> str:
    return (
        f'<iframe src="{html.escape(src, quote=True)}" '
        f'width="{html.escape(width, quote=True)}" '
        f'height="{html.escape(height, quote=True)}" '
        'frameborder="0" style="border: none; border-radius: 8px;" '
        'sandbox="allow-scripts allow-same-origin allow-forms"></iframe>'
    )
