"""
Feature Gating
==============

Answers "can this tier use this feature?" against the static tier table and
turns a negative answer into an HTTP 403 carrying the upgrade target.
"""

from typing import Dict, Optional

from fastapi import HTTPException

from jury.utils.tiers import TIER_ORDER, FEATURES, LIMIT_FEATURES, get_tier_config


def can_use_feature(tier: Optional[str], feature: str) -> bool:
    """
    Check if a tier has access to a feature.

    For numeric limits (max_active_polls, max_questions_per_poll), returns True
    if the limit is non-zero (-1 = unlimited). For boolean features, returns
    the flag directly.
    """
    if feature not in FEATURES:
        raise KeyError(f"Unknown feature: {feature}")

    value = getattr(get_tier_config(tier), feature)

    # bool is a subclass of int, so check it first
    if isinstance(value, bool):
        return value
    return value != 0


def get_feature_limit(tier: Optional[str], feature: str) -> int:
    """Returns -1 for unlimited, or the actual limit number."""
    if feature not in LIMIT_FEATURES:
        raise KeyError(f"Not a limit feature: {feature}")
    return getattr(get_tier_config(tier), feature)


def get_upgrade_target(current_tier: Optional[str], feature: str) -> Optional[str]:
    """
    Returns the lowest tier above ``current_tier`` that unlocks ``feature``,
    or None if no higher tier has it.
    """
    try:
        current_index = TIER_ORDER.index(current_tier)
    except ValueError:
        current_index = 0

    for tier in TIER_ORDER[current_index + 1:]:
        if can_use_feature(tier, feature):
            return tier
    return None


def require_feature(tier: Optional[str], feature: str):
    """Raise 403 unless ``tier`` can use ``feature``."""
    if can_use_feature(tier, feature):
        return

    raise HTTPException(
        status_code=403,
        detail={
            "error": f"{FEATURE_LABELS[feature]} requires an upgrade",
            "feature": feature,
            "upgrade_to": get_upgrade_target(tier, feature),
        },
    )


def limit_exceeded(limit: int, current: int) -> bool:
    """True when ``current`` has already reached a numeric ``limit`` (-1 = unlimited)."""
    return limit != -1 and current >= limit


FEATURE_LABELS: Dict[str, str] = {
    "max_active_polls": "More Active Polls",
    "max_questions_per_poll": "More Questions per Poll",
    "remove_branding": "Remove Branding",
    "csv_export": "CSV Export",
    "qr_codes": "QR Codes",
    "scheduling": "Poll Scheduling",
    "rating_scale": "Rating Scale Questions",
    "ranked_choice": "Ranked-Choice Questions",
    "image_options": "Image Options",
    "open_ended": "Open-Ended Questions",
    "reaction_polls": "Reaction Polls",
    "templates": "Poll Templates",
    "ai_generation": "AI Poll Generation",
    "password_protect": "Password Protection",
    "custom_embed_themes": "Custom Embed Themes",
    "chart_types": "Multiple Chart Types",
    "custom_logo_embed": "Custom Logo on Embeds",
    "advanced_analytics": "Advanced Analytics",
    "webhooks": "Webhooks",
    "custom_domains": "Custom Domains",
    "team_workspace": "Team Workspace",
    "ab_testing": "A/B Testing",
    "api_access": "API Access",
    "presenter_mode": "Presenter Mode",
}

FEATURE_DESCRIPTIONS: Dict[str, str] = {
    "max_active_polls": "Run more polls at the same time to gather feedback across multiple topics.",
    "max_questions_per_poll": "Add unlimited questions to your polls for comprehensive surveys.",
    "remove_branding": "Present a professional look by removing TheJury branding from your polls.",
    "csv_export": "Export poll results to CSV for analysis in spreadsheets and other tools.",
    "qr_codes": "Generate QR codes to make it easy for people to vote on your polls.",
    "scheduling": "Schedule polls to automatically start and end at specific times.",
    "rating_scale": "Let voters rate items on a numeric scale for more nuanced feedback.",
    "ranked_choice": "Allow voters to rank options in order of preference.",
    "image_options": "Add images to your poll options for visual polls.",
    "open_ended": "Collect free-text responses and visualise them as word clouds.",
    "reaction_polls": "Let voters react with emojis for quick, expressive feedback.",
    "templates": "Start from pre-built templates to create polls faster.",
    "ai_generation": "Use AI to instantly generate poll questions and options.",
    "password_protect": "Restrict access to your polls with a password.",
    "custom_embed_themes": "Customise the look of embedded polls to match your brand.",
    "chart_types": "Visualise results with pie charts, donut charts, and more.",
    "custom_logo_embed": "Replace TheJury branding with your own logo on embeds.",
    "advanced_analytics": "Get deeper insights with response timing, completion rates, and heatmaps.",
    "webhooks": "Receive real-time notifications when people vote on your polls.",
    "custom_domains": "Use your own domain for poll links.",
    "team_workspace": "Collaborate with your team on polls in a shared workspace.",
    "ab_testing": "Test different poll variants to optimise engagement.",
    "api_access": "Integrate polls into your own applications with our API.",
    "presenter_mode": "Present polls live with real-time results on the big screen.",
}
