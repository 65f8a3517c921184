"""
Subscription Tiers
==================

Static capability table for the free / pro / team subscription levels.

Numeric limits use -1 for "unlimited". Stripe price ids are resolved at
runtime from configuration so a deployment can rotate prices without code
changes.
"""

from dataclasses import dataclass, fields
from typing import Dict, List, Optional

from jury import config

TIER_ORDER: List[str] = ["free", "pro", "team"]
DEFAULT_TIER = "free"


@dataclass(frozen=True)
class TierConfig:
    name: str
    price_monthly: int
    price_annual_monthly: int
    price_annual_total: int

    # Numeric limits (-1 = unlimited)
    max_active_polls: int
    max_questions_per_poll: int

    # Feature flags
    remove_branding: bool = False
    csv_export: bool = False
    qr_codes: bool = False
    scheduling: bool = False
    rating_scale: bool = False
    ranked_choice: bool = False
    image_options: bool = False
    open_ended: bool = False
    reaction_polls: bool = False
    templates: bool = False
    ai_generation: bool = False
    password_protect: bool = False
    custom_embed_themes: bool = False
    chart_types: bool = False
    custom_logo_embed: bool = False
    advanced_analytics: bool = False
    webhooks: bool = False
    custom_domains: bool = False
    team_workspace: bool = False
    ab_testing: bool = False
    api_access: bool = False
    presenter_mode: bool = False


_PRICING_FIELDS = {"name", "price_monthly", "price_annual_monthly", "price_annual_total"}

# Every gateable capability (numeric limits + boolean features)
FEATURES: List[str] = [f.name for f in fields(TierConfig) if f.name not in _PRICING_FIELDS]
LIMIT_FEATURES: List[str] = ["max_active_polls", "max_questions_per_poll"]


TIERS: Dict[str, TierConfig] = {
    "free": TierConfig(
        name="Free",
        price_monthly=0,
        price_annual_monthly=0,
        price_annual_total=0,
        max_active_polls=5,
        max_questions_per_poll=2,
    ),
    "pro": TierConfig(
        name="Pro",
        price_monthly=15,
        price_annual_monthly=12,
        price_annual_total=144,
        max_active_polls=-1,
        max_questions_per_poll=-1,
        remove_branding=True,
        csv_export=True,
        qr_codes=True,
        scheduling=True,
        rating_scale=True,
        ranked_choice=True,
        image_options=True,
        templates=True,
        ai_generation=True,
        password_protect=True,
        custom_embed_themes=True,
        chart_types=True,
        presenter_mode=True,
    ),
    "team": TierConfig(
        name="Team",
        price_monthly=39,
        price_annual_monthly=32,
        price_annual_total=384,
        max_active_polls=-1,
        max_questions_per_poll=-1,
        remove_branding=True,
        csv_export=True,
        qr_codes=True,
        scheduling=True,
        rating_scale=True,
        ranked_choice=True,
        image_options=True,
        open_ended=True,
        reaction_polls=True,
        templates=True,
        ai_generation=True,
        password_protect=True,
        custom_embed_themes=True,
        chart_types=True,
        custom_logo_embed=True,
        advanced_analytics=True,
        webhooks=True,
        custom_domains=True,
        team_workspace=True,
        ab_testing=True,
        api_access=True,
        presenter_mode=True,
    ),
}


def get_tier_config(tier: Optional[str]) -> TierConfig:
    """Unknown or missing tiers fall back to free."""
    return TIERS.get(tier or DEFAULT_TIER, TIERS[DEFAULT_TIER])


def normalize_tier(tier: Optional[str]) -> str:
    return tier if tier in TIERS else DEFAULT_TIER


def get_pro_price_id() -> Optional[str]:
    return config.STRIPE_PRO_PRICE_ID or None


def get_team_price_id() -> Optional[str]:
    return config.STRIPE_TEAM_PRICE_ID or None


def get_pro_annual_price_id() -> Optional[str]:
    return config.STRIPE_PRO_ANNUAL_PRICE_ID or None


def get_team_annual_price_id() -> Optional[str]:
    return config.STRIPE_TEAM_ANNUAL_PRICE_ID or None


def get_tier_by_price_id(price_id: Optional[str]) -> str:
    """
    Map a Stripe price id to a tier name.

    Unset price ids never match, so an unknown price always maps to free.
    """
    if not price_id:
        return "free"
    if price_id in (get_pro_price_id(), get_pro_annual_price_id()):
        return "pro"
    if price_id in (get_team_price_id(), get_team_annual_price_id()):
        return "team"
    return "free"


def tier_to_dict(tier: str) -> Dict:
    """Public pricing payload for one tier."""
    cfg = get_tier_config(tier)
    return {
        "tier": normalize_tier(tier),
        "name": cfg.name,
        "price_monthly": cfg.price_monthly,
        "price_annual_monthly": cfg.price_annual_monthly,
        "price_annual_total": cfg.price_annual_total,
        "features": {feature: getattr(cfg, feature) for feature in FEATURES},
    }
