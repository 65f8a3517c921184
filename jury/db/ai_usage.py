"""
Monthly poll-generation usage (``ai_poll_usage``).

One row per user per calendar month (``month_year`` = "YYYY-MM").
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from supabase import Client

from jury.utils.dates import utcnow

logger = logging.getLogger(__name__)


def month_key(now: Optional[datetime] = None) -> str:
    return (now or utcnow()).strftime("%Y-%m")


def _usage_row(db: Client, user_id: str, month_year: str) -> Optional[Dict[str, Any]]:
    result = (
        db.table("ai_poll_usage")
        .select("id, usage_count")
        .eq("user_id", user_id)
        .eq("month_year", month_year)
        .limit(1)
        .execute()
    )
    return result.data[0] if result.data else None


def get_monthly_usage(db: Client, user_id: str, now: Optional[datetime] = None) -> int:
    row = _usage_row(db, user_id, month_key(now))
    return int(row["usage_count"]) if row else 0


def record_generation(db: Client, user_id: str, now: Optional[datetime] = None) -> int:
    """
    Count one generation for this month.

    Returns:
        int: Usage count after the increment
    """
    month_year = month_key(now)
    row = _usage_row(db, user_id, month_year)
    if row:
        count = int(row["usage_count"]) + 1
        db.table("ai_poll_usage").update({
            "usage_count": count,
            "updated_at": utcnow().isoformat(),
        }).eq("id", row["id"]).execute()
        return count

    db.table("ai_poll_usage").insert({"user_id": user_id, "month_year": month_year, "usage_count": 1}).execute()
    return 1
