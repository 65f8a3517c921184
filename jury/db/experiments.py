"""
A/B Experiments
===============

An experiment splits a poll's audience across variants (alternative
question wordings). Bucketing is done by the ``assign_variant`` database
RPC, which is sticky per user or fingerprint; this module only creates
experiments, asks for assignments and reads the tallies back.

Tables:
- ab_experiments:           poll_id, name, traffic_split, is_active
- poll_variants:            experiment_id, variant_name, question, description
- user_variant_assignments: experiment_id, variant_id, user_id,
                            voter_fingerprint, voted, voted_at
"""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from jury.utils.dates import utcnow
from jury.utils.results import percentage

logger = logging.getLogger(__name__)


def create_experiment(
    db: Client,
    poll_id: str,
    name: str,
    traffic_split: int,
    variants: List[Dict[str, Any]],
) -> Dict[str, Any]:
    experiment = db.table("ab_experiments").insert({
        "poll_id": poll_id,
        "name": name,
        "traffic_split": traffic_split,
        "is_active": True,
    }).execute().data[0]

    rows = db.table("poll_variants").insert([
        {
            "experiment_id": experiment["id"],
            "variant_name": v["variant_name"],
            "question": v["question"],
            "description": v.get("description"),
        }
        for v in variants
    ]).execute().data

    logger.info(f"🧪 Created experiment {experiment['id']} on poll {poll_id} with {len(rows)} variants")
    return {**experiment, "variants": rows}


def get_experiment(db: Client, experiment_id: str) -> Optional[Dict[str, Any]]:
    result = db.table("ab_experiments").select("*").eq("id", experiment_id).limit(1).execute()
    return result.data[0] if result.data else None


def list_poll_experiments(db: Client, poll_id: str) -> List[Dict[str, Any]]:
    result = db.table("ab_experiments").select("*").eq("poll_id", poll_id).order("created_at", desc=True).execute()
    return result.data or []


def get_variants(db: Client, experiment_id: str) -> List[Dict[str, Any]]:
    result = (
        db.table("poll_variants")
        .select("id, experiment_id, variant_name, question, description, created_at")
        .eq("experiment_id", experiment_id)
        .order("created_at")
        .execute()
    )
    return result.data or []


def set_experiment_active(db: Client, experiment_id: str, is_active: bool) -> Dict[str, Any]:
    result = db.table("ab_experiments").update({"is_active": is_active}).eq("id", experiment_id).execute()
    return result.data[0] if result.data else {}


def assign_variant(
    db: Client,
    experiment_id: str,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Ask the database for this voter's variant.

    Returns:
        The variant row, or None if the RPC returned nothing usable
    """
    params: Dict[str, Any] = {"experiment_uuid": experiment_id}
    if user_id:
        params["user_uuid"] = user_id
    if voter_fingerprint:
        params["fingerprint"] = voter_fingerprint

    variant_id = db.rpc("assign_variant", params).execute().data
    if isinstance(variant_id, list):
        variant_id = variant_id[0] if variant_id else None
    if not variant_id:
        return None

    return next((v for v in get_variants(db, experiment_id) if v["id"] == variant_id), None)


def mark_variant_voted(
    db: Client,
    poll_id: str,
    user_id: Optional[str] = None,
    voter_fingerprint: Optional[str] = None,
) -> int:
    """
    Flag this voter's assignments on the poll's active experiments as voted.

    Returns:
        int: Experiments updated
    """
    if not user_id and not voter_fingerprint:
        return 0

    experiments = [e for e in list_poll_experiments(db, poll_id) if e.get("is_active")]
    updated = 0
    for experiment in experiments:
        query = db.table("user_variant_assignments").update({
            "voted": True,
            "voted_at": utcnow().isoformat(),
        }).eq("experiment_id", experiment["id"])
        if user_id:
            query = query.eq("user_id", user_id)
        else:
            query = query.eq("voter_fingerprint", voter_fingerprint)
        if query.execute().data:
            updated += 1
    return updated


def experiment_results(db: Client, experiment_id: str) -> Dict[str, Any]:
    """
    Assignment and conversion counts per variant.

    ``percentage`` is the variant's share of all assignments;
    ``conversion_rate`` is the share of its assignees that went on to vote.
    """
    variants = get_variants(db, experiment_id)
    assignments = (
        db.table("user_variant_assignments")
        .select("variant_id, voted")
        .eq("experiment_id", experiment_id)
        .execute()
        .data
        or []
    )

    assigned: Dict[str, int] = {}
    voted: Dict[str, int] = {}
    for row in assignments:
        assigned[row["variant_id"]] = assigned.get(row["variant_id"], 0) + 1
        if row.get("voted"):
            voted[row["variant_id"]] = voted.get(row["variant_id"], 0) + 1

    total = len(assignments)
    rows = []
    for variant in variants:
        count = assigned.get(variant["id"], 0)
        votes = voted.get(variant["id"], 0)
        rows.append({
            "variant_id": variant["id"],
            "variant_name": variant["variant_name"],
            "question": variant["question"],
            "assignments": count,
            "percentage": percentage(count, total),
            "voted": votes,
            "conversion_rate": percentage(votes, count),
        })

    best = max(rows, key=lambda r: r["conversion_rate"], default=None)
    return {
        "experiment_id": experiment_id,
        "total_assignments": total,
        "variants": rows,
        "leading_variant_id": best["variant_id"] if best and best["voted"] else None,
    }
