"""
Results Aggregation
===================

Turns raw vote rows into per-option and per-question tallies.

Vote rows carry:
- ``options``: selected option ids (list, or a JSON-encoded list)
- ``responses``: question_id -> answer for non-choice questions
  (rating int, ranking list of option ids, or free text)

Malformed votes are skipped, never fatal.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from jury.utils.json_utils import parse_db_json_field
from jury.utils.question_types import (
    CHOICE_TYPES,
    OPEN_ENDED,
    RANKED_CHOICE,
    RATING_SCALE,
)

logger = logging.getLogger(__name__)


def _selected_options(vote: Dict[str, Any], key: str) -> List[str]:
    selected = parse_db_json_field(vote.get(key), [])
    if not isinstance(selected, list):
        return []
    return [str(option_id) for option_id in selected]


def _responses(vote: Dict[str, Any]) -> Dict[str, Any]:
    responses = parse_db_json_field(vote.get("responses"), {})
    return responses if isinstance(responses, dict) else {}


def count_option_votes(
    options: Iterable[Dict[str, Any]],
    votes: Iterable[Dict[str, Any]],
    votes_key: str = "options",
) -> List[Dict[str, Any]]:
    """
    Count how many votes selected each option.

    Every option starts at 0. Only ids of known options are counted, so
    votes for deleted options silently drop out.

    Args:
        options: Option rows with id, text and (optionally) option_order
        votes: Vote rows
        votes_key: Column holding the selected option ids

    Returns:
        List of {option_id, option_text, option_order, vote_count}, in the
        order the options were given
    """
    options = list(options)
    counts: Dict[str, int] = {str(option["id"]): 0 for option in options}

    for vote in votes:
        for option_id in _selected_options(vote, votes_key):
            if option_id in counts:
                counts[option_id] += 1

    return [
        {
            "option_id": str(option["id"]),
            "option_text": option.get("text", ""),
            "option_order": option.get("option_order", index + 1),
            "vote_count": counts[str(option["id"])],
        }
        for index, option in enumerate(options)
    ]


def rating_results(question: Dict[str, Any], votes: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    settings = question.get("settings") or {}
    low = int(settings.get("min", 1))
    high = int(settings.get("max", 5))
    question_id = str(question["id"])

    distribution = {value: 0 for value in range(low, high + 1)}
    ratings: List[int] = []

    for vote in votes:
        answer = _responses(vote).get(question_id)
        if isinstance(answer, bool):
            continue
        try:
            rating = int(answer)
        except (TypeError, ValueError):
            continue
        if low <= rating <= high:
            distribution[rating] += 1
            ratings.append(rating)

    average = round(sum(ratings) / len(ratings), 2) if ratings else 0
    return {
        "average": average,
        "distribution": distribution,
        "total_ratings": len(ratings),
        "min": low,
        "max": high,
    }


def ranked_results(
    options: List[Dict[str, Any]],
    question: Dict[str, Any],
    votes: Iterable[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Average 1-based position and first-place count per option, best first.

    Options a voter left unranked do not count towards that option's average.
    """
    question_id = str(question["id"])
    positions: Dict[str, List[int]] = {str(option["id"]): [] for option in options}
    first_place: Dict[str, int] = {str(option["id"]): 0 for option in options}

    for vote in votes:
        ranking = _responses(vote).get(question_id)
        if not isinstance(ranking, list):
            continue
        for position, option_id in enumerate(ranking, start=1):
            option_id = str(option_id)
            if option_id not in positions:
                continue
            positions[option_id].append(position)
            if position == 1:
                first_place[option_id] += 1

    results = []
    for option in options:
        option_id = str(option["id"])
        ranks = positions[option_id]
        results.append({
            "option_id": option_id,
            "option_text": option.get("text", ""),
            "avg_position": round(sum(ranks) / len(ranks), 2) if ranks else None,
            "first_place_count": first_place[option_id],
            "times_ranked": len(ranks),
        })

    # Unranked options sink to the bottom
    results.sort(key=lambda r: (r["avg_position"] is None, r["avg_position"] or 0))
    return results


def open_ended_results(question: Dict[str, Any], votes: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    question_id = str(question["id"])
    responses = []
    for vote in votes:
        answer = _responses(vote).get(question_id)
        if isinstance(answer, str) and answer.strip():
            responses.append(answer.strip())
    return {"responses": responses, "total_responses": len(responses)}


def question_results(
    question: Dict[str, Any],
    options: List[Dict[str, Any]],
    votes: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Results for one question, shaped by its type."""
    question_type = question.get("question_type")
    question_options = [o for o in options if o.get("question_id") == question.get("id")]

    result: Dict[str, Any] = {
        "question_id": question.get("id"),
        "question_text": question.get("question_text"),
        "question_type": question_type,
        "question_order": question.get("question_order"),
    }

    if question_type == RATING_SCALE:
        result["rating"] = rating_results(question, votes)
    elif question_type == RANKED_CHOICE:
        result["ranked"] = ranked_results(question_options, question, votes)
    elif question_type == OPEN_ENDED:
        result["open_ended"] = open_ended_results(question, votes)
    else:
        if question_type not in CHOICE_TYPES:
            logger.warning(f"⚠️ Unknown question type {question_type!r}, tallying as choice")
        result["options"] = count_option_votes(question_options, votes)

    return result


def percentage(count: int, total: int) -> float:
    """Share of ``total`` as a percentage with one decimal (0.0 when total is 0)."""
    if total <= 0:
        return 0.0
    return round(count / total * 100, 1)


def summarize_totals(results: List[Dict[str, Any]], total_voters: int) -> Dict[str, Optional[Any]]:
    total_votes = sum(r["vote_count"] for r in results)
    leader = max(results, key=lambda r: r["vote_count"]) if results and total_votes else None
    return {
        "total_votes": total_votes,
        "total_voters": total_voters,
        "leading_option_id": leader["option_id"] if leader else None,
    }
