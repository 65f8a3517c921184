"""
Lenient JSON helpers for database fields that may arrive either as decoded
JSON (jsonb columns) or as JSON-encoded text (legacy text columns).
"""

import json
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def safe_json_parse(value: Any, fallback: Any) -> Any:
    """
    Parse ``value`` as JSON, returning ``fallback`` on anything unusable.

    None, empty strings, parse errors and a parsed ``null`` all yield the
    fallback. Already-decoded dicts and lists are returned unchanged.
    """
    if value is None:
        return fallback

    if isinstance(value, (dict, list)):
        return value

    if not isinstance(value, str):
        value = str(value)

    if value.strip() == "":
        return fallback

    try:
        parsed = json.loads(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"⚠️ JSON parse error: {e} (input preview: {value[:100]!r})")
        return fallback

    return parsed if parsed is not None else fallback


def safe_json_dumps(obj: Any, fallback: str = "{}") -> str:
    try:
        return json.dumps(obj)
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ JSON stringify error: {e}")
        return fallback


def parse_db_json_field(field: Any, fallback: Any) -> Any:
    """Parse a database JSON field that could be a string or already decoded."""
    if isinstance(field, (list, dict)):
        return field
    return safe_json_parse(field, fallback)


def validate_json_structure(parsed: Any, validator: Callable[[Any], bool], fallback: Any) -> Any:
    if validator(parsed):
        return parsed
    logger.warning("⚠️ JSON structure validation failed")
    return fallback
