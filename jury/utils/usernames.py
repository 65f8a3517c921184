"""
Fantasy username generator for new profiles.

Usernames look like ``brave_wizard_4821`` and always satisfy the profile
username rules (3-30 chars, letters, digits and underscores).
"""

import re
import secrets
from typing import Callable

FANTASY_ADJECTIVES = [
    "brave", "swift", "clever", "mighty", "silent", "bold", "wise", "noble",
    "fierce", "gentle", "loyal", "mystic", "golden", "silver", "crimson",
    "azure", "emerald", "shadow", "bright", "ancient", "wild", "lucky",
    "frost", "ember", "storm", "iron", "stellar", "lunar", "solar", "royal",
]

FANTASY_NOUNS = [
    "knight", "wizard", "mage", "archer", "ranger", "scout", "hunter",
    "guardian", "warrior", "champion", "hero", "adventurer", "explorer",
    "wanderer", "seeker", "scholar", "scribe", "sage", "mystic", "oracle",
    "seer", "herald", "smith", "artisan", "merchant", "keeper", "warden",
    "sentinel", "rider", "voyager", "nomad", "healer", "cleric", "paladin",
    "monk", "druid", "bard", "dragon", "phoenix", "griffin",
]

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30


def validate_username(username: str) -> str:
    """
    Validate a user-chosen username.

    Raises:
        ValueError: With a human-readable reason
    """
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValueError("Username must be at least 3 characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValueError("Username must be at most 30 characters")
    if not USERNAME_PATTERN.match(username):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return username


def generate_fantasy_username() -> str:
    adjective = secrets.choice(FANTASY_ADJECTIVES)
    noun = secrets.choice(FANTASY_NOUNS)
    number = secrets.randbelow(9000) + 1000
    return f"{adjective}_{noun}_{number}"


def generate_unique_fantasy_username(is_available: Callable[[str], bool], max_attempts: int = 10) -> str:
    """
    Generate a username that ``is_available`` accepts.

    Falls back to a random hex suffix after ``max_attempts`` collisions.
    """
    for _ in range(max_attempts):
        candidate = generate_fantasy_username()
        if is_available(candidate):
            return candidate
    return f"juror_{secrets.token_hex(6)}"
