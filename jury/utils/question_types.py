"""
Question type registry.

Each type names the tier feature that unlocks it (None = free for all) and
whether it stores answers as poll options.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

MULTIPLE_CHOICE = "multiple_choice"
RATING_SCALE = "rating_scale"
RANKED_CHOICE = "ranked_choice"
IMAGE_CHOICE = "image_choice"
OPEN_ENDED = "open_ended"
REACTION = "reaction"

# Answers to these types are tallied per option
CHOICE_TYPES = {MULTIPLE_CHOICE, IMAGE_CHOICE, REACTION}


@dataclass(frozen=True)
class QuestionTypeDefinition:
    value: str
    label: str
    description: str
    min_tier: str
    feature_key: Optional[str]
    has_options: bool


QUESTION_TYPES: List[QuestionTypeDefinition] = [
    QuestionTypeDefinition(
        value=MULTIPLE_CHOICE,
        label="Multiple Choice",
        description="Voters pick one or more options",
        min_tier="free",
        feature_key=None,
        has_options=True,
    ),
    QuestionTypeDefinition(
        value=RATING_SCALE,
        label="Rating Scale",
        description="Rate on a numeric scale (e.g. 1-5 stars)",
        min_tier="pro",
        feature_key="rating_scale",
        has_options=False,
    ),
    QuestionTypeDefinition(
        value=RANKED_CHOICE,
        label="Ranked Choice",
        description="Drag to rank options in order of preference",
        min_tier="pro",
        feature_key="ranked_choice",
        has_options=True,
    ),
    QuestionTypeDefinition(
        value=IMAGE_CHOICE,
        label="Image Options",
        description="Choose from options with images",
        min_tier="pro",
        feature_key="image_options",
        has_options=True,
    ),
    QuestionTypeDefinition(
        value=OPEN_ENDED,
        label="Open Ended",
        description="Free text response from voters",
        min_tier="team",
        feature_key="open_ended",
        has_options=False,
    ),
    QuestionTypeDefinition(
        value=REACTION,
        label="Reaction Poll",
        description="React with emojis for quick feedback",
        min_tier="team",
        feature_key="reaction_polls",
        has_options=True,
    ),
]

_BY_VALUE = {qt.value: qt for qt in QUESTION_TYPES}


def get_question_type(value: str) -> Optional[QuestionTypeDefinition]:
    return _BY_VALUE.get(value)


def question_type_has_options(value: str) -> bool:
    # Unknown types behave like multiple choice
    qt = get_question_type(value)
    return qt.has_options if qt else True


def get_default_settings(value: str) -> Dict[str, Any]:
    """Default settings for each question type."""
    if value == RATING_SCALE:
        return {"min": 1, "max": 5, "labels": {"1": "Poor", "5": "Excellent"}}
    if value == REACTION:
        return {"emojis": list(EMOJI_PRESETS["reactions"])}
    return {}


EMOJI_PRESETS: Dict[str, List[str]] = {
    "thumbs": ["👍", "👎"],
    "faces": ["😀", "😐", "😢", "😡"],
    "reactions": ["👍", "👎", "❤️", "😂", "😮", "😢"],
    "ratings": ["⭐", "🌟", "💫", "✨", "🔥"],
    "food": ["🍕", "🍔", "🌮", "🍣", "🥗", "🍜"],
}
