"""
Rule-Based Poll Generation
==========================

Builds a poll draft (title, description, questions) from a short text
prompt by matching keyword intents. No external model is called.

Intents are checked in priority order: feedback, food, event, team,
preference, then a generic agree/disagree default.
"""

import re
from typing import Any, Dict, List

INTENT_KEYWORDS = {
    "feedback": ("feedback", "satisfaction", "review", "rate"),
    "food": ("food", "lunch", "dinner", "restaurant", "eat"),
    "event": ("event", "meeting", "date", "schedule", "when"),
    "team": ("team", "employee", "workplace", "sprint", "retro"),
    "preference": ("prefer", "favorite", "favourite", "best", "choose"),
}
INTENT_ORDER = ("feedback", "food", "event", "team", "preference")

STOP_WORDS = {
    "the", "a", "an", "for", "with", "about", "on", "in", "to", "of",
    "how", "what", "is", "are", "my", "our", "your",
}


def detect_intent(prompt: str) -> str:
    lower = prompt.lower()
    for intent in INTENT_ORDER:
        if any(keyword in lower for keyword in INTENT_KEYWORDS[intent]):
            return intent
    return "default"


def make_title(prompt: str) -> str:
    """First letter upper-cased, trailing ``?.!`` removed."""
    title = prompt[:1].upper() + prompt[1:]
    return re.sub(r"[?.!]+$", "", title)


def extract_subject(prompt: str) -> str:
    """Last three meaningful words of the prompt (the whole prompt if short)."""
    words = re.sub(r"[?.!,]", "", prompt).split()
    if len(words) <= 3:
        return prompt
    meaningful = [w for w in words if w.lower() not in STOP_WORDS]
    return " ".join(meaningful[-3:]) or prompt


def _as_question(prompt: str) -> str:
    return prompt if prompt.endswith("?") else f"{prompt}?"


def _question(text: str, options: List[str], allow_multiple: bool = False) -> Dict[str, Any]:
    return {
        "question_text": text,
        "question_type": "multiple_choice",
        "allow_multiple": allow_multiple,
        "options": [{"text": option} for option in options],
    }


def generate_poll_from_prompt(prompt: str) -> Dict[str, Any]:
    """
    Draft a poll for ``prompt``.

    Returns:
        Dict with title, description and questions (each with options)
    """
    prompt = prompt.strip()
    title = make_title(prompt)
    intent = detect_intent(prompt)

    if intent == "feedback":
        description = "Share your honest feedback to help us improve"
        questions = [
            _question(
                f"How would you rate your experience with {extract_subject(prompt)}?",
                ["Excellent", "Good", "Average", "Below Average", "Poor"],
            ),
            _question(
                "What aspects stood out to you?",
                ["Quality", "Speed", "Value for money", "Customer service", "Ease of use"],
                allow_multiple=True,
            ),
        ]
    elif intent == "food":
        description = "Vote for your preferred option"
        questions = [
            _question(
                "What type of food are you in the mood for?",
                ["Pizza", "Sushi", "Burgers", "Thai", "Mexican", "Indian"],
            ),
        ]
    elif intent == "event":
        description = "Help us find the best time for everyone"
        questions = [
            _question(
                "Which day works best for you?",
                ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
                allow_multiple=True,
            ),
            _question(
                "What time of day do you prefer?",
                ["Morning (9am-12pm)", "Afternoon (12pm-5pm)", "Evening (5pm-8pm)"],
            ),
        ]
    elif intent == "team":
        description = "Anonymous team feedback survey"
        questions = [
            _question(
                "How would you rate team morale this week?",
                ["Great", "Good", "Okay", "Could be better", "Needs improvement"],
            ),
            _question(
                "What should we focus on improving?",
                ["Communication", "Work-life balance", "Project planning", "Tools & processes", "Team bonding"],
                allow_multiple=True,
            ),
        ]
    elif intent == "preference":
        description = "Cast your vote and see what others think"
        questions = [_question(_as_question(prompt), ["Option A", "Option B", "Option C", "Option D"])]
    else:
        description = "Share your opinion"
        questions = [
            _question(
                _as_question(prompt),
                ["Strongly Agree", "Agree", "Neutral", "Disagree", "Strongly Disagree"],
            ),
        ]

    return {"title": title, "description": description, "questions": questions}
