"""
Built-in poll templates.

Each template carries the minimum tier that may use it. Listing never hides
templates; it marks the ones above the caller's tier as ``locked``.
"""

from typing import Any, Dict, List, Optional

from jury.utils.tiers import TIER_ORDER, normalize_tier

TEMPLATE_CATEGORIES = {
    "feedback": "Feedback",
    "education": "Education",
    "events": "Events",
    "team": "Team",
    "marketing": "Marketing",
    "fun": "Fun",
}


def _q(text, question_type="multiple_choice", options=(), allow_multiple=False, settings=None):
    return {
        "question_text": text,
        "question_type": question_type,
        "allow_multiple": allow_multiple,
        "settings": settings or {},
        "options": [{"text": option} for option in options],
    }


def _rating(text, low_label, high_label, high=5):
    return _q(text, "rating_scale", settings={"min": 1, "max": high, "labels": {"1": low_label, str(high): high_label}})


TEMPLATES: List[Dict[str, Any]] = [
    # Free
    {
        "id": "customer-satisfaction",
        "name": "Customer Satisfaction",
        "description": "Measure how happy your customers are with your product or service",
        "category": "feedback",
        "min_tier": "free",
        "icon": "😊",
        "questions": [
            _q("How satisfied are you with our product/service?",
               options=["Very Satisfied", "Satisfied", "Neutral", "Dissatisfied", "Very Dissatisfied"]),
        ],
    },
    {
        "id": "team-lunch",
        "name": "Team Lunch Poll",
        "description": "Let your team vote on where to eat",
        "category": "team",
        "min_tier": "free",
        "icon": "🍽️",
        "questions": [
            _q("Where should we go for lunch today?", options=["Pizza", "Sushi", "Burgers", "Salads", "Thai"]),
        ],
    },
    {
        "id": "event-date",
        "name": "Event Date Picker",
        "description": "Find the best date for your next event",
        "category": "events",
        "min_tier": "free",
        "icon": "📅",
        "questions": [
            _q("Which date works best for you?",
               options=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"], allow_multiple=True),
        ],
    },
    {
        "id": "quick-vote",
        "name": "Quick Yes/No Vote",
        "description": "Get a fast answer on any topic",
        "category": "fun",
        "min_tier": "free",
        "icon": "✅",
        "questions": [_q("Do you agree?", options=["Yes", "No", "Maybe"])],
    },
    # Pro
    {
        "id": "product-feedback-survey",
        "name": "Product Feedback Survey",
        "description": "Comprehensive product feedback with ratings and rankings",
        "category": "feedback",
        "min_tier": "pro",
        "icon": "📊",
        "questions": [
            _rating("How would you rate our product overall?", "Poor", "Excellent"),
            _q("Which features are most important to you?", "ranked_choice",
               options=["Ease of use", "Performance", "Design", "Price", "Support"]),
        ],
    },
    {
        "id": "nps-survey",
        "name": "NPS Survey",
        "description": "Net Promoter Score: measure customer loyalty",
        "category": "feedback",
        "min_tier": "pro",
        "icon": "📈",
        "questions": [
            _rating("How likely are you to recommend us to a friend? (1 = Not likely, 10 = Very likely)",
                    "Not at all", "Extremely likely", high=10),
        ],
    },
    {
        "id": "class-quiz",
        "name": "Class Quiz",
        "description": "Test knowledge with a multi-question quiz",
        "category": "education",
        "min_tier": "pro",
        "icon": "🎓",
        "questions": [
            _q("What is the capital of Australia?", options=["Sydney", "Melbourne", "Canberra", "Brisbane"]),
            _q("Which planet is closest to the sun?", options=["Venus", "Mercury", "Earth", "Mars"]),
        ],
    },
    {
        "id": "event-feedback",
        "name": "Event Feedback",
        "description": "Gather post-event feedback with ratings",
        "category": "events",
        "min_tier": "pro",
        "icon": "🎤",
        "questions": [
            _rating("How would you rate the event overall?", "Poor", "Excellent"),
            _q("What did you enjoy most?",
               options=["Speakers", "Networking", "Content", "Venue", "Food & Drinks"], allow_multiple=True),
        ],
    },
    {
        "id": "brand-preference",
        "name": "Brand Preference",
        "description": "Compare brand options with image-based voting",
        "category": "marketing",
        "min_tier": "pro",
        "icon": "🏷️",
        "questions": [
            _q("Which logo design do you prefer?", "image_choice", options=["Option A", "Option B", "Option C"]),
        ],
    },
    # Team
    {
        "id": "employee-engagement",
        "name": "Employee Engagement Survey",
        "description": "Comprehensive workplace satisfaction survey",
        "category": "team",
        "min_tier": "team",
        "icon": "💼",
        "questions": [
            _rating("How satisfied are you with your role?", "Very unsatisfied", "Very satisfied"),
            _q("What could we improve?", "open_ended"),
            _q("How do you feel about the team culture?", "reaction",
               options=["😀", "😐", "😢", "😡"], allow_multiple=True,
               settings={"emojis": ["😀", "😐", "😢", "😡"]}),
        ],
    },
    {
        "id": "retrospective",
        "name": "Sprint Retrospective",
        "description": "Team retro: what went well, what to improve",
        "category": "team",
        "min_tier": "team",
        "icon": "🔄",
        "questions": [
            _rating("How would you rate this sprint?", "Rough", "Great"),
            _q("What went well?", "open_ended"),
            _q("What should we improve?", "open_ended"),
        ],
    },
    {
        "id": "market-research",
        "name": "Market Research Survey",
        "description": "Comprehensive market research with multiple question types",
        "category": "marketing",
        "min_tier": "team",
        "icon": "🔍",
        "questions": [
            _q("How often do you use products like ours?",
               options=["Daily", "Weekly", "Monthly", "Rarely", "Never"]),
            _q("Rate these features by importance", "ranked_choice",
               options=["Price", "Quality", "Speed", "Support", "Design"]),
            _q("Any additional feedback?", "open_ended"),
        ],
    },
]


def get_template_by_id(template_id: str) -> Optional[Dict[str, Any]]:
    return next((t for t in TEMPLATES if t["id"] == template_id), None)


def get_templates_by_category(category: str) -> List[Dict[str, Any]]:
    return [t for t in TEMPLATES if t["category"] == category]


def is_template_locked(template: Dict[str, Any], tier: Optional[str]) -> bool:
    return TIER_ORDER.index(template["min_tier"]) > TIER_ORDER.index(normalize_tier(tier))


def list_templates_for_tier(tier: Optional[str], category: Optional[str] = None) -> List[Dict[str, Any]]:
    templates = get_templates_by_category(category) if category else TEMPLATES
    return [{**t, "locked": is_template_locked(t, tier)} for t in templates]
