"""
Request Models
==============

Pydantic models for API request bodies.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from jury.config import MAX_FINGERPRINT_LENGTH
from jury.utils.question_types import MULTIPLE_CHOICE, get_question_type


# =============================================================================
# Enums
# =============================================================================

class ApiScope(str, Enum):
    """Scopes an API key can carry."""
    POLLS_READ = "polls:read"
    POLLS_WRITE = "polls:write"
    RESULTS_READ = "results:read"


class WebhookEvent(str, Enum):
    """Events delivered to user webhooks."""
    VOTE_CREATED = "vote.created"
    POLL_CREATED = "poll.created"
    POLL_UPDATED = "poll.updated"
    POLL_DELETED = "poll.deleted"


class LiveState(str, Enum):
    """Presenter-mode state of a poll."""
    ACCEPTING_VOTES = "accepting_votes"
    RESULTS_REVEALED = "results_revealed"
    RESULTS_HIDDEN = "results_hidden"
    CLOSED = "closed"


HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))+$"
)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# =============================================================================
# Polls
# =============================================================================

class OptionInput(BaseModel):
    text: str = Field(..., max_length=500)
    image_url: Optional[str] = Field(None, max_length=2000)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Each option must be a non-empty string")
        return v


class QuestionInput(BaseModel):
    question_text: str = Field(..., min_length=1, max_length=500)
    question_type: str = MULTIPLE_CHOICE
    allow_multiple: bool = False
    settings: Dict[str, Any] = Field(default_factory=dict)
    options: List[OptionInput] = Field(default_factory=list, max_length=50)

    @field_validator("question_type")
    @classmethod
    def known_question_type(cls, v: str) -> str:
        if get_question_type(v) is None:
            raise ValueError(f"Unknown question type: {v}")
        return v


class PollCreateRequest(BaseModel):
    """
    New poll.

    Either ``questions`` (multi-question survey) or the ``options`` shortcut
    (single multiple-choice question using ``question`` as its text).
    """
    question: str = Field(..., min_length=1, max_length=500, description="Poll title")
    description: Optional[str] = Field(None, max_length=2000)
    allow_multiple: bool = False
    is_active: bool = True
    has_time_limit: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    show_results_to_voters: bool = True
    allow_vote_editing: bool = False
    password: Optional[str] = Field(None, min_length=1, max_length=200)
    embed_enabled: bool = True
    options: List[OptionInput] = Field(default_factory=list, max_length=50)
    questions: List[QuestionInput] = Field(default_factory=list, max_length=100)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class PollUpdateRequest(BaseModel):
    question: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    allow_multiple: Optional[bool] = None
    is_active: Optional[bool] = None
    has_time_limit: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    show_results_to_voters: Optional[bool] = None
    allow_vote_editing: Optional[bool] = None
    embed_enabled: Optional[bool] = None
    embed_settings: Optional[Dict[str, Any]] = None
    options: Optional[List[OptionInput]] = Field(None, max_length=50)


class PasswordCheckRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=200)


# =============================================================================
# Voting
# =============================================================================

class VoteRequest(BaseModel):
    option_ids: List[str] = Field(default_factory=list, max_length=50)
    responses: Dict[str, Any] = Field(
        default_factory=dict,
        description="question_id -> rating (int), ranking (list of option ids) or text",
    )
    voter_fingerprint: Optional[str] = Field(None, min_length=1, max_length=MAX_FINGERPRINT_LENGTH)
    password: Optional[str] = Field(None, max_length=200)


class DemoVoteRequest(BaseModel):
    demo_poll_id: UUID
    selected_options: List[str] = Field(..., min_length=1, max_length=20)
    voter_fingerprint: str = Field(..., min_length=1, max_length=MAX_FINGERPRINT_LENGTH)


# =============================================================================
# Public API v1
# =============================================================================

class ApiPollCreateRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    allow_multiple: bool = False
    options: List[str] = Field(..., min_length=2, max_length=50)

    @field_validator("options")
    @classmethod
    def non_empty_options(cls, v: List[str]) -> List[str]:
        cleaned = [opt.strip() for opt in v]
        if any(not opt for opt in cleaned):
            raise ValueError("Each option must be a non-empty string")
        return cleaned


# =============================================================================
# Account: profile, billing, keys, webhooks, domains, teams
# =============================================================================

class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = None
    avatar_url: Optional[str] = Field(None, max_length=2000)


class CheckoutRequest(BaseModel):
    price_id: str = Field(..., validation_alias=AliasChoices("price_id", "priceId"))

    @field_validator("price_id")
    @classmethod
    def stripe_price(cls, v: str) -> str:
        if not v.startswith("price_"):
            raise ValueError("Invalid price ID")
        return v


class ApiKeyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    scopes: List[ApiScope] = Field(
        default_factory=lambda: [ApiScope.POLLS_READ, ApiScope.RESULTS_READ],
        min_length=1,
    )
    expires_at: Optional[datetime] = None


class WebhookCreateRequest(BaseModel):
    url: str = Field(..., max_length=2000)
    events: List[WebhookEvent] = Field(..., min_length=1)

    @field_validator("url")
    @classmethod
    def http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class DomainCreateRequest(BaseModel):
    domain: str = Field(..., max_length=253)

    @field_validator("domain")
    @classmethod
    def valid_hostname(cls, v: str) -> str:
        v = v.strip().lower().rstrip(".")
        if v.startswith(("http://", "https://")):
            raise ValueError("Enter a hostname without the scheme (e.g. polls.example.com)")
        if not HOSTNAME_PATTERN.match(v):
            raise ValueError("Invalid domain name")
        return v


class DomainVerifyRequest(BaseModel):
    domain_id: str = Field(..., min_length=1, validation_alias=AliasChoices("domain_id", "domainId"))


class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class TeamInviteRequest(BaseModel):
    email: str = Field(..., max_length=320)

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v


# =============================================================================
# A/B testing
# =============================================================================

class VariantInput(BaseModel):
    variant_name: str = Field(..., min_length=1, max_length=50)
    question: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)


class ExperimentCreateRequest(BaseModel):
    poll_id: str
    name: str = Field(..., min_length=1, max_length=100)
    traffic_split: int = Field(50, ge=0, le=100)
    variants: List[VariantInput] = Field(..., min_length=2, max_length=10)


class VariantAssignRequest(BaseModel):
    voter_fingerprint: Optional[str] = Field(None, min_length=1, max_length=MAX_FINGERPRINT_LENGTH)


# =============================================================================
# Templates & generation
# =============================================================================

class GeneratePollRequest(BaseModel):
    prompt: str

    @field_validator("prompt")
    @classmethod
    def prompt_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Please provide a description of the poll you want to create")
        if len(v) > 500:
            raise ValueError("Description is too long (max 500 characters)")
        return v
