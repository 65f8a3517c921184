"""
Service Response Models
=======================

Pydantic models for API responses.
"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class ErrorResponse(BaseModel):
    """Error response"""

    error: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response"""

    service: str
    status: str
    build_id: str
    github_commit: str
    timestamp: str


class OptionResult(BaseModel):
    """Vote tally for one option"""

    option_id: str
    option_text: str
    option_order: int = 0
    vote_count: int


class VoteResponse(BaseModel):
    """Response from vote submission"""

    success: bool
    vote_id: Optional[str] = None


class HasVotedResponse(BaseModel):
    hasVoted: bool


class ApiKeyCreatedResponse(BaseModel):
    """The raw key is only ever returned here"""

    id: str
    name: str
    key: str
    key_prefix: str
    scopes: List[str]
    expires_at: Optional[str] = None


class WebhookCreatedResponse(BaseModel):
    """The signing secret is only ever returned here"""

    id: str
    url: str
    events: List[str]
    secret: str
    is_active: bool


class DomainVerifyResponse(BaseModel):
    verified: bool
    message: str


class UrlResponse(BaseModel):
    """Redirect target (Stripe checkout / billing portal)"""

    url: str


class EmbedCodeResponse(BaseModel):
    embed_url: str
    iframe: str
    branding: bool
    theme: Dict[str, Any]
