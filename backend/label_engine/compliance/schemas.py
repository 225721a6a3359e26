"""
Compliance schemas: rule catalog, review sessions, decisions, gate status.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from label_engine.core.schemas import CamelModel


class RuleResponse(CamelModel):
    id: int
    category: str
    rule_code: str
    rule_version: str
    title: str
    guidance_text: Optional[str] = None
    example_text: Optional[str] = None
    section: Optional[str] = None
    active: bool = True


class RuleListResponse(CamelModel):
    category: str
    rules: List[RuleResponse]
    total: int = 0


class StartReviewRequest(CamelModel):
    version_id: int = Field(gt=0)
    category: str = Field(min_length=1)
    reviewer_id: Optional[str] = None
    reviewer_role: Optional[str] = None


class SessionResponse(CamelModel):
    id: int
    version_id: int
    category: str
    reviewer_id: Optional[str] = None
    reviewer_role: Optional[str] = None
    status: str
    started_at: datetime
    finalized_at: Optional[datetime] = None


class StartReviewResponse(CamelModel):
    session: SessionResponse
    reused: bool


class ReviewEventResponse(CamelModel):
    id: int
    session_id: int
    rule_code: str
    rule_version: str
    rule_title: Optional[str] = None
    guidance_text: Optional[str] = None
    example_text: Optional[str] = None
    decision: str
    reviewer_comment: Optional[str] = None
    created_at: datetime


class SessionDetailResponse(CamelModel):
    session: Optional[SessionResponse] = None
    events: List[ReviewEventResponse] = Field(default_factory=list)
    latest_decisions: List[ReviewEventResponse] = Field(default_factory=list)


class SessionEventsResponse(CamelModel):
    session_id: int
    events: List[ReviewEventResponse]


class RecordDecisionRequest(CamelModel):
    session_id: int = Field(gt=0)
    rule_code: str = Field(min_length=1)
    rule_version: str = Field(min_length=1)
    decision: str
    comment: Optional[str] = None

    @field_validator("rule_version", mode="before")
    @classmethod
    def _version_as_text(cls, value):
        # Catalog versions are text; clients often send them as numbers.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class FinalizeRequest(CamelModel):
    session_id: int = Field(gt=0)


class ReviewStatusResponse(CamelModel):
    version_id: int
    has_finalized_review: bool
    finalized_at: Optional[datetime] = None
