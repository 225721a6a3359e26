"""
Compliance review SQLAlchemy models: rule catalog, review sessions, decisions.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from label_engine.database.engine import Base


class ReviewStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"


class ReviewDecision(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    NEEDS_REVISION = "NEEDS_REVISION"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class ComplianceRule(Base):
    """One version of a regulatory requirement for a product category."""
    __tablename__ = "compliance_rules"
    __table_args__ = (
        UniqueConstraint("category", "rule_code", "rule_version", name="uq_rule_category_code_version"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String(100), nullable=False, index=True)
    rule_code = Column(String(100), nullable=False)
    rule_version = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    guidance_text = Column(Text, nullable=True)
    example_text = Column(Text, nullable=True)
    section = Column(String(100), nullable=True)  # display grouping only
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class ReviewSession(Base):
    """Compliance review of one label version."""
    __tablename__ = "review_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(Integer, ForeignKey("label_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    reviewer_id = Column(String(255), nullable=True)
    reviewer_role = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=ReviewStatus.IN_PROGRESS.value)
    started_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    finalized_at = Column(DateTime(timezone=True), nullable=True)


class ReviewEvent(Base):
    """One rule decision. Rule text is snapshotted at decision time."""
    __tablename__ = "review_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("review_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_code = Column(String(100), nullable=False)
    rule_version = Column(String(50), nullable=False)
    rule_title = Column(String(255), nullable=True)
    guidance_text = Column(Text, nullable=True)
    example_text = Column(Text, nullable=True)
    decision = Column(String(20), nullable=False)
    reviewer_comment = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
