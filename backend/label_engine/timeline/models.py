"""
StatusEvent: one entry in a label version's external regulatory-status timeline.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text

from label_engine.database.engine import Base


class RegulatoryStatus(str, enum.Enum):
    PREPARING = "PREPARING"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    NEEDS_CORRECTION = "NEEDS_CORRECTION"
    NEEDS_REVISION = "NEEDS_REVISION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ISSUED = "ISSUED"


# Statuses that may only be recorded once the version has a finalized compliance review.
FORWARD_STATUSES = frozenset({
    RegulatoryStatus.SUBMITTED,
    RegulatoryStatus.IN_REVIEW,
    RegulatoryStatus.NEEDS_CORRECTION,
    RegulatoryStatus.NEEDS_REVISION,
    RegulatoryStatus.APPROVED,
    RegulatoryStatus.REJECTED,
    RegulatoryStatus.ISSUED,
})


def normalize_status_code(value) -> str:
    return str(value or "").strip().upper()


def requires_finalized_review(status_code: str) -> bool:
    """True if status_code is a forward status. Unknown codes are not forward."""
    try:
        return RegulatoryStatus(normalize_status_code(status_code)) in FORWARD_STATUSES
    except ValueError:
        return False


class StatusEvent(Base):
    __tablename__ = "status_events"
    __table_args__ = (
        Index("ix_status_events_version_effective", "version_id", "effective_at", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(Integer, ForeignKey("label_versions.id", ondelete="CASCADE"), nullable=False)
    status_code = Column(String(50), nullable=False)
    status_label = Column(String(255), nullable=False)
    event_type = Column(String(50), nullable=False, default="STATUS")
    effective_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    notes = Column(Text, nullable=True)
    external_application_id = Column(String(100), nullable=True)
    source = Column(String(50), nullable=False, default="user")
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
