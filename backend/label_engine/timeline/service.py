"""
Status Timeline: append-only regulatory-status events per label version,
with the compliance gate on forward statuses and the version status mirror.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.compliance.service import ComplianceReviewEngine
from label_engine.core.errors import (
    GateViolationError,
    NotFoundError,
    ValidationError,
    require_positive_int,
    require_text,
)
from label_engine.core.logging import get_logger
from label_engine.timeline.models import (
    StatusEvent,
    normalize_status_code,
    requires_finalized_review,
)
from label_engine.versioning.models import LabelVersion

logger = get_logger(__name__)


def to_utc(value: Optional[datetime]) -> datetime:
    """Naive timestamps are taken as UTC. None means now."""
    if value is None:
        return datetime.now(timezone.utc)
    if not isinstance(value, datetime):
        raise ValidationError("effectiveAt must be an ISO-8601 timestamp")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _timeline_order():
    return (StatusEvent.effective_at.asc(), StatusEvent.id.asc())


class StatusTimeline:
    """Owns status_events and is the only writer of the version status mirror."""

    def __init__(self, reviews: ComplianceReviewEngine):
        self._reviews = reviews

    async def append_event(
        self,
        db: AsyncSession,
        version_id: int,
        status_code: str,
        status_label: str,
        event_type: Optional[str] = None,
        effective_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        external_application_id: Optional[str] = None,
        source: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> StatusEvent:
        """Append a status event and refresh the version mirror in one unit.

        Forward statuses require a finalized compliance review for the
        version; anything else (PREPARING, or codes outside the known
        vocabulary) is accepted unconditionally.
        """
        version_id = require_positive_int("versionId", version_id)
        code = normalize_status_code(status_code)
        if not code:
            raise ValidationError("statusCode is required")
        label_text = require_text("statusLabel", status_label)

        # Lock first so the gate decision and the mirror write see the same row.
        version = (
            await db.execute(
                select(LabelVersion).where(LabelVersion.id == version_id).with_for_update()
            )
        ).scalar_one_or_none()
        if version is None:
            raise NotFoundError("Label version not found", version_id=version_id)

        if requires_finalized_review(code):
            if not await self._reviews.has_finalized_review(db, version_id):
                logger.warning(
                    "Forward status blocked by compliance gate",
                    extra={"event": "status_gate_blocked", "version_id": version_id, "status_code": code},
                )
                raise GateViolationError(version_id, code)

        event = StatusEvent(
            version_id=version_id,
            status_code=code,
            status_label=label_text,
            event_type=(event_type or "").strip() or "STATUS",
            effective_at=to_utc(effective_at),
            notes=notes,
            external_application_id=(external_application_id or "").strip() or None,
            source=(source or "").strip() or "user",
            payload=payload or {},
        )
        db.add(event)
        await db.flush()

        await self._refresh_mirror(db, version, event.external_application_id)

        logger.info(
            "Status event appended",
            extra={
                "event": "status_event_appended",
                "version_id": version_id,
                "status_code": code,
                "mirror_status": version.status_code,
            },
        )
        return event

    async def _refresh_mirror(
        self, db: AsyncSession, version: LabelVersion, external_application_id: Optional[str]
    ) -> None:
        """Mirror status and timestamp from the chronologically last event.

        A back-dated insert therefore leaves a newer status in place. The
        external application id is kept unless this append supplied one.
        """
        last = (
            await db.execute(
                select(StatusEvent)
                .where(StatusEvent.version_id == version.id)
                .order_by(StatusEvent.effective_at.desc(), StatusEvent.id.desc())
                .limit(1)
            )
        ).scalar_one()
        version.status_code = last.status_code
        version.status_changed_at = last.effective_at
        if external_application_id:
            version.external_application_id = external_application_id
        await db.flush()

    async def list_events(self, db: AsyncSession, version_id: int) -> List[StatusEvent]:
        version_id = require_positive_int("versionId", version_id)
        result = await db.execute(
            select(StatusEvent)
            .where(StatusEvent.version_id == version_id)
            .order_by(*_timeline_order())
        )
        return list(result.scalars().all())

    async def current_status(self, db: AsyncSession, version_id: int) -> Optional[StatusEvent]:
        events = await self.list_events(db, version_id)
        return events[-1] if events else None

    async def summary_across_versions(self, db: AsyncSession) -> List[StatusEvent]:
        """The latest event of every version that has one."""
        ranked = select(
            StatusEvent.id.label("event_id"),
            func.row_number()
            .over(
                partition_by=StatusEvent.version_id,
                order_by=(StatusEvent.effective_at.desc(), StatusEvent.id.desc()),
            )
            .label("rn"),
        ).subquery()
        result = await db.execute(
            select(StatusEvent)
            .join(ranked, ranked.c.event_id == StatusEvent.id)
            .where(ranked.c.rn == 1)
            .order_by(StatusEvent.version_id.asc())
        )
        return list(result.scalars().all())
