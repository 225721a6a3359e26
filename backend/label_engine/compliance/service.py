"""
Compliance Review Engine: review sessions over a label version.

A session collects one decision per active rule of its category and can be
finalized exactly once, only when every active (rule_code, rule_version)
has at least one recorded decision. Finalization is a completeness gate,
not a pass/fail verdict: a FAIL decision still counts as decided.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.compliance.models import (
    ComplianceRule,
    ReviewDecision,
    ReviewEvent,
    ReviewSession,
    ReviewStatus,
)
from label_engine.config import Settings
from label_engine.core.errors import (
    ConflictError,
    IncompleteStateError,
    InvalidDecisionError,
    NotFoundError,
    RuleNotActiveError,
    require_positive_int,
    require_text,
)
from label_engine.core.logging import get_logger
from label_engine.versioning.models import LabelVersion

logger = get_logger(__name__)


def _category_matches(column, category: str):
    """Case- and whitespace-insensitive category comparison."""
    return func.lower(func.trim(column)) == category.strip().lower()


def parse_decision(value) -> ReviewDecision:
    try:
        return ReviewDecision(str(value or "").strip().upper())
    except ValueError:
        raise InvalidDecisionError(
            "Invalid decision value",
            allowed=[d.value for d in ReviewDecision],
        )


class ComplianceReviewEngine:
    """Owns compliance_rules, review_sessions and review_events."""

    def __init__(self, settings: Settings):
        self._settings = settings

    # ═══════════════════════════════════════════════════════════════════
    #  Rule catalog
    # ═══════════════════════════════════════════════════════════════════

    async def list_active_rules(self, db: AsyncSession, category: str) -> List[ComplianceRule]:
        category = require_text("category", category)
        result = await db.execute(
            select(ComplianceRule)
            .where(_category_matches(ComplianceRule.category, category), ComplianceRule.active.is_(True))
            .order_by(
                func.coalesce(ComplianceRule.section, ""),
                ComplianceRule.rule_code,
                ComplianceRule.rule_version.desc(),
            )
        )
        return list(result.scalars().all())

    async def add_rule(
        self,
        db: AsyncSession,
        category: str,
        rule_code: str,
        rule_version: str,
        title: str,
        guidance_text: Optional[str] = None,
        example_text: Optional[str] = None,
        section: Optional[str] = None,
        supersede: bool = True,
    ) -> ComplianceRule:
        """Add a rule version. With supersede, other versions of the same code go inactive."""
        category = require_text("category", category)
        rule_code = require_text("ruleCode", rule_code)
        rule_version = require_text("ruleVersion", str(rule_version))
        title = require_text("title", title)

        if supersede:
            result = await db.execute(
                select(ComplianceRule).where(
                    _category_matches(ComplianceRule.category, category),
                    ComplianceRule.rule_code == rule_code,
                    ComplianceRule.active.is_(True),
                )
            )
            for older in result.scalars().all():
                older.active = False

        rule = ComplianceRule(
            category=category,
            rule_code=rule_code,
            rule_version=rule_version,
            title=title,
            guidance_text=guidance_text,
            example_text=example_text,
            section=section,
            active=True,
        )
        db.add(rule)
        await db.flush()
        logger.info(
            "Compliance rule added",
            extra={"event": "rule_added", "category": category, "rule_code": rule_code, "rule_version": rule_version},
        )
        return rule

    async def deactivate_rule(
        self, db: AsyncSession, category: str, rule_code: str, rule_version: str
    ) -> ComplianceRule:
        rule = await self._find_active_rule(db, category, rule_code, rule_version)
        if rule is None:
            raise RuleNotActiveError(
                "Rule not found or inactive for this category/version",
                rule_code=rule_code,
                rule_version=rule_version,
            )
        rule.active = False
        await db.flush()
        return rule

    async def _find_active_rule(
        self, db: AsyncSession, category: str, rule_code: str, rule_version: str
    ) -> Optional[ComplianceRule]:
        result = await db.execute(
            select(ComplianceRule)
            .where(
                _category_matches(ComplianceRule.category, category),
                ComplianceRule.rule_code == rule_code,
                ComplianceRule.rule_version == rule_version,
                ComplianceRule.active.is_(True),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ═══════════════════════════════════════════════════════════════════
    #  Sessions
    # ═══════════════════════════════════════════════════════════════════

    async def start_or_reuse(
        self,
        db: AsyncSession,
        version_id: int,
        category: str,
        reviewer_id: Optional[str] = None,
        reviewer_role: Optional[str] = None,
    ) -> Tuple[ReviewSession, bool]:
        """Return the open session for the version, or start one.
        Second element is True when an existing session was reused."""
        version_id = require_positive_int("versionId", version_id)
        category = require_text("category", category)

        # Locking the version row serializes concurrent starts for it.
        version = (
            await db.execute(
                select(LabelVersion).where(LabelVersion.id == version_id).with_for_update()
            )
        ).scalar_one_or_none()
        if version is None:
            raise NotFoundError("Label version not found", version_id=version_id)

        existing = await self._open_session(db, version_id)
        if existing is not None:
            return existing, True

        session = ReviewSession(
            version_id=version_id,
            category=category,
            reviewer_id=(reviewer_id or "").strip() or None,
            reviewer_role=(reviewer_role or "").strip() or None,
            status=ReviewStatus.IN_PROGRESS.value,
        )
        db.add(session)
        await db.flush()
        logger.info(
            "Review session started",
            extra={"event": "review_started", "session_id": session.id, "version_id": version_id},
        )
        return session, False

    async def _open_session(self, db: AsyncSession, version_id: int) -> Optional[ReviewSession]:
        result = await db.execute(
            select(ReviewSession)
            .where(
                ReviewSession.version_id == version_id,
                ReviewSession.status == ReviewStatus.IN_PROGRESS.value,
            )
            .order_by(ReviewSession.started_at.desc(), ReviewSession.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_session(
        self, db: AsyncSession, session_id: int, for_update: bool = False
    ) -> ReviewSession:
        session_id = require_positive_int("sessionId", session_id)
        stmt = select(ReviewSession).where(ReviewSession.id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        session = (await db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise NotFoundError("Session not found", session_id=session_id)
        return session

    async def get_best_session(self, db: AsyncSession, version_id: int) -> Optional[ReviewSession]:
        """IN_PROGRESS session if any, else the most recently finalized, else None."""
        version_id = require_positive_int("versionId", version_id)
        in_progress_first = case(
            (ReviewSession.status == ReviewStatus.IN_PROGRESS.value, 0),
            else_=1,
        )
        result = await db.execute(
            select(ReviewSession)
            .where(ReviewSession.version_id == version_id)
            .order_by(
                in_progress_first,
                func.coalesce(ReviewSession.finalized_at, ReviewSession.started_at).desc(),
                ReviewSession.id.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ═══════════════════════════════════════════════════════════════════
    #  Decisions
    # ═══════════════════════════════════════════════════════════════════

    async def list_events(self, db: AsyncSession, session_id: int) -> List[ReviewEvent]:
        session = await self.get_session(db, session_id)
        result = await db.execute(
            select(ReviewEvent)
            .where(ReviewEvent.session_id == session.id)
            .order_by(ReviewEvent.created_at.asc(), ReviewEvent.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    def latest_decisions(events: List[ReviewEvent]) -> Dict[Tuple[str, str], ReviewEvent]:
        """Most recent event per (rule_code, rule_version); events must be in log order."""
        latest: Dict[Tuple[str, str], ReviewEvent] = {}
        for event in events:
            latest[(event.rule_code, event.rule_version)] = event
        return latest

    async def record_decision(
        self,
        db: AsyncSession,
        session_id: int,
        rule_code: str,
        rule_version: str,
        decision,
        comment: Optional[str] = None,
    ) -> ReviewEvent:
        """Append a decision, snapshotting the rule text the reviewer was shown."""
        rule_code = require_text("ruleCode", rule_code)
        rule_version = require_text("ruleVersion", str(rule_version) if rule_version is not None else "")
        decision = parse_decision(decision)

        session = await self.get_session(db, session_id, for_update=True)
        if session.status != ReviewStatus.IN_PROGRESS.value:
            raise ConflictError("Session is not editable", session_id=session.id, status=session.status)

        rule = await self._find_active_rule(db, session.category, rule_code, rule_version)
        if rule is None:
            raise RuleNotActiveError(
                "Rule not found or inactive for this category/version",
                rule_code=rule_code,
                rule_version=rule_version,
            )

        event = ReviewEvent(
            session_id=session.id,
            rule_code=rule_code,
            rule_version=rule_version,
            rule_title=rule.title,
            guidance_text=rule.guidance_text,
            example_text=rule.example_text,
            decision=decision.value,
            reviewer_comment=(comment or "").strip() or None,
        )
        db.add(event)
        await db.flush()
        logger.info(
            "Review decision recorded",
            extra={
                "event": "review_decision_recorded",
                "session_id": session.id,
                "rule_code": rule_code,
                "rule_version": rule_version,
                "decision": decision.value,
            },
        )
        return event

    # ═══════════════════════════════════════════════════════════════════
    #  Finalize + gate
    # ═══════════════════════════════════════════════════════════════════

    async def missing_rules(self, db: AsyncSession, session: ReviewSession) -> List[Dict[str, str]]:
        """Active rules of the session's category with no decision in the session."""
        rules = await db.execute(
            select(ComplianceRule.rule_code, ComplianceRule.rule_version).where(
                _category_matches(ComplianceRule.category, session.category),
                ComplianceRule.active.is_(True),
            )
        )
        decided = await db.execute(
            select(ReviewEvent.rule_code, ReviewEvent.rule_version)
            .where(ReviewEvent.session_id == session.id)
            .distinct()
        )
        have = {(row.rule_code, row.rule_version) for row in decided}
        return [
            {"ruleCode": row.rule_code, "ruleVersion": row.rule_version}
            for row in rules
            if (row.rule_code, row.rule_version) not in have
        ]

    async def finalize(self, db: AsyncSession, session_id: int) -> ReviewSession:
        """IN_PROGRESS → FINALIZED, once, when every active rule is decided."""
        session = await self.get_session(db, session_id, for_update=True)
        if session.status != ReviewStatus.IN_PROGRESS.value:
            raise ConflictError("Session is already finalized", session_id=session.id)

        missing = await self.missing_rules(db, session)
        if missing:
            logger.info(
                "Finalize blocked by undecided rules",
                extra={"event": "review_finalize_incomplete", "session_id": session.id, "missing_count": len(missing)},
            )
            raise IncompleteStateError("Cannot finalize: missing decisions for required rules", missing)

        session.status = ReviewStatus.FINALIZED.value
        session.finalized_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info(
            "Review session finalized",
            extra={"event": "review_finalized", "session_id": session.id, "version_id": session.version_id},
        )
        return session

    async def finalized_review(self, db: AsyncSession, version_id: int) -> Optional[ReviewSession]:
        """Most recently finalized session for the version, if any."""
        version_id = require_positive_int("versionId", version_id)
        result = await db.execute(
            select(ReviewSession)
            .where(
                ReviewSession.version_id == version_id,
                ReviewSession.status == ReviewStatus.FINALIZED.value,
            )
            .order_by(ReviewSession.finalized_at.desc(), ReviewSession.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def has_finalized_review(self, db: AsyncSession, version_id: int) -> bool:
        """Gate check used by the status timeline.

        Any historical finalization unlocks the version. With
        GATE_RELOCK_ON_OPEN_REVIEW, a session opened after the latest
        finalization locks it again until that session is finalized.
        """
        finalized = await self.finalized_review(db, version_id)
        if finalized is None:
            return False
        if not self._settings.GATE_RELOCK_ON_OPEN_REVIEW:
            return True

        reopened = await db.execute(
            select(ReviewSession.id)
            .where(
                ReviewSession.version_id == finalized.version_id,
                ReviewSession.status == ReviewStatus.IN_PROGRESS.value,
                ReviewSession.id > finalized.id,
            )
            .limit(1)
        )
        return reopened.scalar_one_or_none() is None
