"""
Version Store: append-only label content history, current-version pointer,
and the per-label draft workspace.

Every method runs inside the caller's transaction and only flushes; the
request scope commits or rolls back as a unit. Rows that a method reads in
order to decide a write are locked with SELECT ... FOR UPDATE.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.config import Settings
from label_engine.core.errors import (
    ConflictError,
    NotFoundError,
    VersionLockedError,
    require_positive_int,
)
from label_engine.core.logging import get_logger
from label_engine.labels.models import DENORMALIZED_FIELDS, METADATA_FIELDS, Label
from label_engine.versioning.models import (
    CONTENT_FIELDS,
    LabelDraft,
    PREPARING_STATUS,
    LabelVersion,
    VersionAction,
)

logger = get_logger(__name__)


def _pick(draft_value, last_value):
    """Draft value if present, else the last published value, else None."""
    return draft_value if draft_value is not None else last_value


async def _advance_label_sequence(db: AsyncSession) -> None:
    """Move the PostgreSQL id sequence past an explicitly inserted label id.

    SQLite allocates max(rowid) + 1 on its own.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    await db.execute(text(
        "SELECT setval(pg_get_serial_sequence('labels', 'id'), "
        "(SELECT MAX(id) FROM labels))"
    ))


class VersionStore:
    """Owns labels, label_versions and label_drafts."""

    def __init__(self, settings: Settings):
        self._settings = settings

    # ═══════════════════════════════════════════════════════════════════
    #  Labels
    # ═══════════════════════════════════════════════════════════════════

    async def get_label(
        self, db: AsyncSession, label_id: int, for_update: bool = False
    ) -> Label:
        label_id = require_positive_int("labelId", label_id)
        stmt = select(Label).where(Label.id == label_id)
        if for_update:
            stmt = stmt.with_for_update()
        label = (await db.execute(stmt)).scalar_one_or_none()
        if not label:
            raise NotFoundError("Label not found", label_id=label_id)
        return label

    async def create_or_update_label(
        self, db: AsyncSession, label_id: Optional[int], content: dict
    ) -> Tuple[Label, VersionAction, LabelVersion]:
        """Upsert the label row and append a version for `content` in one unit.

        Without label_id a new label is allocated. With label_id the row is
        created under that id if missing. The action is CREATE when the label
        had no current version before this call, UPDATE otherwise.
        """
        if label_id is None:
            label = Label()
            db.add(label)
            await db.flush()
            action = VersionAction.CREATE
        else:
            label_id = require_positive_int("labelId", label_id)
            result = await db.execute(
                select(Label).where(Label.id == label_id).with_for_update()
            )
            label = result.scalar_one_or_none()
            if label is None:
                label = Label(id=label_id)
                db.add(label)
                await db.flush()
                await _advance_label_sequence(db)
                action = VersionAction.CREATE
            else:
                action = VersionAction.UPDATE if label.current_version_id else VersionAction.CREATE

        version = await self.append_version(db, label, action, content)
        return label, action, version

    async def append_version(
        self,
        db: AsyncSession,
        label: Label,
        action: VersionAction,
        content: dict,
        status_code: Optional[str] = None,
    ) -> LabelVersion:
        """Append a version and repoint label.current_version_id to it."""
        values = {field: content.get(field) for field in CONTENT_FIELDS}
        version = LabelVersion(
            label_id=label.id,
            action=VersionAction(action).value,
            status_code=status_code,
            **values,
        )
        db.add(version)
        await db.flush()

        label.current_version_id = version.id
        for field in DENORMALIZED_FIELDS:
            setattr(label, field, values[field])
        await db.flush()

        logger.info(
            "Version appended",
            extra={
                "event": "version_appended",
                "label_id": label.id,
                "version_id": version.id,
                "action": version.action,
            },
        )
        return version

    async def get_label_snapshot(
        self, db: AsyncSession, label_id: int
    ) -> Tuple[Label, Optional[LabelVersion]]:
        """Label plus its current version (None before the first publish)."""
        label = await self.get_label(db, label_id)
        current = None
        if label.current_version_id is not None:
            current = await db.get(LabelVersion, label.current_version_id)
        return label, current

    async def update_metadata(self, db: AsyncSession, label_id: int, changes: dict) -> Label:
        """Write metadata fields only. Never creates a version."""
        label = await self.get_label(db, label_id, for_update=True)
        for field, value in changes.items():
            if field in METADATA_FIELDS:
                setattr(label, field, value)
        await db.flush()
        logger.info(
            "Label metadata updated",
            extra={"event": "label_metadata_updated", "label_id": label.id, "fields": sorted(changes)},
        )
        return label

    async def delete_label(self, db: AsyncSession, label_id: int) -> LabelVersion:
        """Logical delete: append a DELETE version carrying the current content."""
        label = await self.get_label(db, label_id, for_update=True)
        if label.current_version_id is None:
            raise ConflictError("Label has no published version to delete", label_id=label.id)
        current = await db.get(LabelVersion, label.current_version_id)
        return await self.append_version(db, label, VersionAction.DELETE, current.content())

    # ═══════════════════════════════════════════════════════════════════
    #  Versions
    # ═══════════════════════════════════════════════════════════════════

    async def get_version(
        self, db: AsyncSession, version_id: int, for_update: bool = False
    ) -> LabelVersion:
        version_id = require_positive_int("versionId", version_id)
        stmt = select(LabelVersion).where(LabelVersion.id == version_id)
        if for_update:
            stmt = stmt.with_for_update()
        version = (await db.execute(stmt)).scalar_one_or_none()
        if not version:
            raise NotFoundError("Label version not found", version_id=version_id)
        return version

    async def list_versions(
        self, db: AsyncSession, label_id: int, limit=None
    ) -> List[LabelVersion]:
        """Versions of one label, newest first."""
        label = await self.get_label(db, label_id)
        result = await db.execute(
            select(LabelVersion)
            .where(LabelVersion.label_id == label.id)
            .order_by(LabelVersion.created_at.desc(), LabelVersion.id.desc())
            .limit(self._settings.clamp_limit(limit))
        )
        return list(result.scalars().all())

    async def list_history(self, db: AsyncSession, limit=None) -> List[LabelVersion]:
        """Global history feed across all labels, newest first."""
        result = await db.execute(
            select(LabelVersion)
            .order_by(LabelVersion.created_at.desc(), LabelVersion.id.desc())
            .limit(self._settings.clamp_limit(limit))
        )
        return list(result.scalars().all())

    async def edit_version_in_place(
        self, db: AsyncSession, version_id: int, changes: dict
    ) -> LabelVersion:
        """Merge non-null content changes into a version that is not yet submitted.

        Allowed only while the status mirror is null or PREPARING; the lock
        check and the write happen against the same locked row.
        """
        version = await self.get_version(db, version_id, for_update=True)
        if not version.is_editable:
            logger.warning(
                "Edit rejected on locked version",
                extra={
                    "event": "version_edit_locked",
                    "version_id": version.id,
                    "status_code": version.status_code,
                },
            )
            raise VersionLockedError(version.id, version.status_code)

        for field, value in changes.items():
            if field in CONTENT_FIELDS and value is not None:
                setattr(version, field, value)
        await db.flush()

        logger.info(
            "Version edited in place",
            extra={"event": "version_edited", "version_id": version.id, "label_id": version.label_id},
        )
        return version

    async def _latest_version(self, db: AsyncSession, label_id: int) -> Optional[LabelVersion]:
        result = await db.execute(
            select(LabelVersion)
            .where(LabelVersion.label_id == label_id)
            .order_by(LabelVersion.created_at.desc(), LabelVersion.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ═══════════════════════════════════════════════════════════════════
    #  Drafts
    # ═══════════════════════════════════════════════════════════════════

    async def get_or_create_draft(self, db: AsyncSession, label_id: int) -> LabelDraft:
        label = await self.get_label(db, label_id, for_update=True)
        draft = await db.get(LabelDraft, label.id)
        if draft is None:
            draft = LabelDraft(label_id=label.id)
            db.add(draft)
            await db.flush()
            logger.info("Draft created", extra={"event": "draft_created", "label_id": label.id})
        return draft

    async def upsert_draft(self, db: AsyncSession, label_id: int, changes: dict) -> LabelDraft:
        """Point-wise merge: a null in `changes` never erases a stored value."""
        draft = await self.get_or_create_draft(db, label_id)
        for field, value in changes.items():
            if field in CONTENT_FIELDS and value is not None:
                setattr(draft, field, value)
        await db.flush()
        return draft

    async def publish_draft(self, db: AsyncSession, label_id: int) -> LabelVersion:
        """Promote the draft to a new PREPARING version and repoint current.

        Each field takes the draft value if set, else the latest version's
        value, else null. The draft itself is left in place.
        """
        label = await self.get_label(db, label_id, for_update=True)
        draft = await db.get(LabelDraft, label.id)
        if draft is None:
            raise NotFoundError("No draft found to publish", label_id=label.id)

        last = await self._latest_version(db, label.id)
        action = VersionAction.UPDATE if last else VersionAction.CREATE
        last_content = last.content() if last else {}
        content = {
            field: _pick(getattr(draft, field), last_content.get(field))
            for field in CONTENT_FIELDS
        }

        version = await self.append_version(db, label, action, content, status_code=PREPARING_STATUS)
        logger.info(
            "Draft published",
            extra={"event": "draft_published", "label_id": label.id, "version_id": version.id},
        )
        return version
