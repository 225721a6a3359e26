"""
Versioning API endpoints: version lists, history feed, in-place edits,
drafts and publish.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.container import Services, get_services
from label_engine.database.engine import get_db
from label_engine.middleware.auth_middleware import require_wizard_key
from label_engine.versioning.schemas import (
    DraftResponse,
    LabelContent,
    PublishResponse,
    VersionListResponse,
    VersionResponse,
)

router = APIRouter()


@router.get("/labels/history", response_model=VersionListResponse)
async def history_feed(
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Global version feed across all labels, newest first."""
    versions = await services.versions.list_history(db, limit)
    items = [VersionResponse.model_validate(v) for v in versions]
    return VersionListResponse(versions=items, total=len(items))


@router.get("/labels/{label_id}/versions", response_model=VersionListResponse)
async def list_versions(
    label_id: int,
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Version history for one label, newest first."""
    versions = await services.versions.list_versions(db, label_id, limit)
    items = [VersionResponse.model_validate(v) for v in versions]
    return VersionListResponse(versions=items, total=len(items))


@router.get("/versions/{version_id}", response_model=VersionResponse)
async def get_version(
    version_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    version = await services.versions.get_version(db, version_id)
    return VersionResponse.model_validate(version)


@router.put(
    "/versions/{version_id}",
    response_model=VersionResponse,
    dependencies=[Depends(require_wizard_key)],
)
async def edit_version(
    version_id: int,
    data: LabelContent,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Edit in place while the version is unsubmitted (no status or PREPARING)."""
    version = await services.versions.edit_version_in_place(db, version_id, data.changes())
    return VersionResponse.model_validate(version)


# ── Drafts ───────────────────────────────────────────────────────

@router.get("/labels/{label_id}/draft", response_model=DraftResponse)
async def get_draft(
    label_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    draft = await services.versions.get_or_create_draft(db, label_id)
    return DraftResponse.model_validate(draft)


@router.put(
    "/labels/{label_id}/draft",
    response_model=DraftResponse,
    dependencies=[Depends(require_wizard_key)],
)
async def save_draft(
    label_id: int,
    data: LabelContent,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Merge non-null fields into the draft; nulls never erase stored values."""
    draft = await services.versions.upsert_draft(db, label_id, data.changes())
    return DraftResponse.model_validate(draft)


@router.post(
    "/labels/{label_id}/publish",
    response_model=PublishResponse,
    status_code=201,
    dependencies=[Depends(require_wizard_key)],
)
async def publish_draft(
    label_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    version = await services.versions.publish_draft(db, label_id)
    return PublishResponse(label_id=version.label_id, version=VersionResponse.model_validate(version))
