"""
Label API endpoints: generation, snapshot reads, metadata, saves, logical delete.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.container import Services, get_services
from label_engine.database.engine import Database, get_database, get_db
from label_engine.labels.schemas import (
    GenerateLabelRequest,
    GenerateLabelResponse,
    LabelResponse,
    LabelSnapshotResponse,
    MetadataPatch,
    MetadataPatchResponse,
    SaveLabelRequest,
    SaveLabelResponse,
)
from label_engine.middleware.auth_middleware import require_wizard_key
from label_engine.versioning.schemas import VersionResponse

router = APIRouter()


@router.post("/labels/generate", response_model=GenerateLabelResponse, status_code=201)
async def generate_label(
    data: GenerateLabelRequest,
    database: Database = Depends(get_database),
    services: Services = Depends(get_services),
):
    """Generate copy for a brief and persist it as a new version.

    Provider failures never fail the request; templated copy is used instead.
    The transaction opens only after copy is in hand.
    """
    brief = data.require()
    copy = await services.copywriter.compose(brief)

    content = brief.model_dump(exclude={"id"})
    content.update(
        front_copy=copy.front_copy,
        back_copy=copy.back_copy,
        compliance_statement=copy.compliance_statement,
    )
    async with database.transaction() as db:
        label, action, version = await services.versions.create_or_update_label(db, data.id, content)
    return GenerateLabelResponse(
        label_id=label.id,
        action=action.value,
        version_id=version.id,
        front_copy=copy.front_copy,
        back_copy=copy.back_copy,
        compliance_statement=copy.compliance_statement,
        copy_source=copy.source,
    )


@router.post(
    "/labels",
    response_model=SaveLabelResponse,
    status_code=201,
    dependencies=[Depends(require_wizard_key)],
)
async def create_label(
    data: SaveLabelRequest,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    label, action, version = await services.versions.create_or_update_label(
        db, None, data.require().model_dump()
    )
    return SaveLabelResponse(label_id=label.id, action=action.value, version_id=version.id)


@router.get("/labels/{label_id}", response_model=LabelSnapshotResponse)
async def get_label(
    label_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    label, current = await services.versions.get_label_snapshot(db, label_id)
    return LabelSnapshotResponse(
        label=LabelResponse.model_validate(label),
        current_version=VersionResponse.model_validate(current) if current else None,
    )


@router.patch("/labels/{label_id}", response_model=MetadataPatchResponse)
async def patch_label_metadata(
    label_id: int,
    body: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Metadata only. Content fields answer 403; publish a new version instead."""
    changes = MetadataPatch.from_body(body).changes()
    if not changes:
        return MetadataPatchResponse(updated=False, reason="No allowed metadata fields provided")
    label = await services.versions.update_metadata(db, label_id, changes)
    return MetadataPatchResponse(updated=True, label=LabelResponse.model_validate(label))


@router.post(
    "/labels/{label_id}/wizard/save",
    response_model=SaveLabelResponse,
    status_code=201,
    dependencies=[Depends(require_wizard_key)],
)
async def wizard_save(
    label_id: int,
    data: SaveLabelRequest,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Persist wizard content as a new version of this label id."""
    label, action, version = await services.versions.create_or_update_label(
        db, label_id, data.require().model_dump()
    )
    return SaveLabelResponse(label_id=label.id, action=action.value, version_id=version.id)


@router.delete(
    "/labels/{label_id}",
    response_model=SaveLabelResponse,
    dependencies=[Depends(require_wizard_key)],
)
async def delete_label(
    label_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Logical delete: appends a DELETE version; nothing is removed."""
    version = await services.versions.delete_label(db, label_id)
    return SaveLabelResponse(label_id=version.label_id, action=version.action, version_id=version.id)
