"""
Status timeline API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.container import Services, get_services
from label_engine.database.engine import get_db
from label_engine.timeline.schemas import (
    StatusEventCreate,
    StatusEventResponse,
    StatusSummaryResponse,
    StatusTimelineResponse,
)

router = APIRouter()


@router.get("/labels/status-summary", response_model=StatusSummaryResponse)
async def status_summary(
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Latest status event of every version that has one."""
    events = await services.timeline.summary_across_versions(db)
    return StatusSummaryResponse(items=[StatusEventResponse.model_validate(e) for e in events])


@router.get("/versions/{version_id}/status-events", response_model=StatusTimelineResponse)
async def list_status_events(
    version_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    events = await services.timeline.list_events(db, version_id)
    items = [StatusEventResponse.model_validate(e) for e in events]
    return StatusTimelineResponse(
        version_id=version_id,
        events=items,
        current_status=items[-1] if items else None,
    )


@router.post(
    "/versions/{version_id}/status-events",
    response_model=StatusEventResponse,
    status_code=201,
)
async def append_status_event(
    version_id: int,
    data: StatusEventCreate,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Append a status event. Forward statuses answer 409 until the review is finalized."""
    event = await services.timeline.append_event(
        db,
        version_id,
        data.status_code,
        data.status_label,
        event_type=data.event_type,
        effective_at=data.effective_at,
        notes=data.notes,
        external_application_id=data.external_application_id,
        source=data.source,
        payload=data.payload,
    )
    return StatusEventResponse.model_validate(event)
