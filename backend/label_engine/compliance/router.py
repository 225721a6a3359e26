"""
Compliance review API endpoints: rules, sessions, decisions, finalize.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from label_engine.compliance.schemas import (
    FinalizeRequest,
    RecordDecisionRequest,
    ReviewEventResponse,
    ReviewStatusResponse,
    RuleListResponse,
    RuleResponse,
    SessionDetailResponse,
    SessionEventsResponse,
    SessionResponse,
    StartReviewRequest,
    StartReviewResponse,
)
from label_engine.container import Services, get_services
from label_engine.database.engine import get_db

router = APIRouter()


@router.get("/rules", response_model=RuleListResponse)
async def list_rules(
    category: str = Query(...),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Active rules for a category, grouped by section."""
    rules = await services.reviews.list_active_rules(db, category)
    items = [RuleResponse.model_validate(r) for r in rules]
    return RuleListResponse(category=category.strip(), rules=items, total=len(items))


@router.post("/review/start", response_model=StartReviewResponse)
async def start_review(
    data: StartReviewRequest,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Start a review for a version, or return the one already open."""
    session, reused = await services.reviews.start_or_reuse(
        db, data.version_id, data.category, data.reviewer_id, data.reviewer_role
    )
    return StartReviewResponse(session=SessionResponse.model_validate(session), reused=reused)


@router.get("/review/session", response_model=SessionDetailResponse)
async def get_session(
    version_id: int = Query(..., alias="versionId"),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Open session if any, else the latest finalized one, with its decisions."""
    session = await services.reviews.get_best_session(db, version_id)
    if session is None:
        return SessionDetailResponse()

    events = await services.reviews.list_events(db, session.id)
    latest = services.reviews.latest_decisions(events)
    return SessionDetailResponse(
        session=SessionResponse.model_validate(session),
        events=[ReviewEventResponse.model_validate(e) for e in events],
        latest_decisions=[ReviewEventResponse.model_validate(e) for e in latest.values()],
    )


@router.get("/review/session/{session_id}/events", response_model=SessionEventsResponse)
async def list_session_events(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    events = await services.reviews.list_events(db, session_id)
    return SessionEventsResponse(
        session_id=session_id,
        events=[ReviewEventResponse.model_validate(e) for e in events],
    )


@router.post("/review/event", response_model=ReviewEventResponse, status_code=201)
async def record_decision(
    data: RecordDecisionRequest,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    event = await services.reviews.record_decision(
        db, data.session_id, data.rule_code, data.rule_version, data.decision, data.comment
    )
    return ReviewEventResponse.model_validate(event)


@router.post("/review/finalize", response_model=SessionResponse)
async def finalize_review(
    data: FinalizeRequest,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Finalize once every active rule has a decision; 422 lists what is missing."""
    session = await services.reviews.finalize(db, data.session_id)
    return SessionResponse.model_validate(session)


@router.get("/review/status", response_model=ReviewStatusResponse)
async def review_status(
    version_id: int = Query(..., alias="versionId"),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """Whether forward regulatory statuses are currently unlocked for the version."""
    unlocked = await services.reviews.has_finalized_review(db, version_id)
    finalized = await services.reviews.finalized_review(db, version_id)
    return ReviewStatusResponse(
        version_id=version_id,
        has_finalized_review=unlocked,
        finalized_at=finalized.finalized_at if finalized else None,
    )
