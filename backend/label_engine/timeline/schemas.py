"""
Status timeline schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from label_engine.core.schemas import CamelModel


class StatusEventCreate(CamelModel):
    status_code: str = Field(min_length=1)
    status_label: str = Field(min_length=1)
    event_type: Optional[str] = None
    effective_at: Optional[datetime] = None
    notes: Optional[str] = None
    external_application_id: Optional[str] = None
    source: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None


class StatusEventResponse(CamelModel):
    id: int
    version_id: int
    status_code: str
    status_label: str
    event_type: str
    effective_at: datetime
    notes: Optional[str] = None
    external_application_id: Optional[str] = None
    source: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class StatusTimelineResponse(CamelModel):
    version_id: int
    events: List[StatusEventResponse]
    current_status: Optional[StatusEventResponse] = None


class StatusSummaryResponse(CamelModel):
    items: List[StatusEventResponse]
