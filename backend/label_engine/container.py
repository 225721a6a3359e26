"""
Service wiring. One instance of each component per application, built by
create_app() and stored on app.state.services.
"""
from dataclasses import dataclass

from fastapi import Request

from label_engine.compliance.service import ComplianceReviewEngine
from label_engine.config import Settings
from label_engine.copywriter.ai_copy_composer import AICopyComposer
from label_engine.copywriter.service import LabelCopywriter
from label_engine.timeline.service import StatusTimeline
from label_engine.versioning.service import VersionStore


@dataclass
class Services:
    versions: VersionStore
    reviews: ComplianceReviewEngine
    timeline: StatusTimeline
    copywriter: LabelCopywriter


def build_services(settings: Settings) -> Services:
    reviews = ComplianceReviewEngine(settings)
    return Services(
        versions=VersionStore(settings),
        reviews=reviews,
        timeline=StatusTimeline(reviews),
        copywriter=LabelCopywriter(AICopyComposer(settings)),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
