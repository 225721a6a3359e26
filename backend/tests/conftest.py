"""
Shared fixtures: in-memory SQLite database, component instances, and an
HTTP client over the real application.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from label_engine.compliance.service import ComplianceReviewEngine
from label_engine.config import Settings
from label_engine.database.engine import Database
from label_engine.main import create_app
from label_engine.timeline.service import StatusTimeline
from label_engine.versioning.service import VersionStore

WIZARD_KEY = "test-wizard-key"
WIZARD_HEADERS = {"X-Wizard-Key": WIZARD_KEY}


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        WIZARD_KEY=WIZARD_KEY,
        AI_PROVIDER="none",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest_asyncio.fixture
async def database():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db = Database(engine)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.sessionmaker() as s:
        yield s


@pytest.fixture
def versions(settings):
    return VersionStore(settings)


@pytest.fixture
def reviews(settings):
    return ComplianceReviewEngine(settings)


@pytest.fixture
def timeline(reviews):
    return StatusTimeline(reviews)


@pytest.fixture
def app(settings, database):
    return create_app(settings, database)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


SAMPLE_CONTENT = {
    "brand_name": "Old River",
    "product_name": "Single Barrel",
    "category": "Bourbon",
    "abv": 45.0,
    "volume_ml": 750,
    "tone": "heritage",
    "front_copy": "F0",
    "back_copy": "B0",
    "compliance_statement": "GOVERNMENT WARNING: ...",
}


async def seed_rules(reviews, session, category="Bourbon", codes=("R1", "R2")):
    for code in codes:
        await reviews.add_rule(session, category, code, "1", f"Rule {code}", guidance_text=f"Guidance {code}")
