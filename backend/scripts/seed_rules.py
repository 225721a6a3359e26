"""
Standalone script to seed the compliance rule catalog.

Usage:
    cd backend
    python -m scripts.seed_rules [CATEGORY ...]

Safe to run multiple times: a rule version that is already active is skipped.
"""
import asyncio
import sys
from typing import Iterable

from label_engine.compliance.models import ComplianceRule
from label_engine.compliance.service import ComplianceReviewEngine
from label_engine.config import get_settings
from label_engine.core.logging import get_logger, setup_logging
from label_engine.database.engine import Database, build_engine

logger = get_logger("scripts.seed_rules")

DEFAULT_CATEGORIES = ("Bourbon", "Rye Whiskey", "Vodka", "Gin", "Rum")

# (section, rule_code, rule_version, title, guidance, example)
BASE_RULES = (
    ("Identity", "BRAND_NAME", "1", "Brand name",
     "The brand name must appear on the front label in the same field of vision as the class/type.",
     "OLD RIVER"),
    ("Identity", "CLASS_TYPE", "1", "Class and type designation",
     "State the class or type of the spirit exactly as defined in the standards of identity.",
     "Kentucky Straight Bourbon Whiskey"),
    ("Identity", "NAME_ADDRESS", "1", "Name and address",
     "Bottler or importer name and address, preceded by an appropriate phrase.",
     "Bottled by Old River Distilling Co., Louisville, KY"),
    ("Contents", "ALCOHOL_CONTENT", "1", "Alcohol content",
     "Alcohol content as a percentage of alcohol by volume; proof is optional.",
     "45% Alc./Vol. (90 Proof)"),
    ("Contents", "NET_CONTENTS", "1", "Net contents",
     "Net contents in metric units using an authorized standard of fill.",
     "750 mL"),
    ("Warnings", "GOV_WARNING", "1", "Health warning statement",
     "The government warning must appear verbatim, with 'GOVERNMENT WARNING' in capitals and bold.",
     "GOVERNMENT WARNING: (1) According to the Surgeon General, ..."),
)


async def seed_rules(categories: Iterable[str]) -> int:
    """Insert missing base rules for each category. Returns the number added."""
    settings = get_settings()
    database = Database(build_engine(settings))
    engine = ComplianceReviewEngine(settings)
    added = 0

    await database.create_all()
    async with database.transaction() as db:
        for category in categories:
            existing = {
                (rule.rule_code, rule.rule_version)
                for rule in await engine.list_active_rules(db, category)
            }
            for section, code, version, title, guidance, example in BASE_RULES:
                if (code, version) in existing:
                    continue
                rule: ComplianceRule = await engine.add_rule(
                    db, category, code, version, title,
                    guidance_text=guidance, example_text=example, section=section,
                )
                added += 1
                logger.info("Seeded rule", extra={
                    "event": "rule_seeded", "category": category, "rule_code": rule.rule_code,
                })

    await database.dispose()
    logger.info("Seed complete", extra={"event": "seed_complete", "added": added})
    return added


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed_rules(sys.argv[1:] or DEFAULT_CATEGORIES))
