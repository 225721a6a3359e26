"""
Copywriter schemas: the product brief sent to copy generation and the
three copy fields it returns.
"""
from typing import List, Optional

from pydantic.alias_generators import to_camel

from label_engine.core.errors import ValidationError
from label_engine.core.schemas import CamelModel

REQUIRED_BRIEF_FIELDS = ("brand_name", "product_name", "category", "abv", "volume_ml")
DEFAULT_TONE = "heritage"


class CopyBrief(CamelModel):
    """Structured product attributes. Everything is optional at parse time;
    require() enforces the required set with a single ValidationError."""
    brand_name: Optional[str] = None
    product_name: Optional[str] = None
    category: Optional[str] = None
    abv: Optional[float] = None
    volume_ml: Optional[int] = None
    tone: Optional[str] = None
    region: Optional[str] = None
    flavor_notes: Optional[str] = None
    brand_story: Optional[str] = None
    additional_notes: Optional[str] = None

    def require(self) -> "CopyBrief":
        """Return a trimmed copy with the default tone, or raise listing the missing fields."""
        text = {
            name: (getattr(self, name) or "").strip() or None
            for name in (
                "brand_name", "product_name", "category", "tone",
                "region", "flavor_notes", "brand_story", "additional_notes",
            )
        }
        trimmed = self.model_copy(update=text)
        missing: List[str] = [
            name for name in REQUIRED_BRIEF_FIELDS if getattr(trimmed, name) is None
        ]
        if missing:
            raise ValidationError(
                "Missing required fields: brandName, productName, category, abv, volumeMl",
                missing=[to_camel(name) for name in missing],
            )
        if trimmed.tone is None:
            trimmed = trimmed.model_copy(update={"tone": DEFAULT_TONE})
        return trimmed


class LabelCopy(CamelModel):
    """The three generated copy fields plus where they came from."""
    front_copy: str
    back_copy: str
    compliance_statement: str
    source: str = "ai"  # ai | fallback
    provider: Optional[str] = None
    model: Optional[str] = None
