"""
Deterministic templated label copy, used whenever the provider is
unavailable or returns unusable output.
"""
from label_engine.copywriter.schemas import CopyBrief, LabelCopy

GOVERNMENT_WARNING = (
    "GOVERNMENT WARNING: (1) According to the Surgeon General, women should not drink "
    "alcoholic beverages during pregnancy because of the risk of birth defects. "
    "(2) Consumption of alcoholic beverages impairs your ability to drive a car or "
    "operate machinery, and may cause health problems."
)


def format_abv(abv: float) -> str:
    return f"{abv:g}"


def compliance_statement(brief: CopyBrief) -> str:
    """Government warning followed by the mandatory identity line."""
    return (
        f"{GOVERNMENT_WARNING}\n\n"
        f"{brief.brand_name} {brief.category}. "
        f"{format_abv(brief.abv)}% Alc./Vol. {brief.volume_ml} mL."
    )


def ensure_government_warning(statement: str, brief: CopyBrief) -> str:
    """Keep a provider statement only if it carries the warning text."""
    if statement and "GOVERNMENT WARNING" in statement.upper():
        return statement
    return compliance_statement(brief)


def fallback_copy(brief: CopyBrief) -> LabelCopy:
    front = "\n".join([
        brief.brand_name,
        brief.product_name,
        brief.category,
        f"{format_abv(brief.abv)}% ABV • {brief.volume_ml}ml",
    ])
    back_parts = [f"{brief.product_name} from {brief.brand_name}."]
    if brief.region:
        back_parts.append(f"Crafted in {brief.region}.")
    if brief.flavor_notes:
        back_parts.append(f"Tasting notes: {brief.flavor_notes}.")
    if brief.brand_story:
        back_parts.append(brief.brand_story)

    return LabelCopy(
        front_copy=front,
        back_copy="\n\n".join(back_parts),
        compliance_statement=compliance_statement(brief),
        source="fallback",
    )
