"""
AICopyComposer: provider-backed label copy generation.
Raises AdapterFailure on any provider or parse failure; the caller decides
whether to fall back.
"""
from label_engine.ai.providers import AIProviderError, get_ai_provider
from label_engine.config import Settings
from label_engine.copywriter.fallback import ensure_government_warning, format_abv
from label_engine.copywriter.schemas import CopyBrief, LabelCopy
from label_engine.core.errors import AdapterFailure
from label_engine.core.logging import get_logger

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  System Prompt
# ═══════════════════════════════════════════════════════════════════

LABEL_COPY_PROMPT = """You write compliant, marketing-grade US spirits label copy.

Input is a product brief: brand, product, category, ABV, volume and optional
tone, region, flavor notes, brand story and additional notes.

Rules:
- Front copy is short: brand, product and category identity, a tagline at most.
- Back copy is one to three short paragraphs in the requested tone.
- Do not make health claims or claims about intoxicating effects.
- Do NOT invent awards, ages or statements that are not in the brief.
- The compliance statement MUST start with the standard US GOVERNMENT WARNING
  text and then state brand, category, ABV (% Alc./Vol.) and volume (mL).

You MUST return ONLY valid JSON in this exact format:
{
  "frontCopy": "Front label text",
  "backCopy": "Back label text",
  "complianceStatement": "GOVERNMENT WARNING: ..."
}"""


def build_user_prompt(brief: CopyBrief) -> str:
    lines = [
        "Write premium US spirits label copy.",
        f"Brand: {brief.brand_name}",
        f"Product: {brief.product_name}",
        f"Type: {brief.category}",
        f"ABV: {format_abv(brief.abv)}%",
        f"Volume: {brief.volume_ml}ml",
        f"Tone/style: {brief.tone}",
    ]
    if brief.region:
        lines.append(f"Region: {brief.region}")
    if brief.flavor_notes:
        lines.append(f"Flavor notes: {brief.flavor_notes}")
    if brief.brand_story:
        lines.append(f"Brand story: {brief.brand_story}")
    if brief.additional_notes:
        lines.append(f"Additional notes: {brief.additional_notes}")
    return "\n".join(lines)


class AICopyComposer:
    """Generates LabelCopy through the configured provider."""

    def __init__(self, settings: Settings):
        self._settings = settings

    async def generate(self, brief: CopyBrief) -> LabelCopy:
        try:
            provider = get_ai_provider(self._settings)
            ai_response = await provider.generate_json(
                system_prompt=LABEL_COPY_PROMPT,
                user_prompt=build_user_prompt(brief),
                operation="generate_label_copy",
            )
        except AIProviderError as exc:
            raise AdapterFailure(str(exc), provider=exc.provider, model=exc.model) from exc

        copy = self._parse_copy(ai_response.data, brief)
        copy.provider = ai_response.provider
        copy.model = ai_response.model

        logger.info(
            "Label copy generated",
            extra={
                "event": "label_copy_generated",
                "provider": ai_response.provider,
                "model": ai_response.model,
                "total_tokens": ai_response.total_tokens,
                "latency_ms": ai_response.latency_ms,
            },
        )
        return copy

    @staticmethod
    def _parse_copy(data: dict, brief: CopyBrief) -> LabelCopy:
        """Front and back copy are required; a missing or warning-less
        compliance statement is replaced by the templated one."""
        front = str(data.get("frontCopy") or data.get("front_copy") or "").strip()
        back = str(data.get("backCopy") or data.get("back_copy") or "").strip()
        if not front or not back:
            raise AdapterFailure("Provider output is missing frontCopy or backCopy")

        statement = str(
            data.get("complianceStatement") or data.get("compliance_statement") or ""
        ).strip()
        return LabelCopy(
            front_copy=front,
            back_copy=back,
            compliance_statement=ensure_government_warning(statement, brief),
            source="ai",
        )
