"""
Copy generation adapter. Label creation never depends on the provider
being reachable: any AdapterFailure is absorbed into templated copy.
"""
from label_engine.copywriter.ai_copy_composer import AICopyComposer
from label_engine.copywriter.fallback import fallback_copy
from label_engine.copywriter.schemas import CopyBrief, LabelCopy
from label_engine.core.errors import AdapterFailure
from label_engine.core.logging import get_logger

logger = get_logger(__name__)


class LabelCopywriter:
    def __init__(self, composer: AICopyComposer):
        self._composer = composer

    async def compose(self, brief: CopyBrief) -> LabelCopy:
        """Validated brief in, three copy fields out."""
        brief = brief.require()
        try:
            return await self._composer.generate(brief)
        except AdapterFailure as exc:
            logger.warning(
                "Copy generation failed, using templated copy",
                extra={
                    "event": "copy_fallback_used",
                    "provider": exc.provider,
                    "model": exc.model,
                    "error": exc.message,
                },
            )
            return fallback_copy(brief)
