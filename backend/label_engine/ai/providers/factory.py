"""
Provider factory: returns the configured provider instance.
Supports: openai, ollama, auto (cascade), none (copy generation disabled).

Auto mode tries OpenAI → Ollama, skipping providers that aren't
configured, and raises AIProviderError if none can be built.
"""
from label_engine.ai.providers.base import AIProvider, AIProviderError
from label_engine.config import Settings
from label_engine.core.logging import get_logger

logger = get_logger(__name__)


def get_ai_provider(settings: Settings) -> AIProvider:
    """
    Instantiate the provider named by AI_PROVIDER.
    Raises AIProviderError if it is disabled or misconfigured.
    """
    provider_name = settings.AI_PROVIDER.lower().strip()

    if provider_name == "openai":
        return _make_openai(settings)

    elif provider_name == "ollama":
        return _make_ollama(settings)

    elif provider_name == "auto":
        return _make_auto(settings)

    elif provider_name == "none":
        raise AIProviderError("Copy generation is disabled (AI_PROVIDER=none)", provider="none")

    else:
        raise AIProviderError(
            f"Unsupported AI provider: '{provider_name}'. "
            f"Must be 'openai', 'ollama', 'auto' or 'none'.",
            provider=provider_name,
        )


# ═══════════════════════════════════════════════════════════════════
#  Provider constructors
# ═══════════════════════════════════════════════════════════════════

def _make_openai(settings: Settings) -> AIProvider:
    from label_engine.ai.providers.openai_provider import OpenAIProvider
    return OpenAIProvider(settings)


def _make_ollama(settings: Settings) -> AIProvider:
    from label_engine.ai.providers.ollama_provider import OllamaProvider
    return OllamaProvider(settings)


def _make_auto(settings: Settings) -> AIProvider:
    """Return the first provider that can be constructed."""
    errors = []

    candidates = [
        ("openai", bool(settings.OPENAI_API_KEY), _make_openai),
        ("ollama", bool(settings.OLLAMA_BASE_URL), _make_ollama),
    ]
    for name, configured, make in candidates:
        if not configured:
            continue
        try:
            provider = make(settings)
        except AIProviderError as exc:
            errors.append(f"{name}: {exc}")
            logger.warning(f"Auto-provider: {name} failed: {exc}", extra={
                "event": "auto_provider_skip", "provider": name,
            })
            continue
        logger.info(f"Auto-provider selected {name}", extra={
            "event": "auto_provider_select", "provider": name,
        })
        return provider

    raise AIProviderError(
        f"Auto-provider: no provider available. Errors: {'; '.join(errors) or 'none configured'}",
        provider="auto",
    )
