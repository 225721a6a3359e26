"""
Copy-generation provider abstraction layer.
Supports OpenAI and Ollama with a unified interface.
"""
from label_engine.ai.providers.base import AIProvider, AIProviderError, AIResponse
from label_engine.ai.providers.factory import get_ai_provider

__all__ = ["AIProvider", "AIProviderError", "AIResponse", "get_ai_provider"]
