from reposcope.config import Settings
from reposcope.llm.base import LLMConfigError, LLMProvider
from reposcope.llm.ollama import OllamaProvider


def get_provider(settings: Settings) -> LLMProvider:
    """Builds the provider named by LLM_PROVIDER (gemini, openai or ollama)."""
    name = settings.llm_provider

    if name == "gemini":
        from reposcope.llm.gemini import GeminiProvider

        return GeminiProvider(api_key=settings.gemini_api_key, model=settings.gemini_model)

    if name == "openai":
        from reposcope.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_model)

    if name == "ollama":
        return OllamaProvider(host=settings.ollama_host, model=settings.ollama_model)

    raise LLMConfigError(f"Unknown LLM_PROVIDER: {name!r} (expected gemini, openai or ollama)")


__all__ = ["LLMConfigError", "LLMProvider", "OllamaProvider", "get_provider"]
