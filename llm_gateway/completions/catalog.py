"""Static model catalog shown to clients. Not a restriction: any model id is forwarded as-is."""

from __future__ import annotations

from types import MappingProxyType

from llm_gateway.domain.completions import ProviderId


def _model(model_id: str, name: str, description: str) -> dict[str, str]:
    return {"id": model_id, "name": name, "description": description}


MODEL_CATALOG = MappingProxyType(
    {
        ProviderId.OPENAI: (
            _model("gpt-4", "GPT-4", "Most capable model, best for complex tasks"),
            _model("gpt-4-turbo", "GPT-4 Turbo", "Faster and more efficient GPT-4"),
            _model("gpt-4o", "GPT-4o", "Latest GPT-4 optimized model"),
            _model("gpt-4o-mini", "GPT-4o Mini", "Compact version of GPT-4o"),
            _model("gpt-3.5-turbo", "GPT-3.5 Turbo", "Fast and efficient for most tasks"),
        ),
        ProviderId.GROQ: (
            _model(
                "llama-3.1-8b-instant",
                "Llama 3.1 8B Instant",
                "Fast Llama model for quick responses",
            ),
            _model("gemma2-9b-it", "Gemma2 9B IT", "Google Gemma2 instruction-tuned model"),
            _model("openai/gpt-oss-120b", "GPT OSS 120B", "Large open-source GPT model"),
        ),
        ProviderId.GOOGLE: (
            _model("gemini-2.5-pro", "Gemini 2.5 Pro", "Most advanced Gemini model"),
            _model("gemini-2.5-flash", "Gemini 2.5 Flash", "Fast and efficient Gemini model"),
            _model("gemini-2.5-flash-lite", "Gemini 2.5 Flash-Lite", "Lightweight Gemini model"),
            _model(
                "gemini-2.0-flash", "Gemini 2.0 Flash", "Previous generation fast Gemini model"
            ),
            _model(
                "gemini-2.0-flash-lite",
                "Gemini 2.0 Flash-Lite",
                "Previous generation lightweight Gemini model",
            ),
        ),
        ProviderId.ANTHROPIC: (
            _model("claude-opus-4-1-20250805", "Claude Opus 4.1", "Latest Claude Opus model"),
            _model("claude-opus-4-20250514", "Claude Opus 4", "Most powerful Claude model"),
            _model(
                "claude-sonnet-4-20250514",
                "Claude Sonnet 4",
                "Balanced Claude model for most tasks",
            ),
        ),
    }
)


def list_models(provider_id: ProviderId) -> list[dict[str, str]]:
    return [dict(m) for m in MODEL_CATALOG.get(provider_id, ())]
