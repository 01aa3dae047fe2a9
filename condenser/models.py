"""Model registry used to resolve context-window budgets."""

from loguru import logger

DEFAULT_CONTEXT_LENGTH = 200_000

MODELS = [
    {"id": "anthropic/claude-opus-4-6", "context_length": 200_000},
    {"id": "anthropic/claude-sonnet-4-5", "context_length": 200_000},
    {"id": "anthropic/claude-haiku-4-5", "context_length": 200_000},
    {"id": "openai/gpt-5.2", "context_length": 400_000},
    {"id": "openai/gpt-5-mini", "context_length": 400_000},
    {"id": "openai/gpt-4o", "context_length": 128_000},
    {"id": "gemini/gemini-3-pro-preview", "context_length": 1_048_576},
    {"id": "gemini/gemini-3-flash-preview", "context_length": 1_048_576},
    {"id": "gemini/gemini-2.5-flash-lite", "context_length": 1_048_576},
    {"id": "gemini/gemini-2.5-pro", "context_length": 1_048_576},
]


def get_model(model_id: str) -> dict | None:
    """Get a registry entry by id, with or without the provider prefix."""
    bare = model_id.split("/", 1)[-1]
    for m in MODELS:
        if m["id"] == model_id or m["id"].split("/", 1)[-1] == bare:
            return m
    return None


def _lookup_litellm(model_id: str) -> int | None:
    """Ask litellm's bundled model map for the input window."""
    import litellm

    try:
        info = litellm.get_model_info(model_id)
    except Exception:
        return None
    return info.get("max_input_tokens") or info.get("max_tokens")


def get_context_length(model_id: str | None, overrides: dict[str, int] | None = None) -> int:
    """Resolve the context length of a model.

    Lookup order: explicit overrides, the built-in registry, litellm's model
    map, then DEFAULT_CONTEXT_LENGTH.
    """
    if not model_id:
        return DEFAULT_CONTEXT_LENGTH

    if overrides and model_id in overrides:
        return overrides[model_id]

    entry = get_model(model_id)
    if entry:
        return entry["context_length"]

    length = _lookup_litellm(model_id)
    if length:
        return length

    logger.debug(f"Unknown model {model_id}, using default context length")
    return DEFAULT_CONTEXT_LENGTH
