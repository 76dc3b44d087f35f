"""OpenAI-compatible chat client used by the description generator.

Ollama and LM Studio both serve the OpenAI HTTP API locally, so one AsyncOpenAI
client covers either; switching provider only swaps the base URL and default
model. The active provider and model are persisted in `app_settings`.
"""

from typing import Any, Dict, List, Optional
import logging
import os

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Dict[str, str]] = {
    "ollama": {
        "base_url": os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434"),
        "model": os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
    },
    "lmstudio": {
        "base_url": os.getenv("LMSTUDIO_BASE_URL", "http://127.0.0.1:1234"),
        "model": os.getenv("LMSTUDIO_MODEL", "meta-llama-3.1-8b-instruct"),
    },
}

# Local runtimes ignore the key but the client requires one
API_KEY = os.getenv("DUMMY_API_KEY", "sk-no-key")

SETTING_PROVIDER = "llm_provider"
SETTING_BASE_URL = "llm_base_url"
SETTING_MODEL = "llm_model"

current_provider = os.getenv("LLM_PROVIDER", "ollama").lower()
if current_provider not in PROVIDERS:
    current_provider = "ollama"
current_model = PROVIDERS[current_provider]["model"]

# Models reported by the provider; refreshed at startup and on every switch
AVAILABLE_MODELS: List[str] = []

client: Optional[AsyncOpenAI] = None


def get_provider() -> str:
    return current_provider


def get_provider_base_url() -> str:
    return PROVIDERS[current_provider]["base_url"]


def get_current_model() -> str:
    return current_model


def get_available_models() -> List[str]:
    return AVAILABLE_MODELS


def _get_client() -> AsyncOpenAI:
    global client
    if client is None:
        client = AsyncOpenAI(base_url=f"{get_provider_base_url()}/v1", api_key=API_KEY)
    return client


def _reset_client() -> None:
    global client
    client = None


async def fetch_available_models() -> List[str]:
    """Ask the provider for its models; keep the configured default when it is unreachable."""
    global AVAILABLE_MODELS
    fallback = [PROVIDERS[current_provider]["model"]]
    try:
        listing = await _get_client().models.list()
        AVAILABLE_MODELS = [getattr(m, "id", str(m)) for m in listing.data] or fallback
    except Exception as e:
        logger.warning(f"Could not list models from {current_provider} at {get_provider_base_url()}: {e}")
        AVAILABLE_MODELS = fallback
    return AVAILABLE_MODELS


def _restore_saved_selection() -> None:
    global current_provider, current_model
    from models.db import get_setting

    provider = get_setting(SETTING_PROVIDER)
    if provider in PROVIDERS:
        current_provider = provider
        current_model = PROVIDERS[provider]["model"]
    base_url = get_setting(SETTING_BASE_URL)
    if base_url:
        PROVIDERS[current_provider]["base_url"] = base_url
    model = get_setting(SETTING_MODEL)
    if model:
        current_model = model


async def initialize_models() -> None:
    """Startup hook: restore the saved provider and model, then discover models."""
    try:
        _restore_saved_selection()
    except Exception as e:
        logger.warning(f"Saved LLM selection not restored: {e}")
    _reset_client()
    await fetch_available_models()
    logger.info(f"LLM ready: provider={current_provider} model={current_model} models={AVAILABLE_MODELS}")


async def complete_json(
    system: str,
    prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 1024,
) -> str:
    """One chat completion constrained to a JSON object; returns the raw content."""
    messages: List[Dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    response = await _get_client().chat.completions.create(
        model=current_model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    return response.choices[0].message.content or ""


async def check_llm_status() -> Dict[str, Any]:
    status: Dict[str, Any] = {
        "provider": current_provider,
        "base_url": get_provider_base_url(),
        "model": current_model,
    }
    try:
        listing = await _get_client().models.list()
    except Exception as e:
        status.update(connected=False, error=str(e), available_models=AVAILABLE_MODELS)
    else:
        status.update(connected=True, available_models=[getattr(m, "id", str(m)) for m in listing.data])
    return status


def _persist(**values: str) -> None:
    from models.db import set_setting

    try:
        for key, value in values.items():
            set_setting(key, value)
    except Exception as e:
        logger.warning(f"LLM selection not persisted: {e}")


async def set_provider(provider_name: str, base_url: Optional[str] = None) -> bool:
    """Switch to another provider (optionally at a new base URL). False when unknown."""
    global current_provider, current_model
    provider = (provider_name or "").strip().lower()
    if provider not in PROVIDERS:
        return False

    current_provider = provider
    if base_url:
        PROVIDERS[provider]["base_url"] = base_url.rstrip("/")
    _reset_client()

    saved = {SETTING_PROVIDER: provider}
    if base_url:
        saved[SETTING_BASE_URL] = PROVIDERS[provider]["base_url"]
    _persist(**saved)

    models = await fetch_available_models()
    if current_model not in models:
        current_model = models[0]
    logger.info(f"LLM provider switched to {provider} ({get_provider_base_url()}), model={current_model}")
    return True


async def set_model(model_name: str) -> bool:
    """Select the generation model. False when the provider does not offer it."""
    global current_model
    await fetch_available_models()
    if model_name not in AVAILABLE_MODELS:
        return False
    current_model = model_name
    _persist(**{SETTING_MODEL: model_name})
    return True
