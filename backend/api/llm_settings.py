from typing import Optional

from fastapi import APIRouter, Form

from llm import (
    check_llm_status,
    get_available_models,
    get_current_model,
    get_provider,
    get_provider_base_url,
    set_model,
    set_provider,
)
from .common import error_response


router = APIRouter()


@router.get("/llm/status")
async def get_llm_status():
    """Provider connectivity and the model used by the description generator."""
    status = await check_llm_status()
    return {
        "connected": status.get("connected", False),
        "provider": status.get("provider"),
        "base_url": status.get("base_url"),
        "model": status.get("model"),
        "available_models": status.get("available_models", []),
        "error": status.get("error"),
    }


@router.get("/llm/model")
def get_llm_model():
    return {
        "model": get_current_model(),
        "available_models": get_available_models(),
        "provider": get_provider(),
        "base_url": get_provider_base_url(),
    }


@router.post("/llm/model")
async def post_llm_model(model: str = Form(...)):
    if await set_model(model):
        return {"ok": True, "model": get_current_model()}
    return error_response(400, "Invalid model")


@router.post("/llm/provider")
async def post_llm_provider(provider: str = Form(...), base_url: Optional[str] = Form(None)):
    """Switch between 'ollama' and 'lmstudio', optionally with a new base_url."""
    if await set_provider(provider, base_url):
        return {"ok": True, "provider": get_provider(), "base_url": get_provider_base_url()}
    return error_response(400, "Invalid provider")
