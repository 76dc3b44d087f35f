from fastapi import APIRouter

# Subrouters are imported and re-exported for convenience
from .health import router as health_router  # noqa: F401
from .opportunities import router as opportunities_router  # noqa: F401
from .applications import router as applications_router  # noqa: F401
from .admin import router as admin_router  # noqa: F401
from .descriptions import router as descriptions_router  # noqa: F401
from .llm_settings import router as llm_settings_router  # noqa: F401

__all__ = [
    "APIRouter",
    "health_router",
    "opportunities_router",
    "applications_router",
    "admin_router",
    "descriptions_router",
    "llm_settings_router",
]
