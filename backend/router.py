from fastapi import APIRouter

# Compose modular sub-routers
from api import (
    health_router,
    opportunities_router,
    applications_router,
    admin_router,
    descriptions_router,
    llm_settings_router,
)


router = APIRouter()

# main.py applies the `/api` prefix; sub-routers declare their own paths
router.include_router(health_router)
router.include_router(opportunities_router)
router.include_router(applications_router)
router.include_router(admin_router)
router.include_router(descriptions_router)
router.include_router(llm_settings_router)
