"""Health check routes"""

from fastapi import APIRouter

from models.db import ping
from services.live_store import get_live_store


router = APIRouter(tags=["health"])


@router.get("/health")
def health_check():
    store_ok = ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "service": "Volunteer Connect API",
        "store_reachable": store_ok,
        "live_subscriptions": get_live_store().subscription_count(),
    }
