from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from models.db import StoreUnavailableError, ping
from models.schemas import Opportunity, OpportunityCreate
from services.applications import approved_count, list_applications_for_opportunity
from services.catalog import (
    ALL,
    create_opportunity,
    filter_opportunities,
    get_opportunity,
    list_opportunities,
    unique_locations,
)
from services.live_store import CollectionQuery
from .common import (
    STORE_UNAVAILABLE_MESSAGE,
    error_response,
    snapshot_event_stream,
    store_unavailable_response,
)


router = APIRouter()

OPPORTUNITIES_QUERY = CollectionQuery("opportunities", order_by="date", descending=True)


@router.get("/opportunities")
def get_opportunities(
    q: str = Query("", description="Matched against title and short description"),
    category: str = Query(ALL),
    location: str = Query(ALL),
):
    try:
        everything = list_opportunities()
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    matches = filter_opportunities(everything, q, category, location)
    return {
        "opportunities": [op.to_wire() for op in matches],
        "total": len(everything),
        "matched": len(matches),
    }


@router.get("/opportunities/locations")
def get_locations():
    try:
        return {"locations": unique_locations(list_opportunities())}
    except StoreUnavailableError as e:
        return store_unavailable_response(e)


@router.get("/opportunities/stream")
async def stream_opportunities(limit: Optional[int] = Query(None, ge=1)):
    """Live feed: one SSE event per snapshot of the opportunity list."""
    events = snapshot_event_stream(
        OPPORTUNITIES_QUERY,
        transform=Opportunity.from_row,
        serialize=Opportunity.to_wire,
        max_events=limit,
    )
    return StreamingResponse(events, media_type="text/event-stream")


@router.get("/opportunities/{opportunity_id}")
def get_opportunity_detail(opportunity_id: str):
    try:
        opportunity = get_opportunity(opportunity_id)
        if opportunity is None:
            return error_response(404, "Opportunity not found", notFound=True)
        applications = list_applications_for_opportunity(opportunity_id)
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    return {
        "opportunity": opportunity.to_wire(),
        "approvedCount": approved_count(applications),
    }


@router.post("/opportunities", status_code=202)
def post_opportunity(payload: OpportunityCreate):
    if not ping():
        return error_response(503, STORE_UNAVAILABLE_MESSAGE)
    try:
        opportunity_id = create_opportunity(payload)
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    # The write completes in the background; clients pick it up from the live feed.
    return {
        "ok": True,
        "id": opportunity_id,
        "message": "Your new opportunity is now being submitted.",
    }
