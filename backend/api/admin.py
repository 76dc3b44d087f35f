"""Admin review of applications. Unauthenticated unless the capability gate is enabled."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from models.db import StoreUnavailableError, ping
from models.schemas import Application, StatusUpdate
from services.applications import GROUP_KEYS, group_by_opportunity, list_applications
from services.live_store import CollectionQuery
from services.status_workflow import (
    ApplicationNotFoundError,
    InvalidStatusTransitionError,
    available_actions,
    set_application_status,
)
from .common import (
    STORE_UNAVAILABLE_MESSAGE,
    error_response,
    require_admin_capability,
    snapshot_event_stream,
    store_unavailable_response,
)

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin_capability)])

APPLICATIONS_QUERY = CollectionQuery("applications", order_by="applied_date", descending=True)


def application_view(application: Application) -> Dict[str, Any]:
    return {
        **application.to_wire(),
        "availableActions": [s.value for s in available_actions(application)],
    }


@router.get("/admin/applications")
def get_grouped_applications(group_by: str = Query("id")):
    if group_by not in GROUP_KEYS:
        return error_response(400, f"group_by must be one of: {', '.join(GROUP_KEYS)}")
    try:
        applications = list_applications()
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    groups = group_by_opportunity(applications, key=group_by)
    return {
        "groupBy": group_by,
        "groups": [
            {
                "key": key,
                **group.model_dump(mode="json", by_alias=True, exclude={"applications"}),
                "applications": [application_view(a) for a in group.applications],
            }
            for key, group in groups.items()
        ],
        "total": len(applications),
    }


@router.get("/admin/applications/stream")
async def stream_applications(limit: Optional[int] = Query(None, ge=1)):
    """Live feed of every application, newest first, with the actions still available."""
    events = snapshot_event_stream(
        APPLICATIONS_QUERY,
        transform=Application.from_row,
        serialize=application_view,
        max_events=limit,
    )
    return StreamingResponse(events, media_type="text/event-stream")


@router.post("/admin/applications/{application_id}/status", status_code=202)
def post_application_status(application_id: str, payload: StatusUpdate):
    if not ping():
        return error_response(503, STORE_UNAVAILABLE_MESSAGE)
    try:
        future = set_application_status(application_id, payload.status)
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    except ApplicationNotFoundError as e:
        return error_response(404, str(e))
    except InvalidStatusTransitionError as e:
        return error_response(409, str(e), currentStatus=e.current.value)

    return {
        "ok": True,
        "applicationId": application_id,
        "status": payload.status.value,
        "inProgress": future is not None,
        "message": f"The application status for {application_id} is being updated.",
    }
