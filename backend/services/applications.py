from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from models.db import (
    get_opportunity_db,
    list_applications_by_email_db,
    list_applications_by_opportunity_db,
    list_applications_db,
)
from models.schemas import (
    Application,
    ApplicationCreate,
    ApplicationStatus,
    OpportunityGroup,
)
from services.live_store import LiveStore, get_live_store

logger = logging.getLogger(__name__)

GROUP_KEYS = ("id", "title")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def submit_application(
    opportunity_id: str,
    payload: ApplicationCreate,
    store: Optional[LiveStore] = None,
) -> Optional[Application]:
    """Create a Pending application for an opportunity and wait for the write.

    Returns None when the opportunity does not exist.
    """
    opportunity = get_opportunity_db(opportunity_id)
    if opportunity is None:
        return None

    store = store or get_live_store()
    record = {
        "volunteer_name": payload.volunteer_name,
        "volunteer_email": normalize_email(payload.volunteer_email),
        "status": ApplicationStatus.PENDING.value,
        "applied_date": datetime.now(timezone.utc).isoformat(),
        "opportunity_id": opportunity["id"],
        "opportunity_title": opportunity["title"],
        "opportunity_ngo": opportunity["ngo"],
    }
    doc_id = store.add_document("applications", record)
    logger.info(f"Application {doc_id} submitted for opportunity {opportunity_id}")
    return Application(id=doc_id, **record)


def list_applications() -> List[Application]:
    return [Application.from_row(r) for r in list_applications_db()]


def list_applications_for_opportunity(opportunity_id: str) -> List[Application]:
    return [Application.from_row(r) for r in list_applications_by_opportunity_db(opportunity_id)]


def find_applications_by_email(email: str) -> List[Application]:
    """Exact, case-insensitive lookup of a volunteer's applications."""
    normalized = normalize_email(email)
    if not normalized:
        return []
    return [Application.from_row(r) for r in list_applications_by_email_db(normalized)]


def approved_count(applications: Iterable[Application]) -> int:
    return sum(1 for a in applications if a.status == ApplicationStatus.APPROVED)


def group_by_opportunity(
    applications: Iterable[Application], key: str = "id"
) -> Dict[str, OpportunityGroup]:
    """Group applications per opportunity, keeping arrival order.

    key="id" groups by opportunityId. key="title" groups by the snapshot title,
    which merges distinct opportunities that share a title.
    """
    if key not in GROUP_KEYS:
        raise ValueError(f"Unsupported grouping key: {key}")

    groups: Dict[str, OpportunityGroup] = {}
    for app in applications:
        group_key = app.opportunity_id if key == "id" else app.opportunity_title
        group = groups.get(group_key)
        if group is None:
            group = OpportunityGroup(
                opportunity_id=app.opportunity_id,
                title=app.opportunity_title,
                ngo=app.opportunity_ngo,
            )
            groups[group_key] = group
        group.applications.append(app)

    for group in groups.values():
        group.approved_count = approved_count(group.applications)
    return groups


def flatten_groups(groups: Dict[str, OpportunityGroup]) -> List[Application]:
    return [app for group in groups.values() for app in group.applications]
