"""Opportunity catalog: posting, lookup and client-side style filtering."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from models.db import get_opportunity_db, list_opportunities_db
from models.schemas import Opportunity, OpportunityCategory, OpportunityCreate
from services.live_store import LiveStore, get_live_store

logger = logging.getLogger(__name__)

ALL = "all"

# Display placeholders picked by category when an opportunity is posted.
PLACEHOLDER_IMAGES: List[Dict[str, str]] = [
    {"id": "environment", "imageUrl": "https://picsum.photos/seed/environment/600/400", "imageHint": "beach cleanup"},
    {"id": "education", "imageUrl": "https://picsum.photos/seed/education/600/400", "imageHint": "children reading"},
    {"id": "healthcare", "imageUrl": "https://picsum.photos/seed/healthcare/600/400", "imageHint": "community clinic"},
    {"id": "community", "imageUrl": "https://picsum.photos/seed/community/600/400", "imageHint": "neighborhood garden"},
    {"id": "animal", "imageUrl": "https://picsum.photos/seed/animal/600/400", "imageHint": "shelter dog"},
]


def placeholder_for(category: OpportunityCategory) -> Dict[str, str]:
    hint = category.value.lower().split(" ")[0]
    for image in PLACEHOLDER_IMAGES:
        if hint in image["id"]:
            return image
    return PLACEHOLDER_IMAGES[0]


def create_opportunity(payload: OpportunityCreate, store: Optional[LiveStore] = None) -> str:
    """Queue a new opportunity and return its id without waiting for the commit."""
    store = store or get_live_store()
    image = placeholder_for(payload.category)
    record = {
        "title": payload.title,
        "ngo": payload.ngo,
        "description": payload.description,
        "long_description": payload.long_description,
        "location": payload.location,
        "date": payload.date,
        "time_commitment": payload.time_commitment,
        "category": payload.category.value,
        "image_url": image["imageUrl"],
        "image_hint": image["imageHint"],
    }
    doc_id, _ = store.add_document_nonblocking("opportunities", record)
    logger.info(f"Opportunity {doc_id} ({payload.title!r}) queued for posting")
    return doc_id


def get_opportunity(opportunity_id: str) -> Optional[Opportunity]:
    row = get_opportunity_db(opportunity_id)
    return Opportunity.from_row(row) if row is not None else None


def list_opportunities() -> List[Opportunity]:
    """All opportunities, newest `date` first (string ordering)."""
    return [Opportunity.from_row(r) for r in list_opportunities_db()]


def filter_opportunities(
    opportunities: Iterable[Opportunity],
    search_term: str = "",
    category: str = ALL,
    location: str = ALL,
) -> List[Opportunity]:
    term = (search_term or "").lower()
    category = category or ALL
    location = location or ""

    def _matches(op: Opportunity) -> bool:
        matches_search = term in op.title.lower() or term in op.description.lower()
        matches_category = category == ALL or op.category.value == category
        matches_location = location in ("", ALL) or op.location == location
        return matches_search and matches_category and matches_location

    return [op for op in opportunities if _matches(op)]


def unique_locations(opportunities: Iterable[Opportunity]) -> List[str]:
    """'all' followed by each distinct location in first-seen order."""
    seen: List[str] = []
    for op in opportunities:
        if op.location not in seen:
            seen.append(op.location)
    return [ALL, *seen]
