"""Application status workflow: Pending -> Approved | Rejected."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Dict, FrozenSet, List, Optional, Union

from models.db import get_application_db
from models.schemas import Application, ApplicationStatus
from services.live_store import LiveStore, get_live_store

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


class StatusWorkflowError(Exception):
    pass


class ApplicationNotFoundError(StatusWorkflowError):
    def __init__(self, application_id: str):
        super().__init__(f"Application {application_id} not found")
        self.application_id = application_id


class InvalidStatusTransitionError(StatusWorkflowError):
    def __init__(self, current: ApplicationStatus, requested: ApplicationStatus):
        super().__init__(f"Cannot move application from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


def is_terminal(status: ApplicationStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def can_transition(current: ApplicationStatus, new: ApplicationStatus) -> bool:
    """Return True when `new` may be written over `current`.

    Re-writing the same terminal status is accepted as a no-op.
    """
    if current == new:
        return is_terminal(current)
    return new in ALLOWED_TRANSITIONS[current]


def available_actions(application: Application) -> List[ApplicationStatus]:
    """Statuses an admin may still choose for this application (empty once terminal)."""
    return sorted(ALLOWED_TRANSITIONS[application.status], key=lambda s: s.value)


def set_application_status(
    application_id: str,
    new_status: Union[ApplicationStatus, str],
    store: Optional[LiveStore] = None,
) -> Optional[Future]:
    """Issue a status transition without waiting for it to commit.

    Returns the write's Future, or None when the application already holds
    `new_status`. Raises ApplicationNotFoundError, InvalidStatusTransitionError,
    or StoreUnavailableError when the store cannot be read; in every error case
    nothing has been written.
    """
    requested = ApplicationStatus(new_status)
    row = get_application_db(application_id)
    if row is None:
        raise ApplicationNotFoundError(application_id)
    current = ApplicationStatus(row["status"])

    if requested == ApplicationStatus.PENDING or not can_transition(current, requested):
        raise InvalidStatusTransitionError(current, requested)
    if current == requested:
        logger.info(f"Application {application_id} already {current.value}; nothing to write")
        return None

    store = store or get_live_store()
    # Conditional on the status we validated against, so a concurrent decision is never overwritten.
    future = store.update_document_nonblocking(
        "applications",
        application_id,
        {"status": requested.value},
        expected={"status": current.value},
    )
    future.add_done_callback(lambda f: _log_outcome(application_id, requested, f))
    logger.info(f"Status update {current.value} -> {requested.value} issued for application {application_id}")
    return future


def _log_outcome(application_id: str, requested: ApplicationStatus, future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        # Already logged and broadcast by the live store
        return
    if not future.result():
        logger.warning(
            f"Status update to {requested.value} for application {application_id} skipped: "
            "status changed before the write landed"
        )
