from fastapi import APIRouter, Query
from pydantic import EmailStr

from models.db import StoreUnavailableError
from models.schemas import ApplicationCreate
from services.applications import (
    approved_count,
    find_applications_by_email,
    list_applications_for_opportunity,
    normalize_email,
    submit_application,
)
from .common import error_response, store_unavailable_response


router = APIRouter()


@router.post("/opportunities/{opportunity_id}/applications", status_code=201)
def apply_to_opportunity(opportunity_id: str, payload: ApplicationCreate):
    try:
        application = submit_application(opportunity_id, payload)
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    if application is None:
        return error_response(404, "Opportunity not found", notFound=True)
    return {
        "ok": True,
        "application": application.to_wire(),
        "message": f'Your application for "{application.opportunity_title}" has been sent.',
    }


@router.get("/opportunities/{opportunity_id}/applications")
def get_opportunity_applications(opportunity_id: str):
    try:
        applications = list_applications_for_opportunity(opportunity_id)
    except StoreUnavailableError as e:
        return store_unavailable_response(e)
    return {
        "applications": [a.to_wire() for a in applications],
        "approvedCount": approved_count(applications),
    }


@router.get("/applications/status")
def get_application_status(email: EmailStr = Query(...)):
    """Look up every application filed under an email address (case-insensitive)."""
    try:
        applications = find_applications_by_email(email)
    except StoreUnavailableError as e:
        return store_unavailable_response(
            e, "There was an error searching for your applications.", searched=False
        )
    body = {
        "searched": True,
        "email": normalize_email(email),
        "applications": [a.to_wire() for a in applications],
    }
    if not applications:
        body["message"] = "We could not find any applications associated with that email."
    return body
