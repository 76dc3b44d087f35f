from fastapi import APIRouter

from models.schemas import DescriptionRequest
from services.descriptions import (
    DescriptionGenerationError,
    EmptyKeywordsError,
    generate_description,
)
from .common import error_response


router = APIRouter()


@router.post("/descriptions/generate")
async def post_generate_description(payload: DescriptionRequest):
    try:
        result = await generate_description(payload.keywords)
    except EmptyKeywordsError as e:
        return error_response(400, str(e))
    except DescriptionGenerationError as e:
        return error_response(502, str(e))
    return result.to_wire()
