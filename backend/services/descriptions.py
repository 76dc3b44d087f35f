"""AI helper that drafts opportunity descriptions from a few keywords."""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

import llm
from models.schemas import DescriptionResult
from prompts import DESCRIPTION_SYSTEM_PROMPT, build_description_user_prompt

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "There was an error generating the description."


class EmptyKeywordsError(ValueError):
    pass


class DescriptionGenerationError(RuntimeError):
    pass


def _extract_json_object(text: str) -> dict:
    """Parse the model reply, tolerating code fences or chatter around the object."""
    cleaned = (text or "").strip()
    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", cleaned)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if not match:
            raise
        data = json.loads(match.group())
    if not isinstance(data, dict):
        raise ValueError("model reply is not a JSON object")
    return data


async def generate_description(keywords: str) -> DescriptionResult:
    """Return a short and a long description for `keywords`.

    Raises EmptyKeywordsError before any remote call when keywords are blank,
    and DescriptionGenerationError on any remote or output-validation failure.
    """
    keywords = (keywords or "").strip()
    if not keywords:
        raise EmptyKeywordsError("Please enter some keywords to generate a description.")

    try:
        raw = await llm.complete_json(
            DESCRIPTION_SYSTEM_PROMPT,
            build_description_user_prompt(keywords),
        )
    except Exception as e:
        logger.error(f"Description generation call failed: {e}")
        raise DescriptionGenerationError(GENERIC_FAILURE) from e

    try:
        return DescriptionResult.model_validate(_extract_json_object(raw))
    except (ValueError, ValidationError) as e:
        logger.error(f"Description generation returned unusable output: {e}")
        raise DescriptionGenerationError(GENERIC_FAILURE) from e
