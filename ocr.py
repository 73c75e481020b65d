# ocr.py
import asyncio
import base64
import json
import logging
from typing import List, Optional, Sequence, Tuple

from openai import AsyncOpenAI

import config
from errors import ModelNotFoundError, ModelUnavailableError, classify_error
from models import Card, CapturedImage, card_from_json, empty_card

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are an OCR engine for business cards. Extract the card details from the image.
Return ONLY a valid JSON object with exactly these string fields:

{
  "name": "Full name of the person",
  "jobTitle": "Job title or position",
  "company": "Company name",
  "email": "Email address",
  "phone": "Phone number",
  "website": "Website URL",
  "address": "Physical address",
  "fullText": "All text found on the card"
}

If a field is not found, use an empty string. Do not include markdown
formatting (like ```json) in the response.
"""


def get_client() -> AsyncOpenAI:
    return AsyncOpenAI(api_key=config.openai_api_key())


def to_data_uri(image: CapturedImage) -> str:
    return f"data:{image.mime_type};base64," + base64.b64encode(image.data).decode()


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json block if the model added one."""
    content = text.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        content = content[first_newline + 1:] if first_newline != -1 else content[3:]
        if content.lower().startswith("json"):
            content = content[4:]
        last_backticks = content.rfind("```")
        if last_backticks != -1:
            content = content[:last_backticks]
    return content.strip()


def parse_card(raw_content: str) -> Card:
    """Parse a model answer; unparseable answers keep the text in full_text."""
    content = strip_code_fence(raw_content or "")
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Model answer was not JSON, keeping it as full text")
        return empty_card(full_text=content)
    if not isinstance(data, dict):
        logger.warning("Model answer was JSON but not an object, keeping it as full text")
        return empty_card(full_text=content)
    return card_from_json(data)


async def _ask_model(client: AsyncOpenAI, model: str, image: CapturedImage) -> str:
    resp = await client.chat.completions.create(
        model=model,
        temperature=0,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": [
                {"type": "image_url", "image_url": {"url": to_data_uri(image)}}
            ]},
        ],
    )
    return resp.choices[0].message.content or ""


async def _walk_models(client: AsyncOpenAI, image: CapturedImage, candidates: List[str]) -> Card:
    last_error: Optional[ModelNotFoundError] = None
    for model in candidates:
        logger.info("Attempting OCR with model: %s", model)
        try:
            raw_content = await _ask_model(client, model, image)
        except Exception as exc:
            error = classify_error(exc)
            if isinstance(error, ModelNotFoundError):
                logger.warning("Model %s not available: %s", model, exc)
                last_error = error
                continue
            logger.error("OCR with model %s failed: %s", model, exc)
            raise error from exc
        logger.debug("OCR result from %s: %s", model, raw_content)
        return parse_card(raw_content)

    raise ModelUnavailableError(
        "Failed to extract text with all available models "
        f"({', '.join(candidates) or 'none configured'}). Last error: {last_error}"
    ) from last_error


async def ocr_one(
    image: CapturedImage,
    client: Optional[AsyncOpenAI] = None,
    models: Optional[Sequence[str]] = None,
) -> Card:
    """Extract card fields from one image, walking the model fallback chain.

    Only "model not found" failures move on to the next model. Anything else
    (bad key, quota, permission, IP restriction, network) is raised at once
    as the matching ExtractionError subclass. A client built here is closed
    before returning; a caller's client is left open.
    """
    candidates = list(models) if models is not None else config.ocr_models()
    if client is not None:
        return await _walk_models(client, image, candidates)
    async with get_client() as own_client:
        return await _walk_models(own_client, image, candidates)


async def _gather_all(client: AsyncOpenAI, images: Sequence[CapturedImage],
                      models: Optional[Sequence[str]]) -> List[Card]:
    # wait for every request before the client can be closed
    results = await asyncio.gather(
        *(ocr_one(img, client, models) for img in images), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def ocr_many(
    images: Sequence[CapturedImage],
    client: Optional[AsyncOpenAI] = None,
    models: Optional[Sequence[str]] = None,
) -> List[Card]:
    """Extract every image concurrently; any failure fails the whole call."""
    if client is not None:
        return await _gather_all(client, images, models)
    async with get_client() as own_client:
        return await _gather_all(own_client, images, models)


async def extract_both(
    image1: CapturedImage,
    image2: CapturedImage,
    client: Optional[AsyncOpenAI] = None,
    models: Optional[Sequence[str]] = None,
) -> Tuple[Card, Card]:
    card1, card2 = await ocr_many([image1, image2], client, models)
    return card1, card2
