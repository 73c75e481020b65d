# merge.py
import re
from typing import Mapping

from models import MERGE_FIELDS, MergedCard

_WHITESPACE = re.compile(r"\s+")


def normalize_phone(phone: str) -> str:
    return _WHITESPACE.sub("", phone)


def merge_cards(front: Mapping[str, str], back: Mapping[str, str]) -> MergedCard:
    """Combine the two sides field by field.

    The first non-empty value wins, so `front` takes precedence on every
    field where both sides have something. Swapping the arguments can
    change the result.
    """
    merged = {}
    for field in MERGE_FIELDS:
        merged[field] = front.get(field) or back.get(field) or ""
    merged["phone"] = normalize_phone(merged["phone"])
    return merged
