# models.py
from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional, TypedDict


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    mime_type: str = "image/jpeg"
    file_name: Optional[str] = None


class Card(TypedDict):
    """Fields extracted from one side of a card. Never None after parsing."""
    name: str
    job_title: str
    company: str
    email: str
    phone: str
    website: str
    address: str
    full_text: str          # 名刺上の全テキスト


class MergedCard(TypedDict):
    name: str
    job_title: str
    company: str
    email: str
    phone: str
    website: str
    address: str


SaveStatus = Literal["pending", "dispatched", "failed", "skipped"]


class Phase(str, Enum):
    AWAITING_IMAGE1 = "awaiting_image1"
    AWAITING_IMAGE2 = "awaiting_image2"
    BOTH_CAPTURED = "both_captured"
    EXTRACTING = "extracting"
    MERGING = "merging"
    PUBLISHING = "publishing"
    PERSISTING = "persisting"
    READY = "ready"


class State(TypedDict, total=False):
    image1: CapturedImage
    image2: CapturedImage
    extracted1: Card                                     # 表面
    extracted2: Card                                     # 裏面
    merged: MergedCard
    image_urls: List[str]                                # image1, image2 の順
    save_status: SaveStatus


# internal key -> key used by the vision prompt and the sheet script
WIRE_KEYS = {
    "name": "name",
    "job_title": "jobTitle",
    "company": "company",
    "email": "email",
    "phone": "phone",
    "website": "website",
    "address": "address",
    "full_text": "fullText",
}

MERGE_FIELDS = [k for k in WIRE_KEYS if k != "full_text"]

SHEET_HEADER = [
    "Timestamp", "Name", "Job Title", "Company", "Email",
    "Phone", "Website", "Address", "Image 1 URL", "Image 2 URL",
]


def empty_card(full_text: str = "") -> Card:
    card = {key: "" for key in WIRE_KEYS}
    card["full_text"] = full_text
    return card


def card_from_json(data: dict) -> Card:
    """Build a Card from a decoded model response.

    Accepts either the camelCase wire keys or the snake_case names. Missing,
    null and non-string values become strings so nothing nullable leaks past
    this point.
    """
    card = empty_card()
    for key, wire_key in WIRE_KEYS.items():
        value = data.get(wire_key, data.get(key))
        if value is None:
            continue
        card[key] = value.strip() if isinstance(value, str) else str(value)
    return card
