# sheets.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import httpx

import config
from models import MergedCard, SaveStatus

logger = logging.getLogger(__name__)


def build_row(card: MergedCard, image_urls: Sequence[str]) -> Dict[str, Any]:
    """JSON body expected by the Apps Script doPost handler."""
    urls = list(image_urls) + ["", ""]
    return {
        # the script stamps its own time in the Timestamp column
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "name": card.get("name", ""),
        "jobTitle": card.get("job_title", ""),
        "company": card.get("company", ""),
        "email": card.get("email", ""),
        "phone": card.get("phone", ""),
        "website": card.get("website", ""),
        "address": card.get("address", ""),
        "imageUrl1": urls[0],
        "imageUrl2": urls[1],
    }


class SheetsSink:
    """Append merged cards to the spreadsheet through the Apps Script web app.

    The web app is called one-way: its response is never read, so a
    "dispatched" status only means the request left without a transport
    error. Whether the row was actually written cannot be observed here.
    """

    def __init__(self, script_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.script_url = script_url
        self._transport = transport

    async def persist(self, session, card: MergedCard, image_urls: Sequence[str]) -> SaveStatus:
        # checked and set before the first await so a re-entrant call is a no-op
        if session.save_attempted:
            logger.info("Session %s already saved, skipping append", session.session_id)
            return "skipped"
        url = self.script_url or config.google_script_url()
        session.save_attempted = True

        row = build_row(card, image_urls)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                await client.post(url, json=row)
        except httpx.HTTPError as exc:
            logger.error("Failed to send row for session %s: %s", session.session_id, exc)
            return "failed"

        logger.info("Row for session %s dispatched", session.session_id)
        return "dispatched"
