# session.py
"""
Capture session controller.

Tracks the two captured images of one card and drives the pipeline in
graph.py: both sides are extracted concurrently, merged, uploaded and the
merged row is appended to the sheet. Every capture-to-save cycle is one
CaptureSession; reset/start over replace it with a fresh one, which also
gives the next cycle a fresh save guard.
"""
import logging
import time
from typing import Optional

from errors import ExtractionError, SessionStateError
from graph import Services, create_graph
from models import CapturedImage, MergedCard, MERGE_FIELDS, Phase, State

logger = logging.getLogger(__name__)

# phase entered after each node has finished
_NEXT_PHASE = {
    "extract": Phase.MERGING,
    "merge": Phase.PUBLISHING,
    "publish": Phase.PERSISTING,
    "persist": Phase.READY,
}

_BUSY = {Phase.EXTRACTING, Phase.MERGING, Phase.PUBLISHING, Phase.PERSISTING}


class CaptureSession:
    def __init__(self):
        self.session_id = f"card_{int(time.time() * 1000)}"
        self.state: State = {}
        self.phase = Phase.AWAITING_IMAGE1
        self.save_attempted = False
        self.error: Optional[Exception] = None


class SessionController:
    def __init__(self, services: Optional[Services] = None):
        self.services = services or Services()
        self.graph = create_graph()
        self.session = CaptureSession()

    # ---- capture ------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def state(self) -> State:
        return self.session.state

    def _capture_phase(self) -> Phase:
        state = self.session.state
        if "image1" not in state:
            return Phase.AWAITING_IMAGE1
        if "image2" not in state:
            return Phase.AWAITING_IMAGE2
        return Phase.BOTH_CAPTURED

    def _ensure_capturing(self) -> None:
        if self.phase in _BUSY or self.phase == Phase.READY:
            raise SessionStateError(f"Images cannot be changed while {self.phase.value}")

    def capture(self, slot: int, image: CapturedImage) -> Phase:
        self._ensure_capturing()
        if slot == 1:
            self.session.state["image1"] = image
        elif slot == 2:
            if "image1" not in self.session.state:
                raise SessionStateError("Capture image 1 first")
            self.session.state["image2"] = image
        else:
            raise SessionStateError(f"Unknown image slot: {slot}")
        self.session.error = None
        self.session.phase = self._capture_phase()
        return self.phase

    def retake(self, slot: int) -> Phase:
        self._ensure_capturing()
        if slot not in (1, 2):
            raise SessionStateError(f"Unknown image slot: {slot}")
        self.session.state.pop(f"image{slot}", None)
        self.session.error = None
        self.session.phase = Phase.AWAITING_IMAGE1 if slot == 1 else Phase.AWAITING_IMAGE2
        return self.phase

    def reset(self) -> None:
        if self.phase == Phase.READY:
            raise SessionStateError("Session is finished; use start over for a new card")
        self.start_over()

    def start_over(self) -> None:
        """Drop the current session. Requests already in flight still complete."""
        logger.info("Starting new session (was %s in %s)", self.session.session_id, self.phase.value)
        self.session = CaptureSession()

    # ---- pipeline -----------------------------------------------------------
    async def _run(self, session: CaptureSession, start_phase: Phase) -> None:
        session.phase = start_phase
        config = {"configurable": {"services": self.services, "session": session}}
        async for chunk in self.graph.astream(dict(session.state), config, stream_mode="updates"):
            for node, update in chunk.items():
                session.state.update(update or {})
                session.phase = _NEXT_PHASE.get(node, session.phase)

    async def process(self) -> MergedCard:
        """Extract, merge, upload and save the two captured images.

        Extraction errors put the session back to BOTH_CAPTURED so the user
        can retry or retake. Save errors keep the merged card and end in
        READY with save_status "failed".
        """
        if self.phase != Phase.BOTH_CAPTURED:
            raise SessionStateError("Both images are required before scanning")
        session = self.session
        session.error = None
        try:
            await self._run(session, Phase.EXTRACTING)
        except Exception as exc:
            self._fail(session, exc)
            raise
        return session.state["merged"]

    async def save(self) -> str:
        """Retry the upload/append half after a failed upload."""
        session = self.session
        if session.phase != Phase.READY or "merged" not in session.state:
            raise SessionStateError("Nothing to save yet")
        if session.save_attempted:
            return "skipped"
        session.error = None
        try:
            await self._run(session, Phase.PUBLISHING)
        except Exception as exc:
            self._fail(session, exc)
            raise
        return session.state["save_status"]

    def _fail(self, session: CaptureSession, exc: Exception) -> None:
        session.error = exc
        if "merged" not in session.state or isinstance(exc, ExtractionError):
            logger.error("Scan failed for session %s: %s", session.session_id, exc)
            session.state.pop("extracted1", None)
            session.state.pop("extracted2", None)
            session.phase = Phase.BOTH_CAPTURED
        else:
            logger.error("Save failed for session %s: %s", session.session_id, exc)
            session.state["save_status"] = "failed"
            session.phase = Phase.READY

    # ---- results ------------------------------------------------------------
    def update_merged(self, **fields: str) -> MergedCard:
        """Apply user edits to the merged card. Edits are never re-saved."""
        if self.phase != Phase.READY:
            raise SessionStateError("No merged card to edit")
        unknown = set(fields) - set(MERGE_FIELDS)
        if unknown:
            raise SessionStateError(f"Unknown fields: {', '.join(sorted(unknown))}")
        merged = self.session.state["merged"]
        for key, value in fields.items():
            merged[key] = value or ""
        return merged
