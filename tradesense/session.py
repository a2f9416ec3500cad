"""
Session controller: owns one SessionState and performs the side effects
(intake, analysis call, preview release) around each transition.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from . import state as transitions
from .config import Settings
from .errors import AnalysisError, ImageNotFound, InvalidIntakeError, SessionNotFound
from .gemini_client import ChartAnalysisClient
from .intake import IntakeItem, StagedImage, stage_batch
from .previews import PreviewStore
from .report import build_view
from .schema import TimestampedAnalysis
from .state import SessionState

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def local_now(timezone: Optional[str] = None) -> datetime:
    return datetime.now(ZoneInfo(timezone)) if timezone else datetime.now()


def image_label(index: int) -> str:
    # The first chart is treated as the higher timeframe
    return "上位足目安" if index == 0 else f"チャート {index + 1}"


class AnalysisSession:
    def __init__(
        self,
        session_id: str,
        client: ChartAnalysisClient,
        previews: PreviewStore,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.id = session_id
        self.client = client
        self.previews = previews
        self.settings = settings
        self._clock = clock or (lambda: local_now(settings.analysis_timezone))
        self.state: SessionState = transitions.empty()

    def _apply(self, new_state: SessionState, action: str) -> SessionState:
        if new_state is not self.state:
            logger.debug(
                f"[{self.id}] {action}: {self.state.status.value} -> {new_state.status.value} "
                f"(images={len(new_state.images)}, generation={new_state.generation})"
            )
        self.state = new_state
        return new_state

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def add_images(self, items: Iterable[IntakeItem]) -> SessionState:
        """Stage every image in the batch; raises InvalidIntakeError when there is none"""
        try:
            images = await stage_batch(
                items,
                self.previews,
                preview_max_size=self.settings.preview_max_size,
                max_image_bytes=self.settings.max_image_bytes,
            )
        except InvalidIntakeError as e:
            self._apply(transitions.intake_failed(self.state, e.message), "intake_failed")
            raise
        return self._apply(transitions.stage(self.state, images), "stage")

    async def analyze(self) -> SessionState:
        """
        Run one analysis over the currently staged images.

        Provider failures end in the FAILED state rather than an exception.
        InvalidTransition is raised when there is nothing to analyze or a run
        is already in flight.
        """
        self._apply(transitions.begin_analysis(self.state), "begin_analysis")
        token = self.state.pending
        data_uris = [image.data_uri for image in self.state.images]

        try:
            result = await self.client.analyze(data_uris)
        except AnalysisError as e:
            new_state = transitions.fail(self.state, token, e.message)
            action = "fail"
        else:
            stamped = TimestampedAnalysis.attach(result, self._clock().strftime(TIMESTAMP_FORMAT))
            new_state = transitions.resolve(self.state, token, stamped)
            action = "resolve"

        if new_state is self.state or new_state.generation != token:
            logger.info(f"[{self.id}] Discarding stale analysis {action} (token={token})")
        return self._apply(new_state, action)

    def remove_image(self, image_id: str) -> SessionState:
        new_state, removed = transitions.remove(self.state, image_id)
        self._apply(new_state, "remove")
        self.previews.revoke(removed.preview)
        return new_state

    def clear(self) -> SessionState:
        released = self.state.images
        self._apply(transitions.clear(self.state), "clear")
        for image in released:
            self.previews.revoke(image.preview)
        return self.state

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def find_image(self, image_id: str) -> StagedImage:
        for image in self.state.images:
            if image.id == image_id:
                return image
        raise ImageNotFound(image_id)

    def describe(self, preview_url: Callable[[StagedImage], str]) -> Dict[str, Any]:
        current = self.state
        images: List[Dict[str, Any]] = [
            {
                "id": image.id,
                "label": image_label(index),
                "previewUrl": preview_url(image),
                "filename": image.filename,
                "mediaType": image.media_type,
                "size": image.size,
            }
            for index, image in enumerate(current.images)
        ]
        return {
            "id": self.id,
            "status": current.status.value,
            "loading": current.loading,
            "error": current.error,
            "images": images,
            "result": current.result.model_dump(by_alias=True) if current.result else None,
            "view": build_view(current.result) if current.result else None,
        }


class SessionManager:
    def __init__(
        self,
        client: ChartAnalysisClient,
        settings: Settings,
        previews: Optional[PreviewStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.settings = settings
        self.previews = previews if previews is not None else PreviewStore()
        self._clock = clock
        self._sessions: Dict[str, AnalysisSession] = {}

    def create(self) -> AnalysisSession:
        session_id = uuid.uuid4().hex
        session = AnalysisSession(session_id, self.client, self.previews, self.settings, self._clock)
        self._sessions[session_id] = session
        logger.info(f"Created session {session_id}")
        return session

    def get(self, session_id: str) -> AnalysisSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def delete(self, session_id: str) -> None:
        session = self.get(session_id)
        session.clear()
        del self._sessions[session_id]
        logger.info(f"Deleted session {session_id}")

    def __len__(self) -> int:
        return len(self._sessions)
