"""
AppShell: the application state machine behind the Streamlit view.

Phases (exactly one at a time):

    IDLE            --select image-->          IMAGE_SELECTED
    IMAGE_SELECTED  --analyze-->               ANALYZING
    ANALYZING       --success-->               RESULTS_READY
    ANALYZING       --failure-->               IMAGE_SELECTED
    RESULTS_READY   --save-->                  VIEWING_SAVED_SESSION
    any but ANALYZING --load session-->        VIEWING_SAVED_SESSION
    VIEWING_SAVED_SESSION --new / delete it--> IDLE

``error`` is an overlay on top of any phase: it is set by failures and by
input validation, and cleared by the next successful step or dismiss_error().
Every phase change goes through ``_transition`` which rejects anything not in
ALLOWED_TRANSITIONS, so combinations such as "analyzing with an error" cannot
exist.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from checkers.base_checker import AnalysisResult, BaseChecker
from config import ImageConfig
from errors import ImageNormalizationError, InputError, InvalidTransitionError, MeterCheckError
from imaging import to_data_url
from sessions.store import SavedSession, SessionStore

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND_MESSAGE = "ไม่พบข้อมูลที่บันทึกไว้"


class Phase(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "image_selected"
    ANALYZING = "analyzing"
    RESULTS_READY = "results_ready"
    VIEWING_SAVED_SESSION = "viewing_saved_session"


ALLOWED_TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
    Phase.IDLE: frozenset({Phase.IDLE, Phase.IMAGE_SELECTED, Phase.VIEWING_SAVED_SESSION}),
    Phase.IMAGE_SELECTED: frozenset({
        Phase.IDLE, Phase.IMAGE_SELECTED, Phase.ANALYZING, Phase.VIEWING_SAVED_SESSION,
    }),
    Phase.ANALYZING: frozenset({Phase.RESULTS_READY, Phase.IMAGE_SELECTED}),
    Phase.RESULTS_READY: frozenset({
        Phase.IDLE, Phase.IMAGE_SELECTED, Phase.ANALYZING, Phase.VIEWING_SAVED_SESSION,
    }),
    Phase.VIEWING_SAVED_SESSION: frozenset({
        Phase.IDLE, Phase.IMAGE_SELECTED, Phase.VIEWING_SAVED_SESSION,
    }),
}


class AppShell:
    """
    Owns the current image, results and active session, and drives the
    checker and the session store. The view only reads properties and calls
    the operations below.
    """

    def __init__(
        self,
        checker: BaseChecker,
        store: SessionStore,
        image_config: Optional[ImageConfig] = None,
    ):
        self.checker = checker
        self.store = store
        self.image_config = image_config or ImageConfig()

        self._phase = Phase.IDLE
        self.error: Optional[str] = None
        self._image: Optional[bytes] = None
        self._image_name: Optional[str] = None
        self._image_data_url: Optional[str] = None
        self._results: List[AnalysisResult] = []
        self._active_session_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Read-only view state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def results(self) -> Tuple[AnalysisResult, ...]:
        return tuple(self._results)

    @property
    def image_bytes(self) -> Optional[bytes]:
        return self._image

    @property
    def image_name(self) -> Optional[str]:
        return self._image_name

    @property
    def image_data_url(self) -> Optional[str]:
        """Thumbnail of the saved session being viewed, if any."""
        return self._image_data_url

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def sessions(self) -> Tuple[SavedSession, ...]:
        return self.store.sessions

    @property
    def is_busy(self) -> bool:
        return self._phase is Phase.ANALYZING

    @property
    def can_analyze(self) -> bool:
        return self._image is not None and not self.is_busy

    @property
    def can_save(self) -> bool:
        return self._phase is Phase.RESULTS_READY

    # ------------------------------------------------------------------
    # Image selection
    # ------------------------------------------------------------------

    def select_image(self, data: bytes, filename: str = "image") -> None:
        """A new upload replaces any previous image, results and error."""
        if self.is_busy:
            raise InvalidTransitionError("Cannot change the image while an analysis is running")
        if not data:
            self.clear_image()
            return
        self._transition(Phase.IMAGE_SELECTED)
        self._reset_content()
        self._image = bytes(data)
        self._image_name = filename

    def clear_image(self) -> None:
        self._transition(Phase.IDLE)
        self._reset_content()

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def analyze(self) -> bool:
        """
        Run the checker on the selected image. Returns True on success.
        Failures are stored in ``error`` and the phase reverts to IMAGE_SELECTED.
        """
        if self.is_busy:
            raise InvalidTransitionError("An analysis is already in progress")
        if self._image is None:
            self.error = InputError().message
            return False

        self._transition(Phase.ANALYZING)
        self.error = None
        self._results = []
        results: Optional[List[AnalysisResult]] = None
        try:
            results = await self.checker.analyze(self._image, filename=self._image_name)
        except MeterCheckError as exc:
            logger.warning("Analysis failed: %s", exc)
            self.error = exc.message
        except Exception as exc:
            logger.exception("Unexpected failure during analysis")
            self.error = f"{MeterCheckError.default_message}: {exc}"
        finally:
            # Never leave the shell stuck in ANALYZING.
            if results is None:
                self._transition(Phase.IMAGE_SELECTED)

        if results is None:
            return False
        self._results = list(results)
        self._transition(Phase.RESULTS_READY)
        return True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def save_results(self, name: str) -> SavedSession:
        """Persist the current results (plus a thumbnail) and switch to viewing them."""
        if self._phase is not Phase.RESULTS_READY:
            raise InvalidTransitionError(f"Nothing to save in phase {self._phase.value}")

        thumbnail = self._make_thumbnail()
        session = self.store.save(name, self._results, image_data_url=thumbnail)

        self._transition(Phase.VIEWING_SAVED_SESSION)
        self._image = None
        self._image_name = None
        self._image_data_url = session.image_data_url
        self._active_session_id = session.id
        self.error = None
        return session

    def load_session(self, session_id: str) -> bool:
        """Show a saved session, discarding any unsaved image or results."""
        session = self.store.find(session_id)
        if session is None:
            self.error = SESSION_NOT_FOUND_MESSAGE
            return False

        self._transition(Phase.VIEWING_SAVED_SESSION)
        self._reset_content()
        self._results = list(session.results)
        self._image_data_url = session.image_data_url
        self._active_session_id = session.id
        return True

    def rename_session(self, session_id: str, new_name: str) -> bool:
        return self.store.rename(session_id, new_name)

    def delete_session(self, session_id: str) -> bool:
        deleted = self.store.delete(session_id)
        if deleted and session_id == self._active_session_id:
            self._transition(Phase.IDLE)
            self._reset_content()
        return deleted

    def new_analysis(self) -> None:
        self._transition(Phase.IDLE)
        self._reset_content()

    def dismiss_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, target: Phase) -> None:
        if target not in ALLOWED_TRANSITIONS[self._phase]:
            raise InvalidTransitionError(f"{self._phase.value} -> {target.value} is not allowed")
        if target is not self._phase:
            logger.debug("Phase %s -> %s", self._phase.value, target.value)
        self._phase = target

    def _reset_content(self) -> None:
        self.error = None
        self._image = None
        self._image_name = None
        self._image_data_url = None
        self._results = []
        self._active_session_id = None

    def _make_thumbnail(self) -> Optional[str]:
        if self._image is None:
            return None
        try:
            return to_data_url(
                self._image,
                max_edge=self.image_config.thumbnail_max_edge,
                quality=self.image_config.thumbnail_quality,
            )
        except ImageNormalizationError as exc:
            logger.warning("Saving session without thumbnail: %s", exc)
            return None
