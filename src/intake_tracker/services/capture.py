"""Capture -> analysis -> confirmation state machine."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from intake_tracker.domain.analysis import (
    AnalysisFailure,
    AnalysisOutcome,
    AnalysisSuccess,
    ErrorKind,
)
from intake_tracker.domain.capture import (
    CapturePhase,
    CaptureSession,
    CaptureViewState,
    EncodedImage,
    ImageSource,
)
from intake_tracker.domain.ledger import LedgerEntry
from intake_tracker.domain.nutrition import NutritionEstimate
from intake_tracker.services.acquisition import CameraSlot, ImageAcquisition
from intake_tracker.services.analysis import NutritionAnalysisClient
from intake_tracker.services.ledger import LedgerService
from intake_tracker.services.preprocess import ImagePreprocessError, ImagePreprocessor

_logger = logging.getLogger(__name__)


class CaptureStateError(RuntimeError):
    """Raised when an action is not allowed in the current capture phase."""


class CaptureListener(Protocol):
    """Receives capture pipeline events."""

    def on_capture_started(self, session: CaptureSession) -> None:
        """Called when a new session starts analyzing."""

    def on_analysis_resolved(
        self, session: CaptureSession, outcome: AnalysisOutcome
    ) -> None:
        """Called when the current session's analysis finishes."""

    def on_confirmed(self, entry: LedgerEntry) -> None:
        """Called when an estimate is confirmed into the ledger."""


@dataclass
class CaptureController:
    """Runs one capture session at a time and merges confirmed results.

    Each capture gets a generation number. A session's outcome is applied
    only while its generation is the current one, so results that arrive
    after a retake, discard or newer capture are dropped. Superseded requests
    are left to finish (or time out) on their own.
    """

    acquisition: ImageAcquisition
    preprocessor: ImagePreprocessor
    analysis_client: NutritionAnalysisClient
    ledger_service: LedgerService
    _state: CaptureViewState = field(
        default_factory=lambda: CaptureViewState(CapturePhase.IDLE), init=False
    )
    _generation: int = field(default=0, init=False)
    _current_task: asyncio.Task[None] | None = field(default=None, init=False)
    _tasks: set[asyncio.Task[None]] = field(default_factory=set, init=False)
    _listeners: list[CaptureListener] = field(default_factory=list, init=False)

    @property
    def state(self) -> CaptureViewState:
        return self._state

    def subscribe(self, listener: CaptureListener) -> None:
        """Register a listener for pipeline events."""
        self._listeners.append(listener)

    def begin(self) -> CaptureViewState:
        """Enter the capturing phase, abandoning any current session."""
        return self._supersede(CapturePhase.CAPTURING)

    def capture(self, raw_image: EncodedImage) -> CaptureSession:
        """Start analyzing an image without waiting for the result.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._generation += 1
        session = CaptureSession(
            id=uuid4(),
            generation=self._generation,
            raw_image=raw_image,
            started_at=datetime.now(tz=UTC),
        )
        self._state = CaptureViewState(CapturePhase.PENDING, session=session)
        task = loop.create_task(self._run(session), name=f"capture-{session.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._current_task = task
        _logger.info(
            "Capture started: session=%s generation=%s source=%s",
            session.id,
            session.generation,
            raw_image.source.value,
        )
        self._emit("on_capture_started", session)
        return session

    def capture_bytes(
        self, data: bytes, source: ImageSource = ImageSource.UPLOAD
    ) -> CaptureSession:
        """Capture raw uploaded bytes."""
        return self.capture(self.acquisition.from_bytes(data, source=source))

    def capture_file(self, path: str | Path) -> CaptureSession:
        """Capture an image from a local file."""
        return self.capture(self.acquisition.from_file(path))

    async def capture_url(self, url: str) -> CaptureSession:
        """Download an image and capture it."""
        return self.capture(await self.acquisition.from_url(url))

    def capture_camera(self, slot: CameraSlot) -> CaptureSession:
        """Capture the current frame of a live camera."""
        return self.capture(slot.capture_frame())

    async def wait(self) -> CaptureViewState:
        """Wait for the current session to resolve and return the state."""
        task = self._current_task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self._state

    def confirm(self, edited: NutritionEstimate | None = None) -> LedgerEntry:
        """Record the resolved estimate, or an edited version of it."""
        state = self._state
        if state.phase is not CapturePhase.RESOLVED:
            raise CaptureStateError(f"Nothing to confirm while {state.phase.value}")
        if not isinstance(state.outcome, AnalysisSuccess):
            raise CaptureStateError("A failed analysis cannot be confirmed")
        estimate = edited or state.outcome.estimate
        if not estimate.is_confirmable():
            raise CaptureStateError(
                "Estimate needs a food name and non-negative calories"
            )

        entry = self.ledger_service.record(estimate)
        self._supersede(CapturePhase.IDLE)
        self._emit("on_confirmed", entry)
        return entry

    def retake(self) -> CaptureViewState:
        """Abandon the current session and return to capturing."""
        return self._supersede(CapturePhase.CAPTURING)

    def discard(self) -> CaptureViewState:
        """Abandon the current session and return to idle."""
        return self._supersede(CapturePhase.IDLE)

    async def _run(self, session: CaptureSession) -> None:
        try:
            resized = await asyncio.to_thread(
                self.preprocessor.resize, session.raw_image
            )
        except ImagePreprocessError as exc:
            self._resolve(session, None, AnalysisFailure(ErrorKind.UNKNOWN, str(exc)))
            return
        except Exception as exc:
            _logger.exception("Preprocessing failed: session=%s", session.id)
            self._resolve(session, None, AnalysisFailure(ErrorKind.UNKNOWN, str(exc)))
            return

        if not self._is_current(session):
            _logger.info("Skipping analysis for superseded session=%s", session.id)
            return
        outcome = await self.analysis_client.analyze(resized)
        self._resolve(session, resized, outcome)

    def _resolve(
        self,
        session: CaptureSession,
        resized: EncodedImage | None,
        outcome: AnalysisOutcome,
    ) -> None:
        if not self._is_current(session):
            _logger.info(
                "Discarding stale result: session=%s generation=%s current=%s",
                session.id,
                session.generation,
                self._generation,
            )
            return
        self._state = CaptureViewState(
            CapturePhase.RESOLVED,
            session=session,
            resized_image=resized,
            outcome=outcome,
        )
        _logger.info(
            "Capture resolved: session=%s outcome=%s",
            session.id,
            "success"
            if isinstance(outcome, AnalysisSuccess)
            else outcome.kind.value,
        )
        self._emit("on_analysis_resolved", session, outcome)

    def _is_current(self, session: CaptureSession) -> bool:
        return session.generation == self._generation

    def _supersede(self, phase: CapturePhase) -> CaptureViewState:
        self._generation += 1
        self._current_task = None
        self._state = CaptureViewState(phase)
        return self._state

    def _emit(self, event: str, *args: object) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)(*args)
            except Exception:
                _logger.exception("Capture listener failed: event=%s", event)
