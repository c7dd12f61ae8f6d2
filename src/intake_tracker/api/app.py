"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date
from zoneinfo import ZoneInfoNotFoundError

from fastapi import FastAPI, HTTPException, Request, status

from intake_tracker.api.models import (
    CaptureUrlRequest,
    EstimateEdit,
    ExerciseEntryRequest,
    FoodEntryRequest,
)
from intake_tracker.app_logging import configure_logging
from intake_tracker.containers import AppContainer
from intake_tracker.domain.analysis import AnalysisOutcome, AnalysisSuccess
from intake_tracker.domain.capture import CaptureSession, CaptureViewState
from intake_tracker.domain.ledger import BodyLogEntry, LedgerEntry, MealPeriod
from intake_tracker.domain.nutrition import Macros, NutritionEstimate
from intake_tracker.domain.profile import NutritionTargets, Profile
from intake_tracker.services.acquisition import ImageAcquisitionError
from intake_tracker.services.analysis import to_data_url
from intake_tracker.services.capture import CaptureController, CaptureStateError
from intake_tracker.services.ledger import DailySummary
from intake_tracker.services.preprocess import ImagePreprocessError


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not app.state.container.analysis_client.has_credential:
            logger.warning("Starting without an analysis API key")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    def _container(request: Request) -> AppContainer:
        return request.app.state.container

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        """Simple health check endpoint."""
        return {
            "status": "ok",
            "analysis_configured": _container(request).analysis_client.has_credential,
        }

    @app.get("/profile")
    async def get_profile(request: Request) -> dict[str, object]:
        """Return the profile and its targets."""
        profile_service = _container(request).profile_service
        return {
            "profile": (
                profile_service.profile.model_dump(mode="json")
                if profile_service.profile
                else None
            ),
            "targets": _format_targets(profile_service.targets),
        }

    @app.put("/profile")
    async def put_profile(profile: Profile, request: Request) -> dict[str, object]:
        """Replace the profile and recompute targets."""
        targets = _container(request).profile_service.update(profile)
        return {
            "profile": profile.model_dump(mode="json"),
            "targets": _format_targets(targets),
        }

    @app.get("/capture")
    async def get_capture(request: Request) -> dict[str, object]:
        """Return the capture view state."""
        return _format_state(_container(request).capture_controller.state)

    @app.post("/capture/begin")
    async def begin_capture(request: Request) -> dict[str, object]:
        """Open the capture view."""
        return _format_state(_container(request).capture_controller.begin())

    @app.post("/capture/upload", status_code=status.HTTP_202_ACCEPTED)
    async def upload_capture(request: Request, wait: bool = False) -> dict[str, object]:
        """Start analysing an uploaded image body."""
        controller = _container(request).capture_controller
        data = await request.body()
        try:
            session = controller.capture_bytes(data)
        except ImageAcquisitionError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return _format_state(await _session_state(controller, session, wait))

    @app.post("/capture/url", status_code=status.HTTP_202_ACCEPTED)
    async def url_capture(
        payload: CaptureUrlRequest, request: Request, wait: bool = False
    ) -> dict[str, object]:
        """Fetch an image by URL and start analysing it."""
        controller = _container(request).capture_controller
        try:
            session = await controller.capture_url(payload.url)
        except ImageAcquisitionError as exc:
            logger.info("Image URL rejected: %s", exc)
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return _format_state(await _session_state(controller, session, wait))

    @app.post("/capture/confirm")
    async def confirm_capture(
        request: Request, edit: EstimateEdit | None = None
    ) -> dict[str, object]:
        """Confirm the resolved estimate into the ledger."""
        controller = _container(request).capture_controller
        try:
            edited = _apply_edit(controller.state, edit) if edit else None
            entry = controller.confirm(edited)
        except CaptureStateError as exc:
            raise HTTPException(status.HTTP_409_CONFLICT, str(exc)) from exc
        return {"entry": _format_entry(entry)}

    @app.post("/capture/retake")
    async def retake_capture(request: Request) -> dict[str, object]:
        """Abandon the current session and capture again."""
        return _format_state(_container(request).capture_controller.retake())

    @app.post("/capture/discard")
    async def discard_capture(request: Request) -> dict[str, object]:
        """Abandon the current session."""
        return _format_state(_container(request).capture_controller.discard())

    @app.get("/ledger")
    async def get_ledger(
        request: Request, day: date | None = None, timezone: str | None = None
    ) -> dict[str, object]:
        """Return entries newest first with the daily summary."""
        state_container = _container(request)
        ledger_service = state_container.ledger_service
        try:
            summary = ledger_service.summary(
                state_container.profile_service.targets,
                day=day,
                timezone_name=timezone,
            )
            meals = ledger_service.meals(day=day, timezone_name=timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, f"Unknown timezone: {timezone}"
            ) from exc
        entries = ledger_service.ledger.recent()
        return {
            "summary": _format_summary(summary),
            "entries": [_format_entry(entry) for entry in entries],
            "meals": _format_meals(meals),
        }

    @app.post("/ledger/food", status_code=status.HTTP_201_CREATED)
    async def add_food(
        payload: FoodEntryRequest, request: Request
    ) -> dict[str, object]:
        """Log a manually entered food item."""
        try:
            entry = _container(request).ledger_service.log_food(
                payload.name,
                payload.calories,
                Macros(
                    protein=payload.macros.protein,
                    carbs=payload.macros.carbs,
                    fat=payload.macros.fat,
                ),
            )
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return {"entry": _format_entry(entry)}

    @app.post("/ledger/exercise", status_code=status.HTTP_201_CREATED)
    async def add_exercise(
        payload: ExerciseEntryRequest, request: Request
    ) -> dict[str, object]:
        """Log an exercise burn."""
        try:
            entry = _container(request).ledger_service.log_exercise(
                payload.name,
                payload.calories,
                environment=payload.environment,
                duration_minutes=payload.duration_minutes,
            )
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        return {"entry": _format_entry(entry)}

    @app.get("/body-logs")
    async def list_body_logs(request: Request) -> dict[str, object]:
        """Return body logs newest first."""
        body_logs = _container(request).ledger_service.ledger.body_logs
        return {"body_logs": [_format_body_log(log) for log in reversed(body_logs)]}

    @app.post("/body-logs", status_code=status.HTTP_201_CREATED)
    async def add_body_log(request: Request, note: str = "") -> dict[str, object]:
        """Store a resized body-composition photo."""
        state_container = _container(request)
        data = await request.body()
        try:
            raw = state_container.acquisition.from_bytes(data)
            resized = await asyncio.to_thread(state_container.preprocessor.resize, raw)
        except (ImageAcquisitionError, ImagePreprocessError) as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from exc
        body_log = state_container.ledger_service.add_body_log(resized, note)
        return {"body_log": _format_body_log(body_log)}

    return app


async def _session_state(
    controller: CaptureController, session: CaptureSession, wait: bool
) -> CaptureViewState:
    if not wait:
        return controller.state
    state = await controller.wait()
    if state.session != session:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            f"Capture {session.id} was superseded before it resolved",
        )
    return state


def _apply_edit(state: CaptureViewState, edit: EstimateEdit) -> NutritionEstimate:
    if not isinstance(state.outcome, AnalysisSuccess):
        raise CaptureStateError("Only a successful analysis can be edited")
    estimate = state.outcome.estimate
    macros = estimate.macros
    if edit.macros is not None:
        macros = Macros(
            protein=edit.macros.protein, carbs=edit.macros.carbs, fat=edit.macros.fat
        )
    return replace(
        estimate,
        name=edit.name if edit.name is not None else estimate.name,
        calories=edit.calories if edit.calories is not None else estimate.calories,
        macros=macros,
    )


def _format_macros(macros: Macros) -> dict[str, float]:
    return {"protein": macros.protein, "carbs": macros.carbs, "fat": macros.fat}


def _format_targets(targets: NutritionTargets) -> dict[str, object]:
    return {"calories": targets.calories, "macros": _format_macros(targets.macros)}


def _format_estimate(estimate: NutritionEstimate) -> dict[str, object]:
    return {
        "name": estimate.name,
        "calories": estimate.calories,
        "macros": _format_macros(estimate.macros),
        "confidence": estimate.confidence,
        "evaluation": estimate.evaluation,
        "captured_at": estimate.captured_at.isoformat(),
    }


def _format_outcome(outcome: AnalysisOutcome | None) -> dict[str, object] | None:
    if outcome is None:
        return None
    if isinstance(outcome, AnalysisSuccess):
        return {"status": "success", "estimate": _format_estimate(outcome.estimate)}
    return {"status": "failure", "kind": outcome.kind.value, "message": outcome.message}


def _format_state(state: CaptureViewState) -> dict[str, object]:
    session = state.session
    return {
        "phase": state.phase.value,
        "session_id": str(session.id) if session else None,
        "source": session.raw_image.source.value if session else None,
        "outcome": _format_outcome(state.outcome),
        "can_confirm": state.can_confirm,
    }


def _format_entry(entry: LedgerEntry) -> dict[str, object]:
    activity = None
    if entry.activity is not None:
        activity = {
            "environment": entry.activity.environment.value,
            "duration_minutes": entry.activity.duration_minutes,
        }
    return {
        "id": str(entry.id),
        "kind": entry.kind.value,
        "logged_at": entry.logged_at.isoformat(),
        "estimate": _format_estimate(entry.estimate),
        "activity": activity,
    }


def _format_summary(summary: DailySummary) -> dict[str, object]:
    return {
        "calories": summary.totals.calories,
        "macros": _format_macros(summary.totals.macros),
        "targets": _format_targets(summary.targets),
        "remaining_calories": summary.remaining_calories,
        "progress": summary.progress,
    }


def _format_meals(
    meals: dict[MealPeriod, list[LedgerEntry]],
) -> dict[str, list[str]]:
    return {
        period.value: [str(entry.id) for entry in entries]
        for period, entries in meals.items()
    }


def _format_body_log(body_log: BodyLogEntry) -> dict[str, object]:
    return {
        "id": str(body_log.id),
        "logged_at": body_log.logged_at.isoformat(),
        "note": body_log.note,
        "image_data_url": to_data_url(body_log.image),
    }
