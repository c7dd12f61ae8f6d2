"""Daily ledger service for confirmed entries and body logs."""

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from intake_tracker.domain.capture import EncodedImage
from intake_tracker.domain.ledger import (
    ActivityDetails,
    ActivityEnvironment,
    BodyLogEntry,
    DailyLedger,
    DailyTotals,
    EntryKind,
    LedgerEntry,
    MealPeriod,
)
from intake_tracker.domain.nutrition import Macros, NutritionEstimate
from intake_tracker.domain.profile import NutritionTargets

_logger = logging.getLogger(__name__)

DEFAULT_BODY_NOTE = "No evaluation provided."
MANUAL_CONFIDENCE = 100.0


@dataclass(frozen=True)
class DailySummary:
    """Totals measured against targets."""

    totals: DailyTotals
    targets: NutritionTargets

    @property
    def remaining_calories(self) -> float:
        return self.targets.calories - self.totals.calories

    @property
    def progress(self) -> float:
        """Share of the calorie target consumed, capped to [0, 1]."""
        if self.targets.calories <= 0:
            return 0.0
        return min(max(self.totals.calories / self.targets.calories, 0.0), 1.0)


@dataclass
class LedgerService:
    """Owns the ledger state and applies append-only transitions."""

    ledger: DailyLedger = field(default_factory=DailyLedger)

    def record(self, estimate: NutritionEstimate) -> LedgerEntry:
        """Append a confirmed food estimate."""
        entry = LedgerEntry(
            id=uuid4(),
            estimate=estimate,
            logged_at=datetime.now(tz=UTC),
            kind=EntryKind.FOOD,
        )
        return self._append(entry)

    def log_food(
        self,
        name: str,
        calories: float,
        macros: Macros | None = None,
    ) -> LedgerEntry:
        """Append a manually entered food item."""
        now = datetime.now(tz=UTC)
        estimate = NutritionEstimate(
            name=name.strip(),
            calories=abs(calories),
            macros=macros or Macros(),
            captured_at=now,
            confidence=MANUAL_CONFIDENCE,
        )
        if not estimate.is_confirmable():
            raise ValueError("Food entries need a name and finite nutrition values")
        return self._append(LedgerEntry(id=uuid4(), estimate=estimate, logged_at=now))

    def log_exercise(
        self,
        name: str,
        calories_burned: float,
        environment: ActivityEnvironment = ActivityEnvironment.INDOOR,
        duration_minutes: int = 0,
    ) -> LedgerEntry:
        """Append an exercise entry as a negative calorie delta."""
        if not name.strip():
            raise ValueError("Exercise entries need a name")
        if not math.isfinite(calories_burned):
            raise ValueError("Exercise calories must be a finite number")
        now = datetime.now(tz=UTC)
        estimate = NutritionEstimate(
            name=name.strip(),
            calories=-abs(calories_burned),
            macros=Macros(),
            captured_at=now,
            confidence=MANUAL_CONFIDENCE,
        )
        entry = LedgerEntry(
            id=uuid4(),
            estimate=estimate,
            logged_at=now,
            kind=EntryKind.EXERCISE,
            activity=ActivityDetails(
                environment=environment, duration_minutes=max(duration_minutes, 0)
            ),
        )
        return self._append(entry)

    def add_body_log(self, image: EncodedImage, note: str = "") -> BodyLogEntry:
        """Append a body-composition photo."""
        body_log = BodyLogEntry(
            id=uuid4(),
            image=image,
            logged_at=datetime.now(tz=UTC),
            note=note.strip() or DEFAULT_BODY_NOTE,
        )
        self.ledger = self.ledger.with_body_log(body_log)
        _logger.info("Body log added: id=%s", body_log.id)
        return body_log

    def totals(
        self, day: date | None = None, timezone_name: str | None = None
    ) -> DailyTotals:
        """Return totals for a day in a timezone, or over every entry."""
        return self.ledger.totals(day, _zone(timezone_name))

    def meals(
        self, day: date | None = None, timezone_name: str | None = None
    ) -> dict[MealPeriod, list[LedgerEntry]]:
        """Return food entries grouped by meal period."""
        return self.ledger.by_meal_period(day, _zone(timezone_name))

    def summary(
        self,
        targets: NutritionTargets,
        day: date | None = None,
        timezone_name: str | None = None,
    ) -> DailySummary:
        """Return totals against the given targets."""
        return DailySummary(totals=self.totals(day, timezone_name), targets=targets)

    def _append(self, entry: LedgerEntry) -> LedgerEntry:
        self.ledger = self.ledger.with_entry(entry)
        _logger.info(
            "Ledger entry added: kind=%s name=%s calories=%s",
            entry.kind.value,
            entry.estimate.name,
            entry.estimate.calories,
        )
        return entry


def _zone(timezone_name: str | None) -> ZoneInfo | None:
    return ZoneInfo(timezone_name) if timezone_name else None
