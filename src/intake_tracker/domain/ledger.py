"""Domain models for the daily ledger."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo

from intake_tracker.domain.capture import EncodedImage
from intake_tracker.domain.nutrition import Macros, NutritionEstimate

BREAKFAST_END_HOUR = 11
LUNCH_END_HOUR = 17


class EntryKind(Enum):
    """Ledger entry type."""

    FOOD = "food"
    EXERCISE = "exercise"


class ActivityEnvironment(Enum):
    """Where an exercise took place."""

    INDOOR = "indoor"
    OUTDOOR = "outdoor"


class MealPeriod(Enum):
    """Meal bucket derived from the time of day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


@dataclass(frozen=True)
class ActivityDetails:
    """Exercise details for burn entries."""

    environment: ActivityEnvironment
    duration_minutes: int


@dataclass(frozen=True)
class LedgerEntry:
    """Confirmed record contributing to daily totals.

    Exercise entries carry a negative calorie delta and zero macros.
    """

    id: UUID
    estimate: NutritionEstimate
    logged_at: datetime
    kind: EntryKind = EntryKind.FOOD
    activity: ActivityDetails | None = None


@dataclass(frozen=True)
class BodyLogEntry:
    """Body-composition photo with a note."""

    id: UUID
    image: EncodedImage
    logged_at: datetime
    note: str


@dataclass(frozen=True)
class DailyTotals:
    """Calorie and macro totals folded from ledger entries."""

    calories: float = 0.0
    macros: Macros = field(default_factory=Macros)


@dataclass(frozen=True)
class DailyLedger:
    """Append-only collection of entries and body logs."""

    entries: tuple[LedgerEntry, ...] = ()
    body_logs: tuple[BodyLogEntry, ...] = ()

    def with_entry(self, entry: LedgerEntry) -> "DailyLedger":
        """Return a ledger with the entry appended."""
        return DailyLedger(entries=(*self.entries, entry), body_logs=self.body_logs)

    def with_body_log(self, body_log: BodyLogEntry) -> "DailyLedger":
        """Return a ledger with the body log appended."""
        return DailyLedger(
            entries=self.entries, body_logs=(*self.body_logs, body_log)
        )

    def entries_on(
        self, day: date | None, tz: ZoneInfo | None = None
    ) -> list[LedgerEntry]:
        """Return entries logged on a day, or every entry when day is None."""
        if day is None:
            return list(self.entries)
        return [
            entry for entry in self.entries if _local_day(entry.logged_at, tz) == day
        ]

    def totals(
        self, day: date | None = None, tz: ZoneInfo | None = None
    ) -> DailyTotals:
        """Fold entries into totals."""
        total = DailyTotals()
        for entry in self.entries_on(day, tz):
            total = DailyTotals(
                calories=total.calories + entry.estimate.calories,
                macros=total.macros + entry.estimate.macros,
            )
        return total

    def recent(self) -> list[LedgerEntry]:
        """Entries newest first."""
        return list(reversed(self.entries))

    def by_meal_period(
        self, day: date | None = None, tz: ZoneInfo | None = None
    ) -> dict[MealPeriod, list[LedgerEntry]]:
        """Group food entries into breakfast, lunch and dinner."""
        grouped: dict[MealPeriod, list[LedgerEntry]] = {
            period: [] for period in MealPeriod
        }
        for entry in self.entries_on(day, tz):
            if entry.kind is not EntryKind.FOOD:
                continue
            grouped[meal_period(entry.logged_at, tz)].append(entry)
        return grouped


def meal_period(moment: datetime, tz: ZoneInfo | None = None) -> MealPeriod:
    """Map a timestamp to its meal bucket."""
    hour = moment.astimezone(tz).hour if tz else moment.hour
    if hour < BREAKFAST_END_HOUR:
        return MealPeriod.BREAKFAST
    if hour < LUNCH_END_HOUR:
        return MealPeriod.LUNCH
    return MealPeriod.DINNER


def _local_day(moment: datetime, tz: ZoneInfo | None) -> date:
    return moment.astimezone(tz).date() if tz else moment.date()
