"""Tests for the daily ledger."""

from dataclasses import replace
from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from intake_tracker.domain.capture import EncodedImage, ImageSource
from intake_tracker.domain.ledger import (
    ActivityEnvironment,
    DailyLedger,
    DailyTotals,
    EntryKind,
    LedgerEntry,
    MealPeriod,
)
from intake_tracker.domain.nutrition import Macros, NutritionEstimate
from intake_tracker.domain.profile import DEFAULT_TARGETS
from intake_tracker.services.ledger import DEFAULT_BODY_NOTE, LedgerService


def _estimate(name: str = "Oats", calories: float = 300) -> NutritionEstimate:
    return NutritionEstimate(
        name=name,
        calories=calories,
        macros=Macros(protein=10, carbs=50, fat=6),
        captured_at=datetime(2026, 1, 5, 8, tzinfo=UTC),
    )


def _entry(logged_at: datetime, calories: float = 300) -> LedgerEntry:
    return LedgerEntry(
        id=uuid4(), estimate=_estimate(calories=calories), logged_at=logged_at
    )


def test_empty_ledger_totals_are_zero() -> None:
    assert DailyLedger().totals() == DailyTotals(calories=0, macros=Macros())


def test_food_then_exercise_totals() -> None:
    service = LedgerService()
    service.log_food("Rice bowl", 250, Macros(protein=10, carbs=30, fat=5))
    service.log_exercise("Run", 100)

    totals = service.totals()

    assert totals.calories == 150
    assert totals.macros == Macros(protein=10, carbs=30, fat=5)


def test_exercise_is_stored_as_negative_delta() -> None:
    service = LedgerService()

    entry = service.log_exercise(
        "Cycling", -180, environment=ActivityEnvironment.OUTDOOR, duration_minutes=40
    )

    assert entry.kind is EntryKind.EXERCISE
    assert entry.estimate.calories == -180
    assert entry.estimate.macros == Macros()
    assert entry.activity is not None
    assert entry.activity.environment is ActivityEnvironment.OUTDOOR
    assert entry.activity.duration_minutes == 40


def test_with_entry_does_not_mutate_original() -> None:
    ledger = DailyLedger()
    updated = ledger.with_entry(_entry(datetime.now(tz=UTC)))

    assert ledger.entries == ()
    assert len(updated.entries) == 1


def test_totals_are_recomputed_from_entries() -> None:
    service = LedgerService()
    service.record(_estimate(calories=300))
    first = service.totals()
    service.record(_estimate(calories=200))

    assert first.calories == 300
    assert service.totals().calories == 500


def test_recent_lists_newest_first() -> None:
    service = LedgerService()
    first = service.record(_estimate("Toast"))
    second = service.record(_estimate("Soup"))

    assert service.ledger.recent() == [second, first]
    assert list(service.ledger.entries) == [first, second]


def test_totals_filter_by_day() -> None:
    ledger = (
        DailyLedger()
        .with_entry(_entry(datetime(2026, 1, 5, 9, tzinfo=UTC), calories=100))
        .with_entry(_entry(datetime(2026, 1, 6, 9, tzinfo=UTC), calories=400))
    )

    assert ledger.totals(date(2026, 1, 5)).calories == 100
    assert ledger.totals().calories == 500


def test_totals_use_timezone_for_day_boundaries() -> None:
    service = LedgerService()
    late_evening_utc = datetime(2026, 1, 5, 23, 30, tzinfo=UTC)
    service.ledger = service.ledger.with_entry(_entry(late_evening_utc, calories=700))

    tokyo = service.totals(date(2026, 1, 6), timezone_name="Asia/Tokyo")
    utc = service.totals(date(2026, 1, 6), timezone_name="UTC")

    assert tokyo.calories == 700
    assert utc.calories == 0


def test_by_meal_period_groups_food_entries() -> None:
    breakfast = _entry(datetime(2026, 1, 5, 8, tzinfo=UTC))
    lunch = _entry(datetime(2026, 1, 5, 13, tzinfo=UTC))
    dinner = _entry(datetime(2026, 1, 5, 19, tzinfo=UTC))
    exercise = replace(
        _entry(datetime(2026, 1, 5, 7, tzinfo=UTC)), kind=EntryKind.EXERCISE
    )
    ledger = DailyLedger(entries=(breakfast, lunch, dinner, exercise))

    grouped = ledger.by_meal_period()

    assert grouped[MealPeriod.BREAKFAST] == [breakfast]
    assert grouped[MealPeriod.LUNCH] == [lunch]
    assert grouped[MealPeriod.DINNER] == [dinner]


def test_log_food_requires_name() -> None:
    service = LedgerService()

    with pytest.raises(ValueError):
        service.log_food("   ", 100)

    assert service.ledger.entries == ()


@pytest.mark.parametrize(
    ("calories", "macros"),
    [
        (float("inf"), None),
        (float("nan"), None),
        (100, Macros(protein=float("inf"))),
    ],
)
def test_log_food_rejects_non_finite_values(calories, macros) -> None:
    service = LedgerService()

    with pytest.raises(ValueError):
        service.log_food("Cake", calories, macros)

    assert service.ledger.entries == ()


def test_log_exercise_rejects_non_finite_calories() -> None:
    service = LedgerService()

    with pytest.raises(ValueError):
        service.log_exercise("Marathon", float("-inf"))

    assert service.ledger.entries == ()


def test_non_finite_estimate_is_not_confirmable() -> None:
    assert _estimate().is_confirmable()
    assert not _estimate(calories=float("inf")).is_confirmable()
    assert not replace(
        _estimate(), macros=Macros(carbs=float("nan"))
    ).is_confirmable()


def test_add_body_log_uses_default_note() -> None:
    service = LedgerService()
    image = EncodedImage(
        data=b"jpeg", mime_type="image/jpeg", source=ImageSource.UPLOAD
    )

    body_log = service.add_body_log(image)

    assert body_log.note == DEFAULT_BODY_NOTE
    assert service.ledger.body_logs == (body_log,)


def test_summary_reports_remaining_and_progress() -> None:
    service = LedgerService()
    service.log_food("Pasta", 600)

    summary = service.summary(DEFAULT_TARGETS)

    assert summary.remaining_calories == DEFAULT_TARGETS.calories - 600
    assert summary.progress == pytest.approx(600 / DEFAULT_TARGETS.calories)
