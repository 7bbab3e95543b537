from datetime import datetime, timedelta, timezone

import pytest

from evomind.application.review.algorithm import (
    calculate_next_review,
    days_between,
    is_due,
    round_half_up,
    update_ease_factor,
)
from evomind.domain.constants import MAX_INTERVAL_DAYS, MIN_EASE_FACTOR
from conftest import NOW, make_card


# --- Scenarios ---


def test_first_review_perfect():
    result = calculate_next_review(quality=5, review_count=0, current_ease_factor=2.5)
    assert result.new_ease_factor == pytest.approx(2.6)
    assert result.next_interval_days == 1
    assert result.reset is False


def test_second_review_good_keeps_ease():
    # delta = 0.1 - 1 * (0.08 + 1 * 0.02) = 0.0
    result = calculate_next_review(quality=4, review_count=1, current_ease_factor=2.6)
    assert result.new_ease_factor == pytest.approx(2.6)
    assert result.next_interval_days == 6
    assert result.reset is False


def test_third_review_compounds_second_interval():
    result = calculate_next_review(quality=5, review_count=2, current_ease_factor=2.6)
    assert result.new_ease_factor == pytest.approx(2.7)
    assert result.next_interval_days == 16  # round(6 * 2.7)


def test_poor_recall_late_in_history_resets():
    result = calculate_next_review(quality=1, review_count=5, current_ease_factor=2.9)
    assert result.next_interval_days == 1
    assert result.new_ease_factor == pytest.approx(2.7)
    assert result.reset is True


# --- Laws ---


@pytest.mark.parametrize("quality", [0, 1, 2])
@pytest.mark.parametrize("review_count", [0, 1, 2, 7])
def test_reset_law(quality, review_count):
    result = calculate_next_review(
        quality=quality, review_count=review_count, current_ease_factor=2.2,
        days_since_last_review=30,
    )
    assert result.next_interval_days == 1
    assert result.new_ease_factor == pytest.approx(2.0)
    assert result.reset is True


def test_reset_ease_is_floored():
    result = calculate_next_review(quality=0, review_count=3, current_ease_factor=1.4)
    assert result.new_ease_factor == MIN_EASE_FACTOR


@pytest.mark.parametrize("quality", [3, 4, 5])
def test_warm_up_law(quality):
    assert calculate_next_review(quality, 0, 2.5).next_interval_days == 1
    assert calculate_next_review(quality, 1, 2.5).next_interval_days == 6


def test_ease_floor_on_hard_answers():
    ease = 1.35
    for review_count in range(6):
        result = calculate_next_review(3, review_count, ease, days_since_last_review=4)
        assert result.new_ease_factor >= MIN_EASE_FACTOR
        ease = result.new_ease_factor
    assert ease == MIN_EASE_FACTOR


def test_later_review_uses_real_elapsed_days():
    # ease 2.5 + 0.1 = 2.6, 10 days since last review -> 26
    result = calculate_next_review(5, 3, 2.5, days_since_last_review=10)
    assert result.next_interval_days == 26


def test_later_review_fallback_without_elapsed_days():
    # round(6 * 2.6 ** 3) = round(105.456) = 105
    result = calculate_next_review(5, 4, 2.5, days_since_last_review=0)
    assert result.next_interval_days == 105

    no_history = calculate_next_review(5, 4, 2.5, days_since_last_review=None)
    assert no_history.next_interval_days == 105


def test_elapsed_days_ignored_before_third_review():
    result = calculate_next_review(5, 2, 2.6, days_since_last_review=400)
    assert result.next_interval_days == 16


def test_interval_capped_for_huge_elapsed_days():
    result = calculate_next_review(5, 10, 2.5, days_since_last_review=10**12)
    assert result.next_interval_days == MAX_INTERVAL_DAYS


def test_interval_capped_for_long_fallback_history():
    # 2.6 ** 9999 would overflow a float
    result = calculate_next_review(5, 10_000, 2.5)
    assert result.next_interval_days == MAX_INTERVAL_DAYS


@pytest.mark.parametrize(
    "quality,review_count,ease,days",
    [(3, 3, 1.3, 1), (5, 0, 5.0, None), (4, 50, 3.0, None), (5, 3, 2.5, 5000)],
)
def test_interval_bounds(quality, review_count, ease, days):
    result = calculate_next_review(quality, review_count, ease, days)
    assert 1 <= result.next_interval_days <= MAX_INTERVAL_DAYS


# --- Helpers ---


def test_update_ease_factor_grades():
    assert update_ease_factor(2.5, 5) == pytest.approx(2.6)
    assert update_ease_factor(2.5, 4) == pytest.approx(2.5)
    assert update_ease_factor(2.5, 3) == pytest.approx(2.36)
    assert update_ease_factor(1.3, 3) == MIN_EASE_FACTOR


def test_round_half_up():
    assert round_half_up(16.5) == 17
    assert round_half_up(16.49) == 16
    assert round_half_up(2.5) == 3


def test_days_between():
    assert days_between(None, NOW) == 0
    assert days_between(NOW - timedelta(days=3, hours=23), NOW) == 3
    assert days_between(NOW + timedelta(days=1), NOW) == 0


def test_is_due():
    card = make_card(next_review_at=NOW)
    assert is_due(card, NOW)
    assert not is_due(card, NOW - timedelta(seconds=1))
    assert is_due(card, datetime(2030, 1, 1, tzinfo=timezone.utc))
