"""Tests for BudgetTracker."""

import pytest

from context_assembly.core.budget import BudgetTracker


def test_charge_returns_new_usage():
    tracker = BudgetTracker(limit=100)
    assert tracker.charge(10) == 10
    assert tracker.charge(5) == 15
    assert tracker.usage == 15


def test_remaining_with_margin():
    tracker = BudgetTracker(limit=100)
    tracker.charge(30)
    assert tracker.remaining() == 70
    assert tracker.remaining(reserved_margin=20) == 50


def test_fits_is_inclusive():
    tracker = BudgetTracker(limit=100)
    tracker.charge(20)
    assert tracker.fits(60, reserved_margin=20)
    assert not tracker.fits(61, reserved_margin=20)
    assert tracker.overflow(61, reserved_margin=20) == 1


def test_breakdown_by_stage():
    tracker = BudgetTracker(limit=100)
    tracker.charge(4, stage="history")
    tracker.charge(6, stage="history")
    tracker.charge(3, stage="lore")
    assert tracker.breakdown == {"history": 10, "lore": 3}


def test_negative_charge_rejected():
    tracker = BudgetTracker(limit=100)
    with pytest.raises(ValueError):
        tracker.charge(-1)
