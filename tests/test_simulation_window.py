"""
Tests for src/simulation/window.py module.

Tests cover:
- Window add and count
- Eviction at the window boundary
- Agreement with a brute-force rescan
"""

import numpy as np
import pytest

from src.simulation.window import Window


class TestWindow:
    """Tests for Window."""

    def test_empty_window(self):
        """A new window counts nothing."""
        window = Window(10.0)
        assert window.count(0.0) == 0
        assert len(window) == 0

    def test_add_returns_count(self):
        """add() returns the count including the new event."""
        window = Window(10.0)
        assert window.add(0.0) == 1
        assert window.add(5.0) == 2

    def test_boundary_is_inclusive(self):
        """An event exactly window_size ago still counts."""
        window = Window(10.0)
        window.add(0.0)
        window.add(5.0)
        assert window.count(10.0) == 2
        assert window.count(10.5) == 1

    def test_old_events_evicted_on_add(self):
        """Adding a late event drops everything outside the window."""
        window = Window(10.0)
        window.add(0.0)
        window.add(5.0)
        assert window.add(20.0) == 1
        assert list(window.times) == [20.0]

    def test_count_does_not_add(self):
        """count() only evicts."""
        window = Window(10.0)
        window.add(1.0)
        window.count(2.0)
        window.count(3.0)
        assert len(window) == 1

    @pytest.mark.parametrize("window_size", [1.0, 7.5, 60.0])
    def test_matches_brute_force(self, window_size):
        """Counts agree with rescanning every addition."""
        rng = np.random.default_rng(42)
        times = np.sort(rng.uniform(0, 200, size=100))

        window = Window(window_size)
        added: list[float] = []
        for t, next_t in zip(times, np.append(times[1:], 250.0)):
            added.append(float(t))
            count = window.add(float(t))
            assert count == sum(1 for ts in added if t - ts <= window_size)

            # Queries stay in time order with the additions
            query = float(t + next_t) / 2
            expected = sum(1 for ts in added if query - ts <= window_size)
            assert window.count(query) == expected
