"""
Tests for src/simulation/trip_phases.py and the phase event factories.

Tests cover:
- PhaseKind classification of descriptions
- Terminal and overhead kinds
- TripPhase duration and describe()
- Phase events with and without an explicit kind
"""

import pytest

from src.agents.base import CarID, PedestrianID
from src.simulation.events import (
    TripPhaseStarting,
    create_driving_phase_event,
    create_parking_phase_event,
    create_walking_phase_event,
)
from src.simulation.trip_phases import (
    TRIP_ABORTED,
    TRIP_FINISHED,
    PhaseKind,
    TripPhase,
)


class TestPhaseKind:
    """Tests for PhaseKind."""

    @pytest.mark.parametrize(
        "description,expected",
        [
            (TRIP_FINISHED, PhaseKind.FINISHED),
            (TRIP_ABORTED, PhaseKind.ABORTED),
            ("CarID(3) driving", PhaseKind.DRIVING),
            ("parking somewhere else", PhaseKind.PARKING),
            ("parking on the current lane", PhaseKind.PARKING),
            ("PedestrianID(9) walking", PhaseKind.WALKING),
            ("waiting for bus", PhaseKind.OTHER),
            ("parking", PhaseKind.OTHER),
        ],
    )
    def test_from_description(self, description, expected):
        """Free-text descriptions map onto kinds."""
        assert PhaseKind.from_description(description) == expected

    def test_every_kind_is_reachable(self):
        """Each kind comes out of some description."""
        descriptions = [
            TRIP_FINISHED,
            TRIP_ABORTED,
            "CarID(1) driving",
            "parking on the current lane",
            "PedestrianID(1) walking",
            "waiting for bus",
        ]
        kinds = {PhaseKind.from_description(d) for d in descriptions}
        assert kinds == set(PhaseKind)

    def test_terminal_kinds(self):
        """Only finishing and aborting end a trip."""
        terminal = {kind for kind in PhaseKind if kind.is_terminal}
        assert terminal == {PhaseKind.FINISHED, PhaseKind.ABORTED}

    def test_overhead_kinds(self):
        """Parking and walking are overhead."""
        overhead = {kind for kind in PhaseKind if kind.is_overhead}
        assert overhead == {PhaseKind.PARKING, PhaseKind.WALKING}


class TestTripPhase:
    """Tests for TripPhase."""

    def test_duration(self):
        """Duration is known once the phase has ended."""
        phase = TripPhase(10.0, 25.5, None, "A")
        assert phase.duration == pytest.approx(15.5)
        assert phase.kind == PhaseKind.OTHER

    def test_ongoing_duration(self):
        """An ongoing phase has no duration."""
        assert TripPhase(10.0, None, None, "A").duration is None

    def test_describe_finished(self):
        phase = TripPhase(10.0, 25.5, None, "CarID(1) driving", PhaseKind.DRIVING)
        assert phase.describe(100.0) == "10.0s .. 25.5s (15.5s): CarID(1) driving"

    def test_describe_ongoing(self):
        """Ongoing phases are measured up to now."""
        phase = TripPhase(10.0, None, None, "A")
        assert phase.describe(40.0) == "10.0s .. ongoing (30.0s so far): A"


class TestPhaseEvents:
    """Tests for TripPhaseStarting and its factories."""

    def test_kind_falls_back_to_description(self):
        """Without a kind, the description decides."""
        ev = TripPhaseStarting(1, None, "parking somewhere else")
        assert ev.phase_kind == PhaseKind.PARKING

    def test_explicit_kind_wins(self):
        """An explicit kind is used as given."""
        ev = TripPhaseStarting(1, None, "CarID(1) driving", PhaseKind.OTHER)
        assert ev.phase_kind == PhaseKind.OTHER

    def test_driving_event(self):
        ev = create_driving_phase_event(4, CarID(2))
        assert ev.description == "CarID(2) driving"
        assert ev.phase_kind == PhaseKind.DRIVING
        assert PhaseKind.from_description(ev.description) == PhaseKind.DRIVING

    @pytest.mark.parametrize("on_current_lane", [True, False])
    def test_parking_event(self, on_current_lane):
        """Both parking descriptions classify as parking."""
        ev = create_parking_phase_event(4, on_current_lane)
        assert ev.request is None
        assert PhaseKind.from_description(ev.description) == PhaseKind.PARKING

    def test_walking_event(self):
        ev = create_walking_phase_event(4, PedestrianID(2))
        assert ev.description == "PedestrianID(2) walking"
        assert ev.phase_kind == PhaseKind.WALKING
