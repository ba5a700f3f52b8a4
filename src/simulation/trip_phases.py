"""
Trip phases reconstructed from the trip log.

A trip is a sequence of phases (walking to a car, driving, looking for
parking, ...). Each phase starts when the simulation logs it and ends
when the next phase for the same trip starts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from .network import Path

TRIP_FINISHED = "trip finished"
TRIP_ABORTED = "trip aborted for some reason"

PARKING_DESCRIPTIONS = ("parking somewhere else", "parking on the current lane")


class PhaseKind(Enum):
    """Category of a trip phase, used by the overhead analysis."""

    DRIVING = auto()
    PARKING = auto()
    WALKING = auto()
    OTHER = auto()
    FINISHED = auto()
    ABORTED = auto()

    @classmethod
    def from_description(cls, description: str) -> PhaseKind:
        """Classify a free-text phase description."""
        if description == TRIP_FINISHED:
            return cls.FINISHED
        if description == TRIP_ABORTED:
            return cls.ABORTED
        if description.startswith("CarID("):
            return cls.DRIVING
        if description in PARKING_DESCRIPTIONS:
            return cls.PARKING
        if description.startswith("PedestrianID("):
            return cls.WALKING
        return cls.OTHER

    @property
    def is_terminal(self) -> bool:
        return self in (PhaseKind.FINISHED, PhaseKind.ABORTED)

    @property
    def is_overhead(self) -> bool:
        """Time that isn't the main driving part of a trip."""
        return self in (PhaseKind.PARKING, PhaseKind.WALKING)


@dataclass
class TripPhase:
    """One phase of a trip."""

    start_time: float
    end_time: Optional[float]
    # Start distance along the first step, and the path taken
    path: Optional[tuple[float, Path]]
    description: str
    kind: PhaseKind = PhaseKind.OTHER

    @property
    def duration(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def describe(self, now: float) -> str:
        if self.end_time is not None:
            return (
                f"{self.start_time:.1f}s .. {self.end_time:.1f}s "
                f"({self.duration:.1f}s): {self.description}"
            )
        return (
            f"{self.start_time:.1f}s .. ongoing "
            f"({now - self.start_time:.1f}s so far): {self.description}"
        )
