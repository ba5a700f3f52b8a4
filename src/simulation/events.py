"""
Event types emitted by the simulation.

Events are immutable facts; the time they happened is supplied
separately when they are ingested by Analytics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..agents.base import AgentID, CarID, PedestrianID, TripID, TripMode
from .network import IntersectionID, Path, PathRequest, Traversable
from .trip_phases import PhaseKind

BusRouteID = int
BusStopID = int


@dataclass(frozen=True)
class AgentEntersTraversable:
    """An agent moved onto a lane or turn."""

    agent: AgentID
    to: Traversable


@dataclass(frozen=True)
class BusArrivedAtStop:
    bus: CarID
    route: BusRouteID
    stop: BusStopID


@dataclass(frozen=True)
class PedReachedBusStop:
    """A pedestrian started waiting for a bus route."""

    ped: PedestrianID
    stop: BusStopID
    route: BusRouteID


@dataclass(frozen=True)
class TripFinished:
    trip: TripID
    mode: TripMode
    duration: float  # seconds


@dataclass(frozen=True)
class TripAborted:
    trip: TripID


@dataclass(frozen=True)
class IntersectionDelayMeasured:
    """How long an agent was delayed crossing an intersection."""

    intersection: IntersectionID
    delay: float  # seconds


@dataclass(frozen=True)
class TripPhaseStarting:
    """
    A trip moved into a new phase.

    ``kind`` is derived from ``description`` when not given.
    """

    trip: TripID
    request: Optional[PathRequest]
    description: str
    kind: Optional[PhaseKind] = None

    @property
    def phase_kind(self) -> PhaseKind:
        if self.kind is not None:
            return self.kind
        return PhaseKind.from_description(self.description)


@dataclass(frozen=True)
class PathAmended:
    """An agent was (re)routed along a new path."""

    path: Path


Event = Union[
    AgentEntersTraversable,
    BusArrivedAtStop,
    PedReachedBusStop,
    TripFinished,
    TripAborted,
    IntersectionDelayMeasured,
    TripPhaseStarting,
    PathAmended,
]


def create_driving_phase_event(
    trip: TripID,
    car: CarID,
    request: Optional[PathRequest] = None,
) -> TripPhaseStarting:
    """Create the event for a car starting to drive."""
    return TripPhaseStarting(
        trip=trip,
        request=request,
        description=f"{car} driving",
        kind=PhaseKind.DRIVING,
    )


def create_parking_phase_event(trip: TripID, on_current_lane: bool = True) -> TripPhaseStarting:
    """Create the event for a car starting to park."""
    description = (
        "parking on the current lane" if on_current_lane else "parking somewhere else"
    )
    return TripPhaseStarting(
        trip=trip, request=None, description=description, kind=PhaseKind.PARKING
    )


def create_walking_phase_event(
    trip: TripID,
    ped: PedestrianID,
    request: Optional[PathRequest] = None,
) -> TripPhaseStarting:
    """Create the event for a pedestrian starting to walk."""
    return TripPhaseStarting(
        trip=trip,
        request=request,
        description=f"{ped} walking",
        kind=PhaseKind.WALKING,
    )
