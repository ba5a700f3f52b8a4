"""
Agent identity and travel modes for the traffic simulation.

Agents are either pedestrians or vehicles. Vehicles carry a type that
decides which trip mode they are counted under in throughput statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union


class TripMode(Enum):
    """Coarse travel category used for reporting."""

    WALK = auto()
    BIKE = auto()
    TRANSIT = auto()
    DRIVE = auto()

    @classmethod
    def all(cls) -> list[TripMode]:
        """All modes, in reporting order."""
        return list(cls)


class VehicleType(Enum):
    """Physical kind of a vehicle."""

    CAR = auto()
    BIKE = auto()
    BUS = auto()


@dataclass(frozen=True)
class CarID:
    """Identity of any vehicle (car, bike or bus)."""

    id: int
    vehicle_type: VehicleType = VehicleType.CAR

    def __str__(self) -> str:
        return f"CarID({self.id})"


@dataclass(frozen=True)
class PedestrianID:
    """Identity of a pedestrian."""

    id: int

    def __str__(self) -> str:
        return f"PedestrianID({self.id})"


AgentID = Union[CarID, PedestrianID]

# Trips are numbered by the scenario that spawns them.
TripID = int


@dataclass
class Vehicle:
    """A vehicle as seen by routing and parking."""

    id: CarID
    length: float = 4.5  # meters
    max_speed: Optional[float] = None  # m/s, None means unlimited

    @property
    def vehicle_type(self) -> VehicleType:
        return self.id.vehicle_type


def trip_mode_for_agent(agent: AgentID) -> TripMode:
    """
    Classify an agent into the trip mode it is counted under.

    Buses count as transit; pedestrians riding a bus are still the bus.
    """
    match agent:
        case PedestrianID():
            return TripMode.WALK
        case CarID(vehicle_type=VehicleType.CAR):
            return TripMode.DRIVE
        case CarID(vehicle_type=VehicleType.BIKE):
            return TripMode.BIKE
        case CarID(vehicle_type=VehicleType.BUS):
            return TripMode.TRANSIT
        case _:
            raise ValueError(f"Unknown agent {agent!r}")
