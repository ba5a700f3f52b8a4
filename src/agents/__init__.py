"""Agent identity and travel modes for the traffic simulation."""

from .base import (
    AgentID,
    CarID,
    PedestrianID,
    TripID,
    TripMode,
    Vehicle,
    VehicleType,
    trip_mode_for_agent,
)

__all__ = [
    "AgentID",
    "CarID",
    "PedestrianID",
    "TripID",
    "TripMode",
    "Vehicle",
    "VehicleType",
    "trip_mode_for_agent",
]
