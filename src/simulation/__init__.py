"""
Vehicle routing and event-sourced analytics for traffic simulation.

Provides per-vehicle routers with parking resolution, a simple road
network and parking model, and analytics over the simulation's events.
"""

from .analytics import Analytics, ThruputStats
from .engine import SimulationConfig, SimulationEngine, SimulationResult, run_simulation
from .events import (
    AgentEntersTraversable,
    BusArrivedAtStop,
    Event,
    IntersectionDelayMeasured,
    PathAmended,
    PedReachedBusStop,
    TripAborted,
    TripFinished,
    TripPhaseStarting,
)
from .histogram import DurationHistogram, PercentageHistogram
from .network import (
    LaneType,
    OnLane,
    OnTurn,
    Path,
    PathRequest,
    Position,
    SimpleMap,
    Traversable,
    TurnGroupID,
    TurnID,
    create_demo_map,
)
from .parking import ParkingOccupancy, ParkingSimState, ParkingSpot
from .router import (
    ParkNearBuilding,
    RouteError,
    Router,
    StartParking,
    StopSuddenly,
    Vanish,
    VanishReason,
)
from .trip_phases import PhaseKind, TripPhase
from .window import Window

__all__ = [
    # Analytics
    "Analytics",
    "ThruputStats",
    "DurationHistogram",
    "PercentageHistogram",
    "PhaseKind",
    "TripPhase",
    "Window",
    # Engine
    "SimulationConfig",
    "SimulationEngine",
    "SimulationResult",
    "run_simulation",
    # Events
    "Event",
    "AgentEntersTraversable",
    "BusArrivedAtStop",
    "IntersectionDelayMeasured",
    "PathAmended",
    "PedReachedBusStop",
    "TripAborted",
    "TripFinished",
    "TripPhaseStarting",
    # Network
    "SimpleMap",
    "LaneType",
    "OnLane",
    "OnTurn",
    "Path",
    "PathRequest",
    "Position",
    "Traversable",
    "TurnGroupID",
    "TurnID",
    "create_demo_map",
    # Parking
    "ParkingOccupancy",
    "ParkingSimState",
    "ParkingSpot",
    # Routing
    "Router",
    "RouteError",
    "StopSuddenly",
    "ParkNearBuilding",
    "StartParking",
    "Vanish",
    "VanishReason",
]
