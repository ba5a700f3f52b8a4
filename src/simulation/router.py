"""
Per-vehicle routing and end-of-trip handling.

A Router owns the remaining path of one vehicle and its goal. The front
of the path is always the segment the vehicle is on; the last element is
where the trip ends. When the vehicle reaches its last segment the
Router decides whether it vanishes, starts parking, or keeps going.

Parking is resolved lazily: the first time a vehicle with a parking goal
reaches its last segment, the nearest parking lane is searched for a
free spot. The spot is cached but not claimed, so it is re-checked on
every evaluation and re-resolved if someone else took it.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from ..agents.base import Vehicle
from .network import LaneType, Position, SimpleMap, Traversable
from .parking import ParkingOccupancy, ParkingSpot

logger = logging.getLogger(__name__)

BuildingID = int


class RouteError(ValueError):
    """A route or goal that no vehicle could physically follow."""


@dataclass
class StopSuddenly:
    """Stop at a distance along the last segment of the path."""

    end_dist: float


@dataclass
class ParkNearBuilding:
    """
    Park as close as possible to a building.

    ``spot`` holds the resolved spot and the distance along the last
    driving lane where the vehicle lines up for it.
    """

    # TODO Use the building position when choosing among parking lanes.
    target: BuildingID
    spot: Optional[tuple[ParkingSpot, float]] = None


Goal = Union[StopSuddenly, ParkNearBuilding]


class VanishReason(Enum):
    """Why a vehicle leaves the simulation."""

    REACHED_END = auto()  # Arrived at a deliberate stop point
    NO_PARKING = auto()  # Couldn't find anywhere to park


@dataclass(frozen=True)
class Vanish:
    reason: VanishReason = VanishReason.REACHED_END


@dataclass(frozen=True)
class StartParking:
    spot: ParkingSpot


ActionAtEnd = Union[Vanish, StartParking]


class Router:
    """
    Remaining path and goal of one vehicle.

    Use Router.stop_suddenly() or Router.park_near() to build one.
    """

    def __init__(self, path: list[Traversable], goal: Goal):
        if not path:
            raise RouteError("Can't route a vehicle along an empty path")
        # Front is always the current step
        self.path: deque[Traversable] = deque(path)
        self.goal = goal
        self._arrival_action: Optional[ActionAtEnd] = None

    @classmethod
    def stop_suddenly(
        cls, path: list[Traversable], end_dist: float, sim_map: SimpleMap
    ) -> Router:
        """Route that ends at ``end_dist`` along the last segment."""
        if not path:
            raise RouteError("Can't route a vehicle along an empty path")
        last = path[-1]
        if end_dist >= last.length(sim_map):
            raise RouteError(f"Can't end a car at {end_dist}; {last} isn't that long")
        return cls(path, StopSuddenly(end_dist=end_dist))

    @classmethod
    def park_near(cls, path: list[Traversable], building: BuildingID) -> Router:
        """Route that ends by parking near ``building``."""
        return cls(path, ParkNearBuilding(target=building))

    def validate_start_dist(self, start_dist: float) -> None:
        """Reject starting positions with nowhere left to go."""
        match self.goal:
            case StopSuddenly(end_dist=end_dist):
                if len(self.path) == 1 and start_dist >= end_dist:
                    raise RouteError(
                        f"Can't start a car with one step in its path and go "
                        f"from {start_dist} to {end_dist}"
                    )
            case ParkNearBuilding():
                pass

    def head(self) -> Traversable:
        """The segment the vehicle is on."""
        return self.path[0]

    def next(self) -> Traversable:
        """The segment after the current one."""
        if len(self.path) < 2:
            raise RouteError("No next step; the vehicle is on its last step")
        return self.path[1]

    def last_step(self) -> bool:
        return len(self.path) == 1

    def get_end_dist(self) -> float:
        """Where along the last segment the vehicle must stop."""
        # Shouldn't ask earlier!
        if not self.last_step():
            raise RouteError("End distance is only known on the last step")

        match self.goal:
            case StopSuddenly(end_dist=end_dist):
                return end_dist
            case ParkNearBuilding(spot=None):
                raise RouteError("No parking spot has been resolved yet")
            case ParkNearBuilding(spot=(_, dist)):
                return dist

    def advance(
        self, vehicle: Vehicle, parking: ParkingOccupancy, sim_map: SimpleMap
    ) -> Traversable:
        """
        Move onto the next segment.

        Advancing off the only remaining segment empties the path. A
        StopSuddenly goal can still be resolved afterwards.

        Returns:
            The step just finished
        """
        if not self.path:
            raise RouteError(f"{vehicle.id} has no path left to advance along")

        prev = self.path.popleft()
        if self.last_step():
            # Trigger the side effect of looking for parking early, so the
            # vehicle knows where to queue before physically arriving.
            self._arrival_action = self.maybe_handle_end(0.0, vehicle, parking, sim_map)
        return prev

    def take_arrival_action(self) -> Optional[ActionAtEnd]:
        """
        The action decided when the last advance reached the last step.

        Only returned once, so the caller can act on it without resolving
        the end a second time.
        """
        action, self._arrival_action = self._arrival_action, None
        return action

    def maybe_handle_end(
        self,
        front: float,
        vehicle: Vehicle,
        parking: ParkingOccupancy,
        sim_map: SimpleMap,
    ) -> Optional[ActionAtEnd]:
        """
        Decide what happens with the vehicle's front at ``front`` along
        the last segment.

        Called when the vehicle first reaches its last step and again
        whenever it is waiting at the end of it.

        Returns:
            None if the vehicle should keep going, otherwise the action
        """
        match self.goal:
            case StopSuddenly(end_dist=end_dist):
                if front == end_dist:
                    return Vanish(VanishReason.REACHED_END)
                return None

            case ParkNearBuilding() as goal:
                if goal.spot is None or not parking.is_free(goal.spot[0]):
                    new_spot = find_parking_spot(
                        Position(self.head().as_lane(), front),
                        vehicle,
                        sim_map,
                        parking,
                    )
                    if new_spot is None:
                        logger.warning(f"No parking spots left for {vehicle.id}, vanishing")
                        return Vanish(VanishReason.NO_PARKING)
                    goal.spot = new_spot

                spot, dist = goal.spot
                if dist == front:
                    return StartParking(spot)
                return None


def find_parking_spot(
    driving_pos: Position,
    vehicle: Vehicle,
    sim_map: SimpleMap,
    parking: ParkingOccupancy,
) -> Optional[tuple[ParkingSpot, float]]:
    """
    Find a free spot near a position on a driving lane.

    Returns:
        The spot and the distance along the driving lane to line up at,
        or None if there's no parking lane or no free spot on it
    """
    parking_lane = sim_map.find_closest_lane(driving_pos.lane, [LaneType.PARKING])
    if parking_lane is None:
        return None

    spot = parking.get_first_free_spot(
        driving_pos.equiv_pos(parking_lane, sim_map), vehicle
    )
    if spot is None:
        return None

    driving = parking.spot_to_driving_pos(spot, vehicle, driving_pos.lane, sim_map)
    return spot, driving.dist_along
