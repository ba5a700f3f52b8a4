"""
Parking occupancy bookkeeping.

Parking lanes are divided into fixed-length spots. Routers only see the
ParkingOccupancy interface: whether a spot is free, the first free spot
near a position, and where a driving vehicle lines up for a spot.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..agents.base import CarID, Vehicle, VehicleType
from .network import LaneID, LaneType, Position, SimpleMap

logger = logging.getLogger(__name__)

PARKING_SPOT_LENGTH = 8.0  # meters


@dataclass(frozen=True)
class ParkingSpot:
    """The idx-th spot along a parking lane."""

    lane: LaneID
    idx: int


class ParkingOccupancy(ABC):
    """What routing needs to know about parking."""

    @abstractmethod
    def is_free(self, spot: ParkingSpot) -> bool:
        """Whether nobody is parked in the spot."""
        pass

    @abstractmethod
    def get_first_free_spot(
        self, parking_pos: Position, vehicle: Vehicle
    ) -> Optional[ParkingSpot]:
        """First free spot at or after a position on a parking lane."""
        pass

    @abstractmethod
    def spot_to_driving_pos(
        self,
        spot: ParkingSpot,
        vehicle: Vehicle,
        driving_lane: LaneID,
        sim_map: SimpleMap,
    ) -> Position:
        """Where on the driving lane the vehicle stops to enter the spot."""
        pass


class ParkingSimState(ParkingOccupancy):
    """
    Tracks which parking spots are occupied and by whom.

    Claims are serialized by the caller: a spot is taken by the first
    add_parked_car, and a second claim on the same spot is an error.
    """

    def __init__(self, sim_map: SimpleMap, spot_length: float = PARKING_SPOT_LENGTH):
        self.spot_length = spot_length
        self.spots_per_lane: dict[LaneID, int] = {
            lane.lane_id: int(lane.length // spot_length)
            for lane in sim_map.lanes.values()
            if lane.lane_type == LaneType.PARKING
        }
        self.occupants: dict[ParkingSpot, CarID] = {}

    def spot_dist_along(self, spot: ParkingSpot) -> float:
        """Distance of the front of the spot along its parking lane."""
        return (spot.idx + 1) * self.spot_length

    def all_spots(self, lane: LaneID) -> list[ParkingSpot]:
        return [ParkingSpot(lane, idx) for idx in range(self.spots_per_lane.get(lane, 0))]

    def get_free_spots(self, lane: LaneID) -> list[ParkingSpot]:
        return [spot for spot in self.all_spots(lane) if self.is_free(spot)]

    @property
    def total_spots(self) -> int:
        return sum(self.spots_per_lane.values())

    @property
    def total_free(self) -> int:
        return self.total_spots - len(self.occupants)

    def is_free(self, spot: ParkingSpot) -> bool:
        return spot not in self.occupants

    def get_first_free_spot(
        self, parking_pos: Position, vehicle: Vehicle
    ) -> Optional[ParkingSpot]:
        # Spots are sized for cars only
        if vehicle.vehicle_type != VehicleType.CAR:
            return None
        if vehicle.length > self.spot_length:
            return None

        for spot in self.all_spots(parking_pos.lane):
            if self.spot_dist_along(spot) < parking_pos.dist_along:
                continue
            if self.is_free(spot):
                return spot
        return None

    def spot_to_driving_pos(
        self,
        spot: ParkingSpot,
        vehicle: Vehicle,
        driving_lane: LaneID,
        sim_map: SimpleMap,
    ) -> Position:
        return Position(spot.lane, self.spot_dist_along(spot)).equiv_pos(
            driving_lane, sim_map
        )

    def add_parked_car(self, spot: ParkingSpot, car: CarID) -> None:
        """Claim a spot for a car."""
        if spot.idx >= self.spots_per_lane.get(spot.lane, 0):
            raise ValueError(f"{spot} does not exist")
        if not self.is_free(spot):
            raise ValueError(
                f"{car} can't park in {spot}; {self.occupants[spot]} is already there"
            )
        self.occupants[spot] = car
        logger.debug(f"{car} parked in {spot}")

    def remove_parked_car(self, spot: ParkingSpot) -> CarID:
        """Free a spot, returning the car that was there."""
        if spot not in self.occupants:
            raise ValueError(f"Nobody is parked in {spot}")
        return self.occupants.pop(spot)
