"""
Tests for src/simulation/parking.py module.

Tests cover:
- Spot layout on parking lanes
- Finding the first free spot
- Vehicle compatibility
- Claiming and freeing spots
- Projecting spots onto driving lanes
"""

import pytest

from src.agents.base import CarID, Vehicle, VehicleType
from src.simulation.network import Position, create_demo_map
from src.simulation.parking import (
    PARKING_SPOT_LENGTH,
    ParkingOccupancy,
    ParkingSimState,
    ParkingSpot,
)


class TestParkingSimState:
    """Tests for ParkingSimState."""

    @pytest.fixture
    def sim_map(self):
        """Demo map; road 0 has parking lane 1 next to driving lane 2."""
        return create_demo_map(n_roads=1, road_length=100.0)

    @pytest.fixture
    def parking(self, sim_map):
        return ParkingSimState(sim_map)

    @pytest.fixture
    def car(self):
        return Vehicle(id=CarID(1))

    def test_implements_interface(self, parking):
        """ParkingSimState is a ParkingOccupancy."""
        assert isinstance(parking, ParkingOccupancy)

    def test_spots_only_on_parking_lanes(self, parking):
        """100m of parking holds 12 spots of 8m."""
        assert PARKING_SPOT_LENGTH == 8.0
        assert parking.spots_per_lane == {1: 12}
        assert parking.total_spots == 12
        assert parking.total_free == 12

    def test_first_free_spot_from_start(self, parking, car):
        """From the start of the lane, the first spot is picked."""
        assert parking.get_first_free_spot(Position(1, 0.0), car) == ParkingSpot(1, 0)

    def test_first_free_spot_skips_behind(self, parking, car):
        """Spots that end before the position are skipped."""
        assert parking.get_first_free_spot(Position(1, 20.0), car) == ParkingSpot(1, 2)

    def test_first_free_spot_skips_occupied(self, parking, car):
        """Occupied spots are skipped."""
        parking.add_parked_car(ParkingSpot(1, 0), CarID(9))
        assert parking.get_first_free_spot(Position(1, 0.0), car) == ParkingSpot(1, 1)

    def test_no_free_spot(self, parking, car):
        """None once every spot ahead is taken."""
        for spot in parking.all_spots(1):
            parking.add_parked_car(spot, CarID(100 + spot.idx))
        assert parking.get_first_free_spot(Position(1, 0.0), car) is None
        assert parking.total_free == 0

    @pytest.mark.parametrize("vehicle_type", [VehicleType.BIKE, VehicleType.BUS])
    def test_only_cars_fit(self, parking, vehicle_type):
        """Bikes and buses don't use parking spots."""
        vehicle = Vehicle(id=CarID(2, vehicle_type))
        assert parking.get_first_free_spot(Position(1, 0.0), vehicle) is None

    def test_too_long_vehicle(self, parking):
        """A car longer than a spot doesn't fit."""
        vehicle = Vehicle(id=CarID(3), length=9.0)
        assert parking.get_first_free_spot(Position(1, 0.0), vehicle) is None

    def test_spot_to_driving_pos(self, parking, car, sim_map):
        """A car lines up with the front of its spot."""
        pos = parking.spot_to_driving_pos(ParkingSpot(1, 2), car, 2, sim_map)
        assert pos == Position(2, 24.0)

    def test_double_park_rejected(self, parking):
        """A second claim on a spot is an error."""
        parking.add_parked_car(ParkingSpot(1, 3), CarID(1))
        with pytest.raises(ValueError):
            parking.add_parked_car(ParkingSpot(1, 3), CarID(2))

    def test_nonexistent_spot_rejected(self, parking):
        """Spots past the end of the lane don't exist."""
        with pytest.raises(ValueError):
            parking.add_parked_car(ParkingSpot(1, 12), CarID(1))

    def test_remove_parked_car(self, parking):
        """Removing frees the spot and returns the car."""
        spot = ParkingSpot(1, 4)
        parking.add_parked_car(spot, CarID(5))
        assert not parking.is_free(spot)
        assert parking.remove_parked_car(spot) == CarID(5)
        assert parking.is_free(spot)

    def test_remove_from_empty_spot(self, parking):
        """Freeing an empty spot is an error."""
        with pytest.raises(ValueError):
            parking.remove_parked_car(ParkingSpot(1, 0))

    def test_get_free_spots(self, parking):
        """Free spots on a lane, in order."""
        parking.add_parked_car(ParkingSpot(1, 1), CarID(1))
        free = parking.get_free_spots(1)
        assert ParkingSpot(1, 1) not in free
        assert free[0] == ParkingSpot(1, 0)
        assert len(free) == 11
