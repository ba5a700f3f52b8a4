"""
Fixed time step driving simulation.

Moves cars along their Router's path at constant speed, carries out the
Router's end-of-trip decisions, and feeds every event into Analytics.
Following distances and queueing are not modeled.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import time as time_module
from dataclasses import dataclass, field
from typing import Any, Optional

import pandas as pd

from ..agents.base import CarID, TripID, Vehicle, trip_mode_for_agent
from .analytics import Analytics
from .events import (
    AgentEntersTraversable,
    Event,
    IntersectionDelayMeasured,
    PathAmended,
    TripAborted,
    TripFinished,
    create_driving_phase_event,
    create_parking_phase_event,
)
from .network import OnTurn, Path, PathRequest, Position, SimpleMap, driving_lane
from .parking import ParkingSimState, ParkingSpot
from .router import ActionAtEnd, Router, StartParking, Vanish, VanishReason

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    """Configuration for a simulation run."""

    duration_seconds: float = 3600.0  # 1 hour
    time_step_seconds: float = 1.0
    random_seed: int = 42

    # Vehicle settings
    car_speed_mps: float = 10.0
    parking_duration_seconds: float = 30.0

    # Analytics settings
    record_raw_throughput: bool = True
    throughput_window_seconds: float = 300.0  # 5 minutes
    delay_bucket_seconds: float = 600.0  # 10 minutes


@dataclass
class SimulationResult:
    """Results from a simulation run."""

    config: SimulationConfig
    metrics: dict[str, Any]
    raw_data: pd.DataFrame  # Finished and aborted trips
    end_time: float
    duration_seconds: float  # Wall clock


@dataclass
class ActiveCar:
    """A car currently in the simulation."""

    trip: TripID
    vehicle: Vehicle
    router: Router
    front: float
    departure_time: float
    entered_at: float
    done_parking_at: Optional[float] = None
    parked_at: Optional[ParkingSpot] = None


@dataclass(order=True)
class PendingDeparture:
    time: float
    seq: int
    trip: TripID = field(compare=False)
    vehicle: Vehicle = field(compare=False)
    router: Router = field(compare=False)
    start_dist: float = field(compare=False, default=0.0)
    request: Optional[PathRequest] = field(compare=False, default=None)


class SimulationEngine:
    """
    Time-stepped simulation of cars on a SimpleMap.

    Each step spawns due departures, advances the clock, then moves
    every car. A car's Router is advanced at most once per step.
    """

    def __init__(
        self,
        config: SimulationConfig,
        sim_map: SimpleMap,
        parking: Optional[ParkingSimState] = None,
        analytics: Optional[Analytics] = None,
    ):
        self.config = config
        self.sim_map = sim_map
        self.parking = parking or ParkingSimState(sim_map)
        self.analytics = analytics or Analytics(
            record_raw_throughput=config.record_raw_throughput
        )

        # Departures (min-heap by time)
        self.pending: list[PendingDeparture] = []
        self._seq = itertools.count()

        self.cars: dict[CarID, ActiveCar] = {}
        self.current_time: float = 0.0
        self.is_running: bool = False

    def schedule_car(
        self,
        time: float,
        trip: TripID,
        vehicle: Vehicle,
        router: Router,
        start_dist: float = 0.0,
        request: Optional[PathRequest] = None,
    ) -> None:
        """Schedule a car to start driving along its router's path."""
        router.validate_start_dist(start_dist)
        heapq.heappush(
            self.pending,
            PendingDeparture(
                time=time,
                seq=next(self._seq),
                trip=trip,
                vehicle=vehicle,
                router=router,
                start_dist=start_dist,
                request=request,
            ),
        )

    def schedule_trip(
        self,
        time: float,
        trip: TripID,
        vehicle: Vehicle,
        from_road: int,
        to_road: int,
        end_dist: Optional[float] = None,
        park_near: Optional[int] = None,
    ) -> None:
        """
        Route a car between two roads and schedule it.

        Args:
            time: Departure time
            trip: Trip ID
            vehicle: The car
            from_road: Road to start at the beginning of
            to_road: Destination road
            end_dist: Stop at this distance along the destination road
            park_near: Park near this building instead of stopping
        """
        if (end_dist is None) == (park_near is None):
            raise ValueError("Exactly one of end_dist and park_near is required")

        start = Position(driving_lane(self.sim_map, from_road), 0.0)
        end_lane = driving_lane(self.sim_map, to_road)
        end = Position(end_lane, end_dist if end_dist is not None else 0.0)
        request = PathRequest(start=start, end=end)

        path = self.sim_map.pathfind(request)
        if path is None:
            raise ValueError(f"No path from road {from_road} to road {to_road}")

        steps = list(path.get_steps())
        if park_near is not None:
            router = Router.park_near(steps, park_near)
        else:
            router = Router.stop_suddenly(steps, end_dist, self.sim_map)
        self.schedule_car(time, trip, vehicle, router, request=request)

    def run(self, until: Optional[float] = None) -> SimulationResult:
        """
        Run until the end time or until every car is done.

        Args:
            until: End time (defaults to config.duration_seconds)

        Returns:
            SimulationResult with metrics and data
        """
        start_wall_time = time_module.time()

        end_time = until if until is not None else self.config.duration_seconds
        self.is_running = True

        while self.is_running and self.current_time < end_time:
            if not self.cars and not self.pending:
                break
            self.step()

        self.is_running = False
        logger.info(
            f"Simulation stopped at {self.current_time:.1f}s with {len(self.cars)} cars active"
        )

        return SimulationResult(
            config=self.config,
            metrics=self.analytics.get_summary_metrics(self.current_time),
            raw_data=self.analytics.finished_trips_dataframe(),
            end_time=self.current_time,
            duration_seconds=time_module.time() - start_wall_time,
        )

    def stop(self) -> None:
        """Stop the simulation."""
        self.is_running = False

    def step(self) -> None:
        """Advance the simulation by one time step."""
        while self.pending and self.pending[0].time <= self.current_time:
            self._depart(heapq.heappop(self.pending))

        self.current_time += self.config.time_step_seconds
        for car in list(self.cars.values()):
            self._step_car(car)

    def _emit(self, ev: Event) -> None:
        self.analytics.event(ev, self.current_time, self.sim_map)

    def _depart(self, departure: PendingDeparture) -> None:
        vehicle = departure.vehicle
        router = departure.router

        self._emit(PathAmended(Path(steps=tuple(router.path))))
        self._emit(create_driving_phase_event(departure.trip, vehicle.id, departure.request))
        self._emit(AgentEntersTraversable(vehicle.id, router.head()))

        car = ActiveCar(
            trip=departure.trip,
            vehicle=vehicle,
            router=router,
            front=departure.start_dist,
            departure_time=self.current_time,
            entered_at=self.current_time,
        )
        self.cars[vehicle.id] = car

        if router.last_step():
            action = router.maybe_handle_end(car.front, vehicle, self.parking, self.sim_map)
            if action is not None:
                self._handle_action(car, action)

    def _step_car(self, car: ActiveCar) -> None:
        if car.done_parking_at is not None:
            if self.current_time >= car.done_parking_at:
                self._finish(car)
            return

        router = car.router
        distance = self.config.car_speed_mps * self.config.time_step_seconds

        if not router.last_step():
            length = router.head().length(self.sim_map)
            car.front += distance
            if car.front < length:
                return

            finished = router.advance(car.vehicle, self.parking, self.sim_map)
            if isinstance(finished, OnTurn):
                self._measure_delay(car, finished, length)
            car.front = 0.0
            car.entered_at = self.current_time
            self._emit(AgentEntersTraversable(car.vehicle.id, router.head()))

            if not router.last_step():
                return
            # advance() already evaluated the end at the start of the lane
            action = router.take_arrival_action()
        else:
            # Re-check the end first; a cached parking spot may be gone
            action = router.maybe_handle_end(car.front, car.vehicle, self.parking, self.sim_map)
            if action is None:
                car.front = min(car.front + distance, router.get_end_dist())
                action = router.maybe_handle_end(
                    car.front, car.vehicle, self.parking, self.sim_map
                )

        if action is not None:
            self._handle_action(car, action)

    def _measure_delay(self, car: ActiveCar, turn: OnTurn, length: float) -> None:
        # Cars start every segment at its beginning, so crossing takes whole steps
        step = self.config.time_step_seconds
        free_flow = math.ceil(length / (self.config.car_speed_mps * step)) * step
        delay = max(0.0, self.current_time - car.entered_at - free_flow)
        self._emit(IntersectionDelayMeasured(turn.turn.parent, delay))

    def _handle_action(self, car: ActiveCar, action: ActionAtEnd) -> None:
        match action:
            case Vanish(reason=VanishReason.REACHED_END):
                self._finish(car)
            case Vanish(reason=VanishReason.NO_PARKING):
                del self.cars[car.vehicle.id]
                self._emit(TripAborted(car.trip))
            case StartParking(spot=spot):
                self.parking.add_parked_car(spot, car.vehicle.id)
                car.parked_at = spot
                car.done_parking_at = self.current_time + self.config.parking_duration_seconds
                self._emit(create_parking_phase_event(car.trip))

    def _finish(self, car: ActiveCar) -> None:
        del self.cars[car.vehicle.id]
        self._emit(
            TripFinished(
                trip=car.trip,
                mode=trip_mode_for_agent(car.vehicle.id),
                duration=self.current_time - car.departure_time,
            )
        )


def run_simulation(
    config: SimulationConfig,
    sim_map: SimpleMap,
    departures: list[dict],
    parking: Optional[ParkingSimState] = None,
) -> tuple[SimulationResult, SimulationEngine]:
    """
    Convenience function to run a simulation.

    Args:
        config: Simulation configuration
        sim_map: Road network
        departures: Dicts with trip_id, car_id, time, from_road, to_road and
            either end_dist or park_near
        parking: Parking state (defaults to every spot free)

    Returns:
        The result and the engine, for further queries on its analytics
    """
    engine = SimulationEngine(config, sim_map, parking=parking)

    for dep in departures:
        engine.schedule_trip(
            time=dep["time"],
            trip=dep["trip_id"],
            vehicle=Vehicle(id=CarID(dep["car_id"])),
            from_road=dep["from_road"],
            to_road=dep["to_road"],
            end_dist=dep.get("end_dist"),
            park_near=dep.get("park_near"),
        )

    return engine.run(), engine
