"""
Event-sourced analytics for simulation runs.

Analytics ingests simulation events in time order and keeps append-only
logs per category, plus running counters for live dashboards. Queries
are answered "as of" a caller-supplied time; because every log is
appended in non-decreasing time order, they stop scanning at the first
record past that time.
"""

from __future__ import annotations

import copy
import logging
import pickle
from collections import Counter, deque
from dataclasses import dataclass, field
from pathlib import Path as FilePath
from typing import Any, Hashable, Iterator, Optional, Sequence, Union

import pandas as pd

from ..agents.base import CarID, TripID, TripMode, trip_mode_for_agent
from .events import (
    AgentEntersTraversable,
    BusArrivedAtStop,
    BusRouteID,
    BusStopID,
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
    IntersectionID,
    OnLane,
    OnTurn,
    Path,
    PathRequest,
    RoadID,
    SimpleMap,
    TurnGroupID,
)
from .trip_phases import TRIP_ABORTED, TRIP_FINISHED, PhaseKind, TripPhase
from .window import Window

logger = logging.getLogger(__name__)

START_OF_DAY = 0.0

# Throughput drop-off samples land just after the window closes
DROPOFF_EPSILON = 0.1


@dataclass(frozen=True)
class ThroughputRecord:
    """An agent entering a road or intersection."""

    time: float
    mode: TripMode
    key: Union[RoadID, IntersectionID]


@dataclass(frozen=True)
class BusArrival:
    time: float
    bus: CarID
    route: BusRouteID
    stop: BusStopID


@dataclass(frozen=True)
class PassengerWaiting:
    time: float
    stop: BusStopID
    route: BusRouteID


@dataclass(frozen=True)
class FinishedTrip:
    """A finished or aborted trip. Aborted trips have no mode."""

    time: float
    trip: TripID
    mode: Optional[TripMode]
    duration: float

    @property
    def aborted(self) -> bool:
        return self.mode is None


@dataclass(frozen=True)
class TripLogEntry:
    time: float
    trip: TripID
    request: Optional[PathRequest]
    description: str
    kind: PhaseKind


@dataclass
class ThruputStats:
    """Cumulative and raw throughput, plus live turn group demand."""

    count_per_road: Counter = field(default_factory=Counter)
    count_per_intersection: Counter = field(default_factory=Counter)

    raw_per_road: list[ThroughputRecord] = field(default_factory=list)
    raw_per_intersection: list[ThroughputRecord] = field(default_factory=list)

    # Unlike everything else, this is just for a moment in time. Routing
    # a path through a turn group adds one, completing the movement
    # subtracts one, so values are signed and may dip below zero.
    demand: dict[TurnGroupID, int] = field(default_factory=dict)


class Analytics:
    """
    Aggregates simulation events for one run.

    Events must be ingested in non-decreasing time order; every windowed
    or range query relies on it.
    """

    def __init__(self, record_raw_throughput: bool = True):
        """
        Initialize analytics.

        Args:
            record_raw_throughput: Keep per-event throughput logs needed
                by throughput_road() and throughput_intersection()
        """
        self.record_raw_throughput = record_raw_throughput

        self.thruput_stats = ThruputStats()
        self.test_expectations: deque[Event] = deque()

        # Time-ordered logs
        self.bus_arrivals_log: list[BusArrival] = []
        self.bus_passengers_waiting: list[PassengerWaiting] = []
        self.finished_trips_log: list[FinishedTrip] = []
        self.trip_log: list[TripLogEntry] = []
        self.intersection_delays_log: dict[IntersectionID, list[tuple[float, float]]] = {}

        # After restoring a saved run, don't record anything
        self.record_anything = True
        self._last_time = START_OF_DAY

    @classmethod
    def passive(cls) -> Analytics:
        """Empty analytics that ignores every event."""
        analytics = cls()
        analytics.record_anything = False
        return analytics

    def expect(self, event: Event) -> None:
        """Queue an event that a scripted scenario expects to happen next."""
        self.test_expectations.append(event)

    # Ingestion

    def event(self, ev: Event, time: float, sim_map: SimpleMap) -> None:
        """
        Ingest one event.

        Args:
            ev: The event
            time: When it happened; never earlier than the previous event
            sim_map: Map the simulation runs on
        """
        if not self.record_anything:
            return

        assert time >= self._last_time, (
            f"Event at {time} ingested after an event at {self._last_time}"
        )
        self._last_time = time

        # Throughput
        if isinstance(ev, AgentEntersTraversable):
            self._record_throughput(ev, time, sim_map)

        # Test expectations
        if self.test_expectations and ev == self.test_expectations[0]:
            logger.info(f"At {time}, met expectation {ev}")
            self.test_expectations.popleft()

        match ev:
            case BusArrivedAtStop(bus=bus, route=route, stop=stop):
                self.bus_arrivals_log.append(BusArrival(time, bus, route, stop))
            case PedReachedBusStop(stop=stop, route=route):
                self.bus_passengers_waiting.append(PassengerWaiting(time, stop, route))
            case TripFinished(trip=trip, mode=mode, duration=duration):
                self.finished_trips_log.append(FinishedTrip(time, trip, mode, duration))
                self.trip_log.append(
                    TripLogEntry(time, trip, None, TRIP_FINISHED, PhaseKind.FINISHED)
                )
            case TripAborted(trip=trip):
                self.finished_trips_log.append(FinishedTrip(time, trip, None, 0.0))
                self.trip_log.append(
                    TripLogEntry(time, trip, None, TRIP_ABORTED, PhaseKind.ABORTED)
                )
            case IntersectionDelayMeasured(intersection=i, delay=delay):
                self.intersection_delays_log.setdefault(i, []).append((time, delay))
            case TripPhaseStarting(trip=trip, request=request, description=description):
                self.trip_log.append(
                    TripLogEntry(time, trip, request, description, ev.phase_kind)
                )
            case PathAmended(path=path):
                self.record_demand(path, sim_map)

    def _record_throughput(
        self, ev: AgentEntersTraversable, time: float, sim_map: SimpleMap
    ) -> None:
        stats = self.thruput_stats
        mode = trip_mode_for_agent(ev.agent)

        match ev.to:
            case OnLane(lane=lane):
                road = sim_map.get_lane(lane).parent
                stats.count_per_road[road] += 1
                if self.record_raw_throughput:
                    stats.raw_per_road.append(ThroughputRecord(time, mode, road))
            case OnTurn(turn=turn):
                stats.count_per_intersection[turn.parent] += 1
                if self.record_raw_throughput:
                    stats.raw_per_intersection.append(
                        ThroughputRecord(time, mode, turn.parent)
                    )
                # Completing the movement means it's no longer demanded
                group = sim_map.get_turn_group(turn)
                if group is not None:
                    stats.demand[group] = stats.demand.get(group, 0) - 1

    def record_demand(self, path: Path, sim_map: SimpleMap) -> None:
        """Count every grouped turn along a newly routed path as demand."""
        for step in path.get_steps():
            if isinstance(step, OnTurn):
                group = sim_map.get_turn_group(step.turn)
                if group is not None:
                    demand = self.thruput_stats.demand
                    demand[group] = demand.get(group, 0) + 1

    # Finished trips

    def finished_trips(self, now: float, mode: TripMode) -> DurationHistogram:
        """Durations of trips of one mode finished by ``now``."""
        distrib = DurationHistogram()
        for record in self.finished_trips_log:
            if record.time > now:
                break
            if record.mode == mode:
                distrib.add(record.duration)
        return distrib

    def all_finished_trips(
        self, now: float
    ) -> tuple[DurationHistogram, int, dict[TripMode, DurationHistogram]]:
        """
        Durations of all trips finished by ``now``.

        Returns:
            Tuple of (all trips except aborted, number of aborted trips,
            trips by mode)
        """
        per_mode = {mode: DurationHistogram() for mode in TripMode.all()}
        all_trips = DurationHistogram()
        num_aborted = 0
        for record in self.finished_trips_log:
            if record.time > now:
                break
            if record.aborted:
                num_aborted += 1
            else:
                all_trips.add(record.duration)
                per_mode[record.mode].add(record.duration)
        return all_trips, num_aborted, per_mode

    def _finished_durations(self, now: float) -> dict[TripID, float]:
        return {
            record.trip: record.duration
            for record in self.finished_trips_log
            if record.time <= now and not record.aborted
        }

    def finished_trip_deltas(self, now: float, baseline: Analytics) -> list[float]:
        """
        Compare trip durations against a baseline run of the same scenario.

        Returns:
            Unordered list with one delta per trip finished in both runs.
            Positive means this run was faster.
        """
        ours = self._finished_durations(now)
        theirs = baseline._finished_durations(now)
        return [theirs[trip] - dt for trip, dt in ours.items() if trip in theirs]

    def finished_trips_dataframe(self) -> pd.DataFrame:
        """Finished and aborted trips as a DataFrame."""
        records = [
            {
                "time": record.time,
                "trip_id": record.trip,
                "mode": record.mode.name.lower() if record.mode else None,
                "duration": record.duration,
                "aborted": record.aborted,
            }
            for record in self.finished_trips_log
        ]
        return pd.DataFrame(
            records, columns=["time", "trip_id", "mode", "duration", "aborted"]
        )

    # Buses

    def _arrivals_per_bus(
        self, now: float, route: BusRouteID
    ) -> dict[CarID, list[tuple[float, BusStopID]]]:
        per_bus: dict[CarID, list[tuple[float, BusStopID]]] = {}
        for arrival in self.bus_arrivals_log:
            if arrival.time > now:
                break
            if arrival.route == route:
                per_bus.setdefault(arrival.bus, []).append((arrival.time, arrival.stop))
        return per_bus

    def bus_arrivals(
        self, now: float, route: BusRouteID
    ) -> dict[BusStopID, DurationHistogram]:
        """Per stop, the distribution of travel time from each bus's previous stop."""
        delay_to_stop: dict[BusStopID, DurationHistogram] = {}
        for stop, (_, delay) in self._consecutive_arrivals(now, route):
            delay_to_stop.setdefault(stop, DurationHistogram()).add(delay)
        return delay_to_stop

    def bus_arrivals_over_time(
        self, now: float, route: BusRouteID
    ) -> dict[BusStopID, list[tuple[float, float]]]:
        """Per stop, (arrival time, delay since the previous stop) samples."""
        delays_to_stop: dict[BusStopID, list[tuple[float, float]]] = {}
        for stop, sample in self._consecutive_arrivals(now, route):
            delays_to_stop.setdefault(stop, []).append(sample)
        return delays_to_stop

    def _consecutive_arrivals(
        self, now: float, route: BusRouteID
    ) -> Iterator[tuple[BusStopID, tuple[float, float]]]:
        for events in self._arrivals_per_bus(now, route).values():
            for (t1, _), (t2, stop) in zip(events, events[1:]):
                yield stop, (t2, t2 - t1)

    def bus_passenger_delays(
        self, now: float, route: BusRouteID
    ) -> dict[BusStopID, DurationHistogram]:
        """
        At ``now``, how long have passengers for a route been waiting?

        A bus arriving at a stop picks up everyone waiting there, so only
        passengers who showed up after the latest arrival are counted.
        Stops with nobody waiting are left out.
        """
        waiting_per_stop: dict[BusStopID, list[float]] = {}
        for passenger in self.bus_passengers_waiting:
            if passenger.time > now:
                break
            if passenger.route == route:
                waiting_per_stop.setdefault(passenger.stop, []).append(passenger.time)

        for arrival in self.bus_arrivals_log:
            if arrival.time > now:
                break
            if arrival.route == route and arrival.stop in waiting_per_stop:
                waiting_per_stop[arrival.stop] = [
                    t for t in waiting_per_stop[arrival.stop] if t > arrival.time
                ]

        delays: dict[BusStopID, DurationHistogram] = {}
        for stop, times in waiting_per_stop.items():
            if not times:
                continue
            distrib = DurationHistogram()
            for t in times:
                distrib.add(now - t)
            delays[stop] = distrib
        return delays

    # Throughput

    def throughput_road(
        self, now: float, road: RoadID, window_size: float
    ) -> dict[TripMode, list[tuple[float, int]]]:
        """
        Per mode, how many agents entered a road over a trailing window.

        TripMode.TRANSIT counts buses, not their passengers.
        """
        return self._throughput(now, road, window_size, self.thruput_stats.raw_per_road)

    def throughput_intersection(
        self, now: float, intersection: IntersectionID, window_size: float
    ) -> dict[TripMode, list[tuple[float, int]]]:
        """Per mode, how many agents crossed an intersection over a trailing window."""
        return self._throughput(
            now, intersection, window_size, self.thruput_stats.raw_per_intersection
        )

    def _throughput(
        self,
        now: float,
        key: Hashable,
        window_size: float,
        data: Sequence[ThroughputRecord],
    ) -> dict[TripMode, list[tuple[float, int]]]:
        pts_per_mode: dict[TripMode, list[tuple[float, int]]] = {}
        windows_per_mode: dict[TripMode, Window] = {}
        for mode in TripMode.all():
            pts_per_mode[mode] = [(START_OF_DAY, 0)]
            windows_per_mode[mode] = Window(window_size)

        for record in data:
            if record.key != key:
                continue
            if record.time > now:
                break
            count = windows_per_mode[record.mode].add(record.time)
            pts_per_mode[record.mode].append((record.time, count))

        for mode, pts in pts_per_mode.items():
            window = windows_per_mode[mode]

            # Show the count dropping off once the window has passed
            t = min(pts[-1][0] + window_size + DROPOFF_EPSILON, now)
            if pts[-1][0] != t:
                pts.append((t, window.count(t)))

            if pts[-1][0] != now:
                pts.append((now, window.count(now)))

        return pts_per_mode

    # Trip phases

    def get_trip_phases(self, trip: TripID, sim_map: SimpleMap) -> list[TripPhase]:
        """Phases of one trip, with the path each phase followed."""
        phases: list[TripPhase] = []
        for entry in self.trip_log:
            if entry.trip != trip:
                continue
            if phases:
                phases[-1].end_time = entry.time
            if entry.kind.is_terminal:
                break
            phases.append(
                TripPhase(
                    start_time=entry.time,
                    end_time=None,
                    path=self._phase_path(entry.request, sim_map),
                    description=entry.description,
                    kind=entry.kind,
                )
            )
        return phases

    def _phase_path(
        self, request: Optional[PathRequest], sim_map: SimpleMap
    ) -> Optional[tuple[float, Path]]:
        if request is None:
            return None
        path = sim_map.pathfind(request)
        if path is None:
            logger.warning(f"Couldn't recompute the path for {request}")
            return None
        return request.start.dist_along, path

    def get_all_trip_phases(self) -> dict[TripID, list[TripPhase]]:
        """Phases of every trip that wasn't aborted. Paths aren't computed."""
        trips: dict[TripID, list[TripPhase]] = {}
        for entry in self.trip_log:
            phases = trips.setdefault(entry.trip, [])
            if phases:
                phases[-1].end_time = entry.time
            if entry.kind == PhaseKind.FINISHED:
                continue
            if entry.kind == PhaseKind.ABORTED:
                del trips[entry.trip]
                continue
            phases.append(
                TripPhase(
                    start_time=entry.time,
                    end_time=None,
                    path=None,
                    description=entry.description,
                    kind=entry.kind,
                )
            )
        return trips

    def analyze_parking_phases(self) -> list[str]:
        """
        Of all completed trips involving parking, what fraction of the
        total time was overhead rather than the main driving part?
        """
        # TODO Border trips drive for longer than they would inside the map,
        # which understates their overhead.
        distrib = PercentageHistogram()
        for phases in self.get_all_trip_phases().values():
            if not phases or phases[-1].end_time is None:
                continue

            driving_time = 0.0
            overhead = 0.0
            for phase in phases:
                if phase.kind == PhaseKind.DRIVING:
                    driving_time += phase.duration
                elif phase.kind.is_overhead:
                    overhead += phase.duration

            # Only interested in trips with both
            if driving_time == 0.0 or overhead == 0.0:
                continue
            distrib.add(overhead / (driving_time + overhead))

        return [
            "Consider all trips with both a walking and driving portion",
            "The portion of the trip spent walking to the parked car, looking for "
            "parking, and walking from the parking space to the final destination "
            "are all overhead.",
            "So what's the distribution of overhead percentages look like? 0% is "
            "ideal -- the entire trip is spent just driving between the original "
            "source and destination.",
            distrib.describe(),
        ]

    # Intersection delays

    def intersection_delays(
        self, intersection: IntersectionID, t1: float, t2: float
    ) -> DurationHistogram:
        """Delays measured at an intersection between t1 and t2 inclusive."""
        delays = DurationHistogram()
        for t, dt in self.intersection_delays_log.get(intersection, []):
            if t < t1:
                continue
            if t > t2:
                break
            delays.add(dt)
        return delays

    def intersection_delays_bucketized(
        self, now: float, intersection: IntersectionID, bucket: float
    ) -> list[tuple[float, DurationHistogram]]:
        """
        Split an intersection's delays into fixed-size time buckets.

        Returns:
            (bucket end time, delays) pairs, starting with an empty sample
            at the start of the day. The last bucket ends at ``now``.
        """
        max_this_bucket = min(now, START_OF_DAY + bucket)
        results = [
            (START_OF_DAY, DurationHistogram()),
            (max_this_bucket, DurationHistogram()),
        ]
        for t, dt in self.intersection_delays_log.get(intersection, []):
            if t > now:
                break
            if t > max_this_bucket:
                max_this_bucket = min(now, max_this_bucket + bucket)
                results.append((max_this_bucket, DurationHistogram()))
            results[-1][1].add(dt)
        return results

    # Summaries and persistence

    def get_summary_metrics(self, now: float) -> dict[str, Any]:
        """
        Compute summary metrics as of ``now``.

        Returns:
            Dictionary of aggregate metrics
        """
        all_trips, num_aborted, per_mode = self.all_finished_trips(now)
        return {
            "total_trips": all_trips.count(),
            "aborted_trips": num_aborted,
            "trip_duration": all_trips.get_summary(),
            "trips_per_mode": {
                mode.name.lower(): distrib.count() for mode, distrib in per_mode.items()
            },
            "busiest_roads": self.thruput_stats.count_per_road.most_common(5),
            "busiest_intersections": self.thruput_stats.count_per_intersection.most_common(5),
            "demand": {
                f"{g.parent}:{g.from_road}->{g.to_road}": n
                for g, n in self.thruput_stats.demand.items()
            },
        }

    def save(self, path: FilePath) -> None:
        """Pickle the recorded run. Pending test expectations aren't kept."""
        snapshot = copy.copy(self)
        snapshot.test_expectations = deque()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            pickle.dump(snapshot, f)

    @classmethod
    def load_for_inspection(cls, path: FilePath) -> Analytics:
        """
        Restore a saved run for passive inspection.

        Further events are ignored; the restored logs are already complete.
        """
        with open(path, "rb") as f:
            analytics = pickle.load(f)
        if not isinstance(analytics, cls):
            raise ValueError(f"{path} doesn't contain saved analytics")
        analytics.record_anything = False
        return analytics

    def reset(self) -> None:
        """
        Forget everything recorded so far.

        The instance records events again afterwards, even if it was
        passive or loaded for inspection.
        """
        self.record_anything = True
        self.thruput_stats = ThruputStats()
        self.test_expectations = deque()
        self.bus_arrivals_log = []
        self.bus_passengers_waiting = []
        self.finished_trips_log = []
        self.trip_log = []
        self.intersection_delays_log = {}
        self._last_time = START_OF_DAY
