"""
Simple road network representation for simulation.

Roads hold an ordered set of typed lanes; turns connect lanes through
intersections and may belong to a coarser turn group. Pathfinding is a
plain breadth-first search, enough for scenarios and tests.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterable, Optional, Union

LaneID = int
RoadID = int
IntersectionID = int


class LaneType(Enum):
    """What a lane is used for."""

    DRIVING = auto()
    PARKING = auto()
    SIDEWALK = auto()
    BIKING = auto()
    BUS = auto()


@dataclass(frozen=True)
class TurnID:
    """A movement from one lane to another through an intersection."""

    parent: IntersectionID
    src: LaneID
    dst: LaneID


@dataclass(frozen=True)
class TurnGroupID:
    """All movements between two roads through one intersection."""

    parent: IntersectionID
    from_road: RoadID
    to_road: RoadID


@dataclass(frozen=True)
class OnLane:
    """Traversing a lane."""

    lane: LaneID

    def length(self, sim_map: SimpleMap) -> float:
        return sim_map.get_lane(self.lane).length

    def as_lane(self) -> LaneID:
        return self.lane


@dataclass(frozen=True)
class OnTurn:
    """Traversing a turn through an intersection."""

    turn: TurnID

    def length(self, sim_map: SimpleMap) -> float:
        return sim_map.get_turn(self.turn).length

    def as_lane(self) -> LaneID:
        raise ValueError(f"{self} is a turn, not a lane")


Traversable = Union[OnLane, OnTurn]


@dataclass(frozen=True)
class Position:
    """A distance along a lane."""

    lane: LaneID
    dist_along: float

    def equiv_pos(self, other_lane: LaneID, sim_map: SimpleMap) -> Position:
        """Project onto a parallel lane, clamped to that lane's length."""
        length = sim_map.get_lane(other_lane).length
        return Position(other_lane, min(self.dist_along, length))


@dataclass(frozen=True)
class PathRequest:
    """A request to route between two positions."""

    start: Position
    end: Position


@dataclass(frozen=True)
class Path:
    """An ordered sequence of steps, alternating lanes and turns."""

    steps: tuple[Traversable, ...]

    def get_steps(self) -> tuple[Traversable, ...]:
        return self.steps

    def __len__(self) -> int:
        return len(self.steps)


@dataclass
class Lane:
    """A single lane of a road."""

    lane_id: LaneID
    parent: RoadID
    lane_type: LaneType
    length: float  # meters


@dataclass
class Road:
    """A road between two intersections, with lanes ordered left to right."""

    road_id: RoadID
    src_i: IntersectionID
    dst_i: IntersectionID
    lanes: list[LaneID] = field(default_factory=list)
    name: str = ""


@dataclass
class Turn:
    """A turn and the group it is reported under."""

    turn_id: TurnID
    length: float
    group: Optional[TurnGroupID] = None


@dataclass
class SimpleMap:
    """
    In-memory road network.

    Provides the lookups routing and analytics need: lane and turn
    lengths, the road a lane belongs to, nearest lane of a type, turn
    groups and pathfinding.
    """

    roads: dict[RoadID, Road] = field(default_factory=dict)
    lanes: dict[LaneID, Lane] = field(default_factory=dict)
    turns: dict[TurnID, Turn] = field(default_factory=dict)

    def add_road(
        self,
        road_id: RoadID,
        src_i: IntersectionID,
        dst_i: IntersectionID,
        lanes: Iterable[tuple[LaneType, float]],
        name: str = "",
    ) -> Road:
        """
        Add a road, assigning lane IDs in the given order.

        Args:
            road_id: ID of the new road
            src_i: Intersection the road starts at
            dst_i: Intersection the road ends at
            lanes: (lane type, length) for each lane, left to right
            name: Display name

        Returns:
            The new Road
        """
        if road_id in self.roads:
            raise ValueError(f"Road {road_id} already exists")

        road = Road(road_id=road_id, src_i=src_i, dst_i=dst_i, name=name)
        for lane_type, length in lanes:
            lane_id = len(self.lanes)
            self.lanes[lane_id] = Lane(lane_id, road_id, lane_type, length)
            road.lanes.append(lane_id)
        self.roads[road_id] = road
        return road

    def add_turn(
        self,
        src: LaneID,
        dst: LaneID,
        length: float = 10.0,
        grouped: bool = True,
    ) -> Turn:
        """
        Connect the end of ``src`` to the start of ``dst``.

        Vehicle turns are grouped by (from road, to road) unless
        ``grouped`` is False; sidewalk movements never are.
        """
        src_road = self.get_road(self.get_lane(src).parent)
        dst_road = self.get_road(self.get_lane(dst).parent)
        if src_road.dst_i != dst_road.src_i:
            raise ValueError(
                f"Lane {src} does not end where lane {dst} starts"
            )

        turn_id = TurnID(parent=src_road.dst_i, src=src, dst=dst)
        group = None
        if grouped and self.get_lane(src).lane_type != LaneType.SIDEWALK:
            group = TurnGroupID(src_road.dst_i, src_road.road_id, dst_road.road_id)

        turn = Turn(turn_id=turn_id, length=length, group=group)
        self.turns[turn_id] = turn
        return turn

    def get_lane(self, lane: LaneID) -> Lane:
        return self.lanes[lane]

    def get_road(self, road: RoadID) -> Road:
        return self.roads[road]

    def get_turn(self, turn: TurnID) -> Turn:
        return self.turns[turn]

    def get_turn_group(self, turn: TurnID) -> Optional[TurnGroupID]:
        """Turn group of a movement, if it has one."""
        found = self.turns.get(turn)
        return found.group if found else None

    def turns_from(self, lane: LaneID) -> list[Turn]:
        return [t for t in self.turns.values() if t.turn_id.src == lane]

    def find_closest_lane(
        self, lane: LaneID, types: Iterable[LaneType]
    ) -> Optional[LaneID]:
        """
        Nearest sibling lane on the same road with one of ``types``.

        Ties break towards the leftmost lane.
        """
        wanted = set(types)
        road = self.get_road(self.get_lane(lane).parent)
        offset = road.lanes.index(lane)

        candidates = [
            (abs(idx - offset), idx, other)
            for idx, other in enumerate(road.lanes)
            if other != lane and self.lanes[other].lane_type in wanted
        ]
        if not candidates:
            return None
        return min(candidates)[2]

    def pathfind(self, req: PathRequest) -> Optional[Path]:
        """
        Breadth-first search from the start lane to the end lane.

        Returns None if the end is unreachable.
        """
        start, end = req.start.lane, req.end.lane
        if start == end and req.start.dist_along <= req.end.dist_along:
            return Path(steps=(OnLane(start),))

        came_from: dict[LaneID, TurnID] = {}
        visited = {start}
        queue: deque[LaneID] = deque([start])
        while queue:
            current = queue.popleft()
            for turn in self.turns_from(current):
                nxt = turn.turn_id.dst
                if nxt in visited:
                    continue
                visited.add(nxt)
                came_from[nxt] = turn.turn_id
                if nxt == end:
                    return self._rebuild_path(start, end, came_from)
                queue.append(nxt)

        return None

    def _rebuild_path(
        self, start: LaneID, end: LaneID, came_from: dict[LaneID, TurnID]
    ) -> Path:
        steps: list[Traversable] = [OnLane(end)]
        lane = end
        while lane != start:
            turn = came_from[lane]
            steps.append(OnTurn(turn))
            lane = turn.src
            steps.append(OnLane(lane))
        steps.reverse()
        return Path(steps=tuple(steps))


def create_demo_map(
    n_roads: int = 3,
    road_length: float = 100.0,
    parking_length: Optional[float] = None,
) -> SimpleMap:
    """
    Create a straight corridor of roads joined end to end.

    Each road has a sidewalk, a parking lane and a driving lane, and
    consecutive driving lanes and sidewalks are connected by turns.

    Args:
        n_roads: Number of roads in the corridor
        road_length: Length of every lane in meters
        parking_length: Length of the parking lanes (defaults to road_length)

    Returns:
        SimpleMap for the corridor
    """
    sim_map = SimpleMap()
    parking_length = road_length if parking_length is None else parking_length

    for r in range(n_roads):
        sim_map.add_road(
            road_id=r,
            src_i=r,
            dst_i=r + 1,
            lanes=[
                (LaneType.SIDEWALK, road_length),
                (LaneType.PARKING, parking_length),
                (LaneType.DRIVING, road_length),
            ],
            name=f"Road {r}",
        )

    for r in range(n_roads - 1):
        sidewalk, _, driving = sim_map.get_road(r).lanes
        next_sidewalk, _, next_driving = sim_map.get_road(r + 1).lanes
        sim_map.add_turn(driving, next_driving)
        sim_map.add_turn(sidewalk, next_sidewalk, length=5.0)

    return sim_map


def driving_lane(sim_map: SimpleMap, road: RoadID) -> LaneID:
    """First driving lane of a road."""
    for lane in sim_map.get_road(road).lanes:
        if sim_map.get_lane(lane).lane_type == LaneType.DRIVING:
            return lane
    raise ValueError(f"Road {road} has no driving lane")
