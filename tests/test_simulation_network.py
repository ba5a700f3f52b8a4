"""
Tests for src/simulation/network.py module.

Tests cover:
- SimpleMap construction (roads, lanes, turns)
- Turn groups
- find_closest_lane
- Position projection
- Pathfinding
- create_demo_map and driving_lane helpers
"""

import pytest

from src.simulation.network import (
    LaneType,
    OnLane,
    OnTurn,
    Path,
    PathRequest,
    Position,
    SimpleMap,
    TurnGroupID,
    TurnID,
    create_demo_map,
    driving_lane,
)


class TestSimpleMap:
    """Tests for SimpleMap construction and lookups."""

    @pytest.fixture
    def sim_map(self):
        """Two roads joined at intersection 1."""
        sim_map = SimpleMap()
        sim_map.add_road(
            0, 0, 1, [(LaneType.DRIVING, 50.0), (LaneType.PARKING, 40.0)]
        )
        sim_map.add_road(1, 1, 2, [(LaneType.DRIVING, 30.0)])
        return sim_map

    def test_lane_ids_assigned_in_order(self, sim_map):
        """Lanes are numbered across roads in insertion order."""
        assert sim_map.get_road(0).lanes == [0, 1]
        assert sim_map.get_road(1).lanes == [2]
        assert sim_map.get_lane(1).lane_type == LaneType.PARKING
        assert sim_map.get_lane(2).parent == 1

    def test_duplicate_road_rejected(self, sim_map):
        """Road IDs are unique."""
        with pytest.raises(ValueError):
            sim_map.add_road(0, 5, 6, [])

    def test_turn_at_shared_intersection(self, sim_map):
        """A turn's parent is where the source road ends."""
        turn = sim_map.add_turn(0, 2, length=12.0)
        assert turn.turn_id == TurnID(parent=1, src=0, dst=2)
        assert OnTurn(turn.turn_id).length(sim_map) == 12.0

    def test_turn_between_disconnected_lanes_rejected(self, sim_map):
        """Lanes must meet at an intersection."""
        with pytest.raises(ValueError):
            sim_map.add_turn(2, 0)

    def test_turn_groups(self, sim_map):
        """Vehicle turns are grouped by road pair unless disabled."""
        grouped = sim_map.add_turn(0, 2)
        assert sim_map.get_turn_group(grouped.turn_id) == TurnGroupID(1, 0, 1)

        sim_map.turns.clear()
        ungrouped = sim_map.add_turn(0, 2, grouped=False)
        assert sim_map.get_turn_group(ungrouped.turn_id) is None

    def test_unknown_turn_has_no_group(self, sim_map):
        """Looking up a turn that doesn't exist yields no group."""
        assert sim_map.get_turn_group(TurnID(9, 9, 9)) is None

    def test_lane_length(self, sim_map):
        """OnLane length comes from the lane."""
        assert OnLane(0).length(sim_map) == 50.0

    def test_turn_is_not_a_lane(self):
        """Only lane steps can be used as a lane."""
        assert OnLane(4).as_lane() == 4
        with pytest.raises(ValueError):
            OnTurn(TurnID(1, 0, 2)).as_lane()


class TestFindClosestLane:
    """Tests for SimpleMap.find_closest_lane."""

    def test_adjacent_parking_lane(self):
        """The demo map's parking lane is next to the driving lane."""
        sim_map = create_demo_map()
        # Road 0: sidewalk 0, parking 1, driving 2
        assert sim_map.find_closest_lane(2, [LaneType.PARKING]) == 1

    def test_no_matching_lane(self):
        """None when the road has no lane of the type."""
        sim_map = SimpleMap()
        sim_map.add_road(0, 0, 1, [(LaneType.DRIVING, 100.0)])
        assert sim_map.find_closest_lane(0, [LaneType.PARKING]) is None

    def test_ties_break_left(self):
        """Equidistant candidates resolve to the leftmost."""
        sim_map = SimpleMap()
        sim_map.add_road(
            0,
            0,
            1,
            [
                (LaneType.PARKING, 100.0),
                (LaneType.DRIVING, 100.0),
                (LaneType.PARKING, 100.0),
            ],
        )
        assert sim_map.find_closest_lane(1, [LaneType.PARKING]) == 0

    def test_never_returns_itself(self):
        """The query lane is excluded even if its type matches."""
        sim_map = SimpleMap()
        sim_map.add_road(0, 0, 1, [(LaneType.DRIVING, 100.0)])
        assert sim_map.find_closest_lane(0, [LaneType.DRIVING]) is None


class TestPosition:
    """Tests for Position."""

    def test_equiv_pos_keeps_distance(self):
        """Projection onto a parallel lane keeps the distance."""
        sim_map = create_demo_map()
        assert Position(2, 30.0).equiv_pos(1, sim_map) == Position(1, 30.0)

    def test_equiv_pos_clamps(self):
        """Projection onto a shorter lane clamps to its end."""
        sim_map = create_demo_map(parking_length=20.0)
        assert Position(2, 30.0).equiv_pos(1, sim_map) == Position(1, 20.0)


class TestPathfind:
    """Tests for SimpleMap.pathfind."""

    @pytest.fixture
    def sim_map(self):
        return create_demo_map(n_roads=3)

    def test_same_lane(self, sim_map):
        """Start and end on one lane is a single step."""
        req = PathRequest(Position(2, 10.0), Position(2, 50.0))
        assert sim_map.pathfind(req) == Path(steps=(OnLane(2),))

    def test_across_intersections(self, sim_map):
        """Lanes and turns alternate along the path."""
        req = PathRequest(Position(2, 0.0), Position(8, 50.0))
        path = sim_map.pathfind(req)
        assert path.get_steps() == (
            OnLane(2),
            OnTurn(TurnID(1, 2, 5)),
            OnLane(5),
            OnTurn(TurnID(2, 5, 8)),
            OnLane(8),
        )
        assert len(path) == 5

    def test_unreachable(self, sim_map):
        """Roads are one-way, so going back fails."""
        req = PathRequest(Position(8, 0.0), Position(2, 0.0))
        assert sim_map.pathfind(req) is None

    def test_backwards_on_same_lane_unreachable(self, sim_map):
        """Can't drive backwards along a lane."""
        req = PathRequest(Position(2, 50.0), Position(2, 10.0))
        assert sim_map.pathfind(req) is None


class TestDemoMap:
    """Tests for create_demo_map and driving_lane."""

    def test_layout(self):
        """Each road has sidewalk, parking and driving lanes."""
        sim_map = create_demo_map(n_roads=2, road_length=80.0)
        assert len(sim_map.roads) == 2
        assert len(sim_map.lanes) == 6
        # One driving and one sidewalk turn between the two roads
        assert len(sim_map.turns) == 2
        assert sim_map.get_lane(driving_lane(sim_map, 1)).length == 80.0

    def test_sidewalk_turns_ungrouped(self):
        """Pedestrian movements don't count towards demand."""
        sim_map = create_demo_map(n_roads=2)
        assert sim_map.get_turn_group(TurnID(1, 0, 3)) is None
        assert sim_map.get_turn_group(TurnID(1, 2, 5)) == TurnGroupID(1, 0, 1)

    def test_driving_lane_missing(self):
        """A road without a driving lane is an error."""
        sim_map = SimpleMap()
        sim_map.add_road(0, 0, 1, [(LaneType.SIDEWALK, 10.0)])
        with pytest.raises(ValueError):
            driving_lane(sim_map, 0)
