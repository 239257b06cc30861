"""Tests for the planner's stage machine and bookkeeping."""

import unittest
from collections import deque

from treasure_agent.geometry import HOME, Action, Coordinate, Direction
from treasure_agent.planner import IDLE_ACTION, Plan, Planner, PlannerConfig
from treasure_agent.search_state import Inventory
from treasure_agent.world_model import Mode, Tile
from treasure_agent.worlds.grid_env import (
    GridConfig, GridWorld, make_corridor, make_wall_level,
)

OPEN_ROOM = [
    ".........",
    ".       .",
    ".       .",
    ".   ^   .",
    ".       .",
    ".       .",
    ".........",
]


def revealed_planner(env):
    planner = Planner(PlannerConfig(initial_facing=env.start_facing))
    env.reveal(planner.world)
    return planner


class TestActing(unittest.TestCase):

    def test_first_tick_on_corridor(self):
        env = make_corridor()
        planner = Planner(PlannerConfig(initial_facing=env.start_facing))
        action = planner.act(env.view())
        self.assertIs(action, Action.FORWARD)
        self.assertEqual(planner.current_plan.reason, "collect gold")
        self.assertEqual(planner.current_plan.target, Coordinate(1, 0))

        # Bookkeeping moves ahead of the next view
        self.assertEqual(planner.position, Coordinate(1, 0))
        self.assertTrue(planner.inventory.has_gold)
        self.assertIn(Coordinate(1, 0), planner.cleared)
        self.assertEqual(planner.ticks, 1)

    def test_idles_when_nothing_left(self):
        env = GridWorld(GridConfig(rows=[
            ".....",
            ".   .",
            ". ^ .",
            ".   .",
            ".....",
        ]))
        planner = Planner(PlannerConfig(initial_facing=env.start_facing))
        view = env.view()
        reasons = []
        for _ in range(60):
            action = planner.act(view)
            reasons.append(planner.current_plan.reason)
            if planner.current_plan.reason == "idle":
                self.assertIs(action, IDLE_ACTION)
            view = env.step(action).view
        self.assertIn("idle", reasons)
        self.assertEqual(reasons[-1], "idle")
        self.assertIs(planner.stage, Mode.SAFE)
        self.assertTrue(planner.water_done)


class TestPreemption(unittest.TestCase):

    def setUp(self):
        self.env = GridWorld(GridConfig(rows=OPEN_ROOM))
        self.planner = revealed_planner(self.env)
        self.planner.position = Coordinate(2, 0)
        self.planner.facing = Direction.EAST
        self.planner.inventory = Inventory(has_gold=True)
        self.view = self.env.view_at((3, 6), Direction.EAST)

    def test_going_home_preempts_collecting(self):
        queued = [Action.FORWARD, Action.FORWARD, Action.FORWARD]
        self.planner.queue = deque(queued)
        self.planner.current_plan = Plan(Mode.SAFE, queued, "collect key", priority=1)

        action = self.planner.act(self.view)
        self.assertIs(action, Action.LEFT)
        self.assertEqual(self.planner.current_plan.reason, "return home")
        self.assertEqual(list(self.planner.queue),
                         [Action.LEFT, Action.FORWARD, Action.FORWARD])

    def test_top_priority_plan_is_kept(self):
        queued = [Action.RIGHT, Action.RIGHT]
        self.planner.queue = deque(queued)
        self.planner.current_plan = Plan(Mode.SAFE, queued, "return home", priority=0)
        self.assertIs(self.planner.act(self.view), Action.RIGHT)
        self.assertEqual(list(self.planner.queue), [Action.RIGHT])

    def test_other_stages_are_not_preempted(self):
        queued = [Action.RIGHT, Action.RIGHT]
        self.planner.queue = deque(queued)
        self.planner.current_plan = Plan(Mode.PLANNED, queued, "full solution")
        self.assertIs(self.planner.act(self.view), Action.RIGHT)
        self.assertEqual(self.planner.current_plan.reason, "full solution")


class TestStageMachine(unittest.TestCase):

    def setUp(self):
        self.planner = Planner()

    def test_default_order(self):
        self.assertIs(self.planner._next_stage(Mode.SAFE), Mode.PLANNED)
        self.assertIs(self.planner._next_stage(Mode.PLANNED), Mode.WATER)
        self.assertIs(self.planner._next_stage(Mode.WATER), Mode.LUMBERJACK)
        self.assertIs(self.planner._next_stage(Mode.LUMBERJACK), Mode.BOMBERMAN)
        self.assertIs(self.planner._next_stage(Mode.BOMBERMAN), Mode.SAFE)

    def test_stall_escalates_once(self):
        self.planner._safe_misses = 2
        self.assertIs(self.planner._next_stage(Mode.SAFE), Mode.LUMBERJACK)
        self.assertEqual(self.planner._safe_misses, 0)
        self.assertIs(self.planner._next_stage(Mode.SAFE), Mode.PLANNED)

    def test_no_escalation_afloat(self):
        self.planner._safe_misses = 2
        self.planner.inventory = Inventory(on_raft=True)
        self.assertIs(self.planner._next_stage(Mode.SAFE), Mode.PLANNED)

    def test_water_skipped_when_done(self):
        self.planner.water_done = True
        self.assertIs(self.planner._next_stage(Mode.PLANNED), Mode.LUMBERJACK)

    def test_escalation_still_reaches_water(self):
        """A stalled SAFE stage jumps ahead but the pass still comes round to WATER."""
        env = GridWorld(GridConfig(rows=[
            "...........",
            ".  >~~~  $.",
            "...........",
        ]))
        planner = Planner(PlannerConfig(initial_facing=env.start_facing))
        planner.inventory = Inventory(has_raft=True)
        planner._safe_misses = 1

        action = planner.act(env.view())
        self.assertIs(planner.current_plan.stage, Mode.WATER)
        self.assertEqual(planner.current_plan.reason, "launch raft")
        self.assertIs(action, Action.FORWARD)
        self.assertEqual(planner._safe_misses, 0)

    def test_any_plan_resets_stall_count(self):
        env = make_wall_level()
        planner = revealed_planner(env)
        planner._safe_misses = 1
        planner.cleared = frozenset({Coordinate(-3, 0)})   # Dynamite already gone
        planner.inventory = Inventory(dynamite=1)
        planner._replan()
        self.assertIs(planner.current_plan.stage, Mode.PLANNED)
        self.assertEqual(planner._safe_misses, 0)

    def test_stage_reports_adopted_plan(self):
        env = GridWorld(GridConfig(rows=[
            "...........",
            ".  >~~~  $.",
            "...........",
        ]))
        planner = Planner(PlannerConfig(initial_facing=env.start_facing))
        planner.inventory = Inventory(has_raft=True)
        planner.act(env.view())
        self.assertIs(planner.stage, Mode.WATER)
        self.assertIn("stage:     water", planner.summary())


class TestOptimisticUpdate(unittest.TestCase):

    def setUp(self):
        self.planner = Planner()   # Facing south at home
        self.ahead = Coordinate(0, 1)

    def test_turns(self):
        self.planner._apply(Action.LEFT)
        self.assertIs(self.planner.facing, Direction.EAST)
        self.planner._apply(Action.RIGHT)
        self.planner._apply(Action.RIGHT)
        self.assertIs(self.planner.facing, Direction.WEST)

    def test_chop(self):
        self.planner._apply(Action.CHOP)
        self.assertTrue(self.planner.inventory.has_raft)
        self.assertEqual(self.planner.cleared, {self.ahead})

    def test_blast(self):
        self.planner.inventory = Inventory(dynamite=2)
        self.planner._apply(Action.BLAST)
        self.assertEqual(self.planner.inventory.dynamite, 1)
        self.assertIn(self.ahead, self.planner.cleared)

    def test_unlock(self):
        self.planner._apply(Action.UNLOCK)
        self.assertEqual(self.planner.cleared, {self.ahead})
        self.assertEqual(self.planner.inventory, Inventory())

    def test_forward(self):
        self.planner._apply(Action.FORWARD)
        self.assertEqual(self.planner.position, self.ahead)
        self.assertEqual(self.planner.cleared, frozenset())


class TestFullSolution(unittest.TestCase):

    def setUp(self):
        self.env = make_wall_level()
        self.planner = revealed_planner(self.env)
        self.gold = Coordinate(2, 0)
        self.dynamite = Coordinate(-3, 0)

    def replay(self, actions):
        """Play ``actions`` on the engine, noting the dynamite held at each blast."""
        held_at_blast = []
        result = None
        for action in actions:
            if action is Action.BLAST:
                held_at_blast.append(self.env.inventory.dynamite)
            result = self.env.step(action)
        return result, held_at_blast

    def test_collects_dynamite_before_blasting(self):
        plan = self.planner.plan_full_solution(self.gold)
        self.assertIsNotNone(plan)
        self.assertIs(plan.stage, Mode.PLANNED)
        self.assertEqual(plan.actions.count(Action.BLAST), 1)

        result, held_at_blast = self.replay(plan.actions)
        self.assertEqual(held_at_blast, [1])
        self.assertTrue(result.won)

    def test_budget_once_dynamite_is_held(self):
        self.planner.inventory = Inventory(dynamite=1)
        self.planner.cleared = frozenset({self.dynamite})

        self.assertIsNone(self.planner.plan_full_solution(self.gold, budget=0))
        plan = self.planner.plan_full_solution(self.gold, budget=1)
        self.assertIsNotNone(plan)
        self.assertEqual(plan.actions[0], Action.BLAST)

        self.env.inventory = Inventory(dynamite=1)
        result, _ = self.replay(plan.actions)
        self.assertTrue(result.won)

    def test_nothing_to_plan_without_gold(self):
        self.assertIsNone(Planner()._full_solution())


class TestStageAttempts(unittest.TestCase):

    def test_fetch_dynamite_through_wall(self):
        env = GridWorld(GridConfig(rows=[
            ".......",
            ".>*d  .",
            ".......",
        ]))
        planner = revealed_planner(env)
        self.assertIsNone(planner._fetch_dynamite())

        planner.inventory = Inventory(dynamite=1)
        plan = planner._fetch_dynamite()
        self.assertEqual(plan.reason, "fetch dynamite")
        self.assertIs(plan.stage, Mode.BOMBERMAN)
        self.assertEqual(plan.actions, [Action.BLAST, Action.FORWARD, Action.FORWARD])

    def test_fetch_raft_from_nearest_tree(self):
        env = GridWorld(GridConfig(rows=[
            "......",
            ".T  <.",
            "......",
        ]))
        planner = revealed_planner(env)
        self.assertIsNone(planner._fetch_raft())

        planner.inventory = Inventory(has_axe=True)
        plan = planner._fetch_raft()
        self.assertEqual(plan.actions, [Action.FORWARD, Action.FORWARD, Action.CHOP])
        self.assertEqual(plan.target, Coordinate(-3, 0))

    def test_launch_raft(self):
        env = GridWorld(GridConfig(rows=[
            "......",
            ".~<  .",
            "......",
        ]))
        planner = revealed_planner(env)
        self.assertIsNone(planner._launch_raft())

        planner.inventory = Inventory(has_raft=True)
        plan = planner._launch_raft()
        self.assertEqual(plan.actions, [Action.FORWARD])
        self.assertIs(plan.stage, Mode.WATER)

    def test_water_stage_gives_up(self):
        planner = revealed_planner(GridWorld(GridConfig(rows=OPEN_ROOM)))
        self.assertIsNone(Planner._first_plan(planner._attempts(Mode.WATER)))
        self.assertTrue(planner.water_done)

    def test_forest_needs_axe(self):
        planner = Planner()
        self.assertIsNone(planner._clear_forest())

    def test_summary(self):
        planner = Planner()
        summary = planner.summary()
        self.assertIn("stage", summary)
        self.assertIn("nothing", summary)


if __name__ == "__main__":
    unittest.main()
