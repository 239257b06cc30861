"""
Planner — the agent's decision loop.

Once per tick the planner

    observe → update world model → (queue empty?) plan → pop one action

and keeps its own idea of where the agent is, which way it faces and what it
carries. That bookkeeping is updated the moment an action is handed out,
before the next view confirms it, because the engine only refreshes the map
around the agent after it has acted.

Planning is a small stage machine:

    SAFE → PLANNED → WATER → LUMBERJACK → BOMBERMAN → SAFE ...

Each stage is an ordered list of attempts. An attempt returns a ``Plan`` or
None, the first plan wins and the planner remembers which attempt produced
it. SAFE is tried first on every planning pass; a success anywhere else
hands control back to SAFE for the next pass. If nothing at all can be done
the agent turns on the spot for one tick and starts over.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Callable, Deque, FrozenSet, List, Optional

from treasure_agent.explorer import Explorer, SearchConfig
from treasure_agent.geometry import HOME, Action, Coordinate, Direction
from treasure_agent.search_state import Inventory, SearchState
from treasure_agent.world_model import Mode, Tile, ViewLike, WorldModel

logger = logging.getLogger(__name__)

STAGE_ORDER = [Mode.SAFE, Mode.PLANNED, Mode.WATER, Mode.LUMBERJACK, Mode.BOMBERMAN]

# Collectibles in the order SAFE goes after them
COLLECT_PRIORITY = (Tile.GOLD, Tile.KEY, Tile.DYNAMITE, Tile.AXE)

# Turning in place never changes the world, so it doubles as a no-op
IDLE_ACTION = Action.LEFT


@dataclass
class PlannerConfig:
    """Configuration for the Planner."""
    initial_facing: Direction = Direction.SOUTH   # The agent cannot know its true heading
    stall_ticks: int = 2           # Consecutive SAFE misses before SAFE escalates
    max_candidates: int = 10       # Targets of one kind tried per attempt
    search: SearchConfig = field(default_factory=SearchConfig)


@dataclass
class Plan:
    """A decided sequence of primitive actions."""
    stage: Mode
    actions: List[Action]
    reason: str
    target: Optional[Coordinate] = None
    priority: int = 0              # Index of the attempt that produced it

    def __repr__(self) -> str:
        actions = "".join(a.value for a in self.actions)
        return f"Plan({self.stage.value}, {self.reason}, {actions!r})"


Attempt = Callable[[], Optional[Plan]]


class Planner:
    """
    Turns one view per tick into one action.

    Holds the world model, the agent's believed position, facing and
    inventory, the set of obstacles and items the agent has physically
    cleared, and a queue of already-decided actions.
    """

    def __init__(self, config: Optional[PlannerConfig] = None):
        self.config = config or PlannerConfig()
        self.world = WorldModel()
        self.explorer = Explorer(self.config.search)

        self.position = HOME
        self.facing = self.config.initial_facing
        self.inventory = Inventory()
        self.cleared: FrozenSet[Coordinate] = frozenset()

        self.stage = Mode.SAFE          # Stage of the plan being followed
        self.queue: Deque[Action] = deque()
        self.current_plan: Optional[Plan] = None
        self.water_done = False
        self.ticks = 0
        self._safe_misses = 0

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------

    def act(self, view: ViewLike) -> Action:
        """Take in one view and return the next action."""
        self.world.update(view, self.position, self.facing)
        self.ticks += 1

        if self.queue:
            self._preempt()
        else:
            self._replan()

        action = self.queue.popleft()
        self._apply(action)
        return action

    def start_state(self) -> SearchState:
        """Search root describing the agent as it is right now."""
        return SearchState(self.position, self.facing, self.inventory, self.cleared)

    def _adopt(self, plan: Plan) -> None:
        logger.debug("tick %d: %r", self.ticks, plan)
        self.queue = deque(plan.actions)
        self.current_plan = plan
        self.stage = plan.stage

    def _preempt(self) -> None:
        """Let a higher-priority SAFE attempt replace a queued lower-priority one."""
        plan = self.current_plan
        if plan is None or plan.stage is not Mode.SAFE or plan.priority == 0:
            return
        better = self._first_plan(self._attempts(Mode.SAFE)[:plan.priority])
        if better is not None:
            logger.debug("tick %d: %s preempts %s", self.ticks, better.reason, plan.reason)
            self._adopt(better)

    def _replan(self) -> None:
        """
        One planning pass: walk the stages from SAFE until one yields a plan.

        Every stage is tried at most once per pass, and an escalation that
        jumps ahead still comes back round to the stages it skipped.
        """
        stage = Mode.SAFE
        pending = set(STAGE_ORDER)
        while True:
            if self.water_done:
                pending.discard(Mode.WATER)
            if not pending:
                break
            if stage in pending:
                pending.discard(stage)
                plan = self._first_plan(self._attempts(stage))
                if plan is not None:
                    self._safe_misses = 0
                    if stage is not Mode.WATER:
                        # Any other progress re-arms the water stage
                        self.water_done = False
                    self._adopt(plan)
                    return
                if stage is Mode.SAFE:
                    self._safe_misses += 1
            stage = self._next_stage(stage)

        self._adopt(Plan(Mode.SAFE, [IDLE_ACTION], "idle"))

    def _next_stage(self, stage: Mode) -> Mode:
        if stage is Mode.SAFE and self._safe_misses >= self.config.stall_ticks:
            # Skip the expensive checks once, but never strand the agent
            # afloat without its water stage
            if not self.inventory.on_raft:
                self._safe_misses = 0
                return Mode.LUMBERJACK
        if stage is Mode.PLANNED and self.water_done:
            return Mode.LUMBERJACK
        index = STAGE_ORDER.index(stage)
        return STAGE_ORDER[(index + 1) % len(STAGE_ORDER)]

    @staticmethod
    def _first_plan(attempts: List[Attempt]) -> Optional[Plan]:
        for priority, attempt in enumerate(attempts):
            plan = attempt()
            if plan is not None and plan.actions:
                plan.priority = priority
                return plan
        return None

    def _attempts(self, stage: Mode) -> List[Attempt]:
        if stage is Mode.SAFE:
            return [self._go_home, self._collect, self._explore]
        if stage is Mode.PLANNED:
            return [self._full_solution]
        if stage is Mode.WATER:
            return [self._sail, self._launch_raft, self._fetch_raft, self._give_up_water]
        if stage is Mode.LUMBERJACK:
            return [self._clear_forest]
        return [self._fetch_dynamite]

    # ------------------------------------------------------------------
    # Optimistic bookkeeping
    # ------------------------------------------------------------------

    def _apply(self, action: Action) -> None:
        ahead = self.position.step(self.facing)

        if action is Action.FORWARD:
            here = self.world.tile_at(self.position)
            there = self.world.tile_at(ahead)
            inventory = self.inventory.moved(here, there)
            if there.is_item and ahead not in self.cleared:
                inventory = inventory.collect(there)
                self.cleared = self.cleared | {ahead}
            self.inventory = inventory
            self.position = ahead
        elif action is Action.LEFT:
            self.facing = self.facing.left()
        elif action is Action.RIGHT:
            self.facing = self.facing.right()
        else:
            self.cleared = self.cleared | {ahead}
            if action is Action.CHOP:
                self.inventory = replace(self.inventory, has_raft=True)
            elif action is Action.BLAST:
                self.inventory = replace(self.inventory,
                                         dynamite=self.inventory.dynamite - 1)

    # ------------------------------------------------------------------
    # Helpers shared by the attempts
    # ------------------------------------------------------------------

    def _plan_path(self, stage: Mode, reason: str, goal: Coordinate,
                   mode: Optional[Mode] = None,
                   allowed_blasts: Optional[List[Coordinate]] = None) -> Optional[Plan]:
        path = self.explorer.find_path(self.start_state(), goal, self.world,
                                       mode or stage, allowed_blasts)
        actions = self.explorer.generate_actions(path, self.world)
        if not actions:
            return None
        return Plan(stage, actions, reason, target=goal)

    def _uncollected(self, tile: Tile) -> List[Coordinate]:
        """Known cells holding ``tile`` that the agent has not already emptied, nearest first."""
        return [c for c in self.world.positions_of(tile, near=self.position)
                if c != self.position and c not in self.cleared]

    # ------------------------------------------------------------------
    # SAFE
    # ------------------------------------------------------------------

    def _go_home(self) -> Optional[Plan]:
        if not self.inventory.has_gold:
            return None
        return self._plan_path(Mode.SAFE, "return home", HOME)

    def _collect(self) -> Optional[Plan]:
        if self.inventory.on_raft:
            return None
        for tile in COLLECT_PRIORITY:
            for target in self._uncollected(tile)[:self.config.max_candidates]:
                plan = self._plan_path(Mode.SAFE, f"collect {tile.name.lower()}", target)
                if plan is not None:
                    return plan
        return None

    def _explore(self) -> Optional[Plan]:
        target = self.explorer.find_unexplored_tile(
            self.position, self.world, Mode.SAFE, self.inventory.has_key, self.cleared)
        if target is None:
            return None
        return self._plan_path(Mode.SAFE, "explore", target)

    # ------------------------------------------------------------------
    # PLANNED
    # ------------------------------------------------------------------

    def _full_solution(self) -> Optional[Plan]:
        if self.inventory.has_gold:
            return self.plan_full_solution(HOME)
        for gold in self._uncollected(Tile.GOLD):
            plan = self.plan_full_solution(gold)
            if plan is not None:
                return plan
        return None

    def plan_full_solution(self, target: Coordinate,
                           budget: Optional[int] = None) -> Optional[Plan]:
        """
        Plan the whole way to ``target`` and then home, spending dynamite.

        The route's walls come from the least-dynamite search and are the
        only ones A* may blast. The dynamite counter of the search root is
        the *budget*: a budget below what the agent holds forces the route
        to pick up the difference before the goal, so budgets are tried from
        "collect every known stick first" up to "use what is held". Passing
        ``budget`` tries that single budget only.
        """
        walls = self.explorer.least_dynamite_path(self.position, target,
                                                  self.world, self.cleared)
        if walls is None:
            return None

        if budget is None:
            held = self.inventory.dynamite
            available = len(self._uncollected(Tile.DYNAMITE))
            budgets = range(held - available, held + 1)
        else:
            budgets = range(budget, budget + 1)

        for count in budgets:
            root = SearchState(self.position, self.facing,
                               replace(self.inventory, dynamite=count), self.cleared)
            outbound = self.explorer.find_path(root, target, self.world,
                                               Mode.PLANNED, walls)
            if not outbound:
                continue
            actions = self.explorer.generate_actions(outbound, self.world)
            if target != HOME:
                arrival = outbound[-1].detached()
                home_walls = self.explorer.least_dynamite_path(
                    target, HOME, self.world, arrival.cleared)
                if home_walls is None:
                    return None
                inbound = self.explorer.find_path(arrival, HOME, self.world,
                                                  Mode.PLANNED, home_walls)
                if not inbound:
                    continue
                actions += self.explorer.generate_actions(inbound, self.world)
            if actions:
                logger.debug("full solution via %s with dynamite budget %d", target, count)
                return Plan(Mode.PLANNED, actions, "full solution", target=target)
        return None

    # ------------------------------------------------------------------
    # WATER
    # ------------------------------------------------------------------

    def _sail(self) -> Optional[Plan]:
        if not self.inventory.on_raft:
            return None
        target = self.explorer.find_unexplored_tile(
            self.position, self.world, Mode.WATER, cleared=self.cleared)
        if target is None:
            return None
        return self._plan_path(Mode.WATER, "sail", target)

    def _launch_raft(self) -> Optional[Plan]:
        if not self.inventory.has_raft or self.inventory.on_raft:
            return None
        for water in self.world.positions_of(Tile.WATER, near=self.position)[:self.config.max_candidates]:
            plan = self._plan_path(Mode.WATER, "launch raft", water)
            if plan is not None:
                return plan
        return None

    def _fetch_raft(self) -> Optional[Plan]:
        inv = self.inventory
        if not inv.has_axe or inv.can_float:
            return None
        path = self.explorer.find_closest_tile(Tile.TREE, self.start_state(), self.world)
        if path:
            actions = self.explorer.generate_actions(path, self.world) + [Action.CHOP]
            tree = path[-1].position.step(path[-1].facing)
            return Plan(Mode.WATER, actions, "fetch raft", target=tree)
        for tree in self._uncollected(Tile.TREE)[:self.config.max_candidates]:
            plan = self._plan_path(Mode.WATER, "fetch raft", tree, mode=Mode.LUMBERJACK)
            if plan is not None:
                return plan
        return None

    def _give_up_water(self) -> Optional[Plan]:
        self.water_done = True
        return None

    # ------------------------------------------------------------------
    # LUMBERJACK
    # ------------------------------------------------------------------

    def _clear_forest(self) -> Optional[Plan]:
        if not self.inventory.has_axe:
            return None
        target = self.explorer.find_unexplored_tile(
            self.position, self.world, Mode.LUMBERJACK, self.inventory.has_key, self.cleared)
        if target is None:
            return None
        return self._plan_path(Mode.LUMBERJACK, "chop through", target)

    # ------------------------------------------------------------------
    # BOMBERMAN
    # ------------------------------------------------------------------

    def _fetch_dynamite(self) -> Optional[Plan]:
        held = self.inventory.dynamite
        candidates = []
        for stick in self._uncollected(Tile.DYNAMITE):
            walls = self.explorer.least_dynamite_path(self.position, stick,
                                                      self.world, self.cleared)
            if walls is None or len(walls) > held:
                continue
            candidates.append((len(walls), self.position.manhattan(stick), stick, walls))
        candidates.sort(key=lambda c: (c[0], c[1]))

        for _, _, stick, walls in candidates[:self.config.max_candidates]:
            plan = self._plan_path(Mode.BOMBERMAN, "fetch dynamite", stick,
                                   allowed_blasts=walls)
            if plan is not None:
                return plan
        return None

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> str:
        inv = self.inventory
        held = [name for name, flag in (("gold", inv.has_gold), ("key", inv.has_key),
                                        ("axe", inv.has_axe), ("raft", inv.has_raft),
                                        ("afloat", inv.on_raft)) if flag]
        lines = [
            f"Planner tick {self.ticks} at {self.position} facing {self.facing.symbol}",
            f"  stage:     {self.stage.value}",
            f"  carrying:  {', '.join(held) or 'nothing'} (dynamite {inv.dynamite})",
            f"  queued:    {''.join(a.value for a in self.queue) or '-'}",
        ]
        return "\n".join(lines)
