"""
Local game engine for the treasure-hunt world.

The real game runs as a separate server; this module reproduces its rules
closely enough to drive the planner in tests, the demo and the benchmarks:

- The map is a list of strings using the engine's symbols, with the agent
  drawn as ``^ > v <`` (which also gives its starting heading).
- Everything outside the drawn map reads as a boundary.
- The agent sees a 5x5 window rotated so that the first row lies ahead.
- Walking into a wall, boundary, tree or door does nothing; walking onto
  water without a raft drowns the agent.
- Items are picked up by walking onto them. Doors open with the key, trees
  fall to the axe and yield a raft, dynamite blasts walls, trees and doors.
- Stepping off water onto land loses the raft.
- Walking back onto the start cell with the gold wins.

Complexity levels (see the ``make_*`` builders at the bottom):
1. Corridor: gold in plain sight
2. Key and door: fetch the key first
3. Wall: fetch dynamite, then blast through
4. River: chop a tree for a raft on both banks
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import numpy as np

from treasure_agent.geometry import Action, Coordinate, Direction
from treasure_agent.search_state import Inventory
from treasure_agent.world_model import (
    VIEW_RADIUS, VIEW_SIZE, Tile, WorldModel, unrotate_view,
)

AGENT_MARKERS = {
    "^": Direction.NORTH,
    ">": Direction.EAST,
    "v": Direction.SOUTH,
    "<": Direction.WEST,
}

# Tiles a forward step cannot enter
_SOLID = frozenset({Tile.WALL, Tile.BOUNDARY, Tile.TREE, Tile.DOOR})
_BLASTABLE = frozenset({Tile.WALL, Tile.TREE, Tile.DOOR})


@dataclass
class StepResult:
    """What the agent gets back after one action."""
    view: List[str]        # Next egocentric window
    done: bool             # Episode over?
    won: bool = False
    reason: str = ""

    def __repr__(self) -> str:
        return f"Step(done={self.done}, won={self.won}, reason={self.reason!r})"


@dataclass
class GridConfig:
    """Configuration for building a game world."""
    rows: List[str] = field(default_factory=lambda: [".....", ".>$ .", "....."])
    max_steps: int = 500


class GridWorld:
    """
    A treasure-hunt world the agent interacts with through ``step``.

    Positions here are (row, col) indices into the drawn map. The agent
    never sees them; it only receives views.
    """

    def __init__(self, config: GridConfig):
        self.config = config
        self._build_grid()
        self.reset()

    def _build_grid(self) -> None:
        """Parse the drawn map and locate the agent."""
        rows = self.config.rows
        width = max(len(row) for row in rows)
        self._initial = np.full((len(rows), width), Tile.BOUNDARY, dtype=int)
        self.start: Optional[Tuple[int, int]] = None
        self.start_facing = Direction.NORTH

        for r, row in enumerate(rows):
            for c, symbol in enumerate(row):
                if symbol in AGENT_MARKERS:
                    if self.start is not None:
                        raise ValueError("Map contains more than one agent")
                    self.start = (r, c)
                    self.start_facing = AGENT_MARKERS[symbol]
                    self._initial[r, c] = Tile.EMPTY
                else:
                    self._initial[r, c] = Tile.from_symbol(symbol)

        if self.start is None:
            raise ValueError("Map has no agent marker (one of ^ > v <)")

    def reset(self) -> List[str]:
        """Reset the world and return the first view."""
        self.grid = self._initial.copy()
        self.position = self.start
        self.facing = self.start_facing
        self.inventory = Inventory()
        self.steps = 0
        self.done = False
        self.won = False
        return self.view()

    # --- Observation ---------------------------------------------------

    def cell(self, row: int, col: int) -> Tile:
        rows, cols = self.grid.shape
        if 0 <= row < rows and 0 <= col < cols:
            return Tile(int(self.grid[row, col]))
        return Tile.BOUNDARY

    def view_at(self, position: Tuple[int, int], facing: Direction) -> List[str]:
        """The 5x5 window an agent at ``position`` facing ``facing`` would see."""
        r0, c0 = position
        window = np.array([
            [self.cell(r0 + i - VIEW_RADIUS, c0 + j - VIEW_RADIUS)
             for j in range(VIEW_SIZE)]
            for i in range(VIEW_SIZE)
        ])
        egocentric = unrotate_view(window, facing)
        lines = []
        for i in range(VIEW_SIZE):
            line = "".join(Tile(int(v)).symbol for v in egocentric[i])
            if i == VIEW_RADIUS:
                line = line[:VIEW_RADIUS] + "^" + line[VIEW_RADIUS + 1:]
            lines.append(line)
        return lines

    def view(self) -> List[str]:
        return self.view_at(self.position, self.facing)

    def relative(self, position: Tuple[int, int]) -> Coordinate:
        """Map index as a coordinate relative to the start cell."""
        return Coordinate(position[1] - self.start[1], position[0] - self.start[0])

    def reveal(self, world: WorldModel) -> None:
        """
        Write the whole current map into ``world`` (full observability).

        Cells land in the frame of an agent that started here facing
        ``start_facing``, so the model must belong to a planner that uses the
        same initial heading.
        """
        rows, cols = self.grid.shape
        for r in range(rows):
            for c in range(cols):
                world.update(self.view_at((r, c), self.facing),
                             self.relative((r, c)), self.facing)

    # --- Dynamics ------------------------------------------------------

    def step(self, action: Action) -> StepResult:
        """
        Apply one action and return the next view.

        Actions that cannot take effect (blocked moves, unlocking without a
        key and so on) use up a step and change nothing.
        """
        if self.done:
            return self._result("game over")

        self.steps += 1
        reason = ""
        ahead = self._ahead()
        target = self.cell(*ahead)

        if action is Action.FORWARD:
            reason = self._forward(ahead, target)
        elif action is Action.LEFT:
            self.facing = self.facing.left()
        elif action is Action.RIGHT:
            self.facing = self.facing.right()
        elif action is Action.UNLOCK:
            if target is Tile.DOOR and self.inventory.has_key:
                self.grid[ahead] = Tile.EMPTY
        elif action is Action.CHOP:
            if target is Tile.TREE and self.inventory.has_axe:
                self.grid[ahead] = Tile.EMPTY
                self.inventory = replace(self.inventory, has_raft=True)
        elif action is Action.BLAST:
            if target in _BLASTABLE and self.inventory.dynamite > 0:
                self.grid[ahead] = Tile.EMPTY
                self.inventory = replace(self.inventory,
                                         dynamite=self.inventory.dynamite - 1)

        if not self.done and self.steps >= self.config.max_steps:
            self.done = True
            reason = "out of steps"
        return self._result(reason)

    def _ahead(self) -> Tuple[int, int]:
        dx, dy = self.facing.delta()
        return self.position[0] + dy, self.position[1] + dx

    def _forward(self, ahead: Tuple[int, int], target: Tile) -> str:
        if target in _SOLID:
            return ""
        if target is Tile.WATER and not self.inventory.can_float:
            self.position = ahead
            self.done = True
            return "drowned"

        here = self.cell(*self.position)
        self.inventory = self.inventory.moved(here, target)
        if target.is_item:
            self.inventory = self.inventory.collect(target)
            self.grid[ahead] = Tile.EMPTY
        self.position = ahead

        if self.position == self.start and self.inventory.has_gold:
            self.done = True
            self.won = True
            return "returned home with the gold"
        return ""

    def _result(self, reason: str) -> StepResult:
        return StepResult(self.view(), self.done, self.won, reason)

    def render(self) -> str:
        """ASCII rendering of the world for debugging."""
        markers = {d: m for m, d in AGENT_MARKERS.items()}
        lines = []
        rows, cols = self.grid.shape
        for r in range(rows):
            row_str = ""
            for c in range(cols):
                if (r, c) == self.position:
                    row_str += markers[self.facing]
                else:
                    row_str += Tile(int(self.grid[r, c])).symbol
            lines.append(row_str)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pre-built worlds of increasing complexity
# ---------------------------------------------------------------------------

def make_corridor() -> GridWorld:
    """
    Level 1: the gold is one step ahead.
    Solved by: step, turn around, step back.

        .....
        .>$ .
        .....
    """
    return GridWorld(GridConfig(rows=[
        ".....",
        ".>$ .",
        ".....",
    ]))


def make_key_door_level() -> GridWorld:
    """
    Level 2: the gold is behind a door, the key is behind the agent.

        .......
        .k >-$.
        .......
    """
    return GridWorld(GridConfig(rows=[
        ".......",
        ".k >-$.",
        ".......",
    ]))


def make_wall_level() -> GridWorld:
    """
    Level 3: the gold is behind an explodable wall, the only dynamite is
    out of sight behind the agent.

        ........
        .d  >*$.
        ........
    """
    return GridWorld(GridConfig(rows=[
        "........",
        ".d  >*$.",
        "........",
    ]))


def make_river_level() -> GridWorld:
    """
    Level 4: the gold lies across a river. A tree on each bank provides the
    raft for each crossing; the axe lies behind the agent.

        ...........
        .Ta  >~~$T.
        ...........
    """
    return GridWorld(GridConfig(rows=[
        "...........",
        ".Ta  >~~$T.",
        "...........",
    ], max_steps=1000))
