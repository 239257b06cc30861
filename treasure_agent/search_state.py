"""
Search nodes and the rules for moving between them.

A ``SearchState`` is one node of a search tree: where the agent would be,
which way it would face, what it would be carrying and which obstacles it
would already have cleared along this branch. Clearing an obstacle (an
unlocked door, a felled tree, a blasted wall, a picked-up item) is a fact
about one branch of one search, not about the world, so the cleared set
lives in the node and is an immutable ``frozenset``: every branching move
builds a new set instead of touching its parent's.

Two states are the same search node only when position, facing, the full
inventory and the full cleared set all match. Equality and hashing both go
through the same ``key`` tuple; the bookkeeping fields (``g``, ``h`` and
``parent``) are never part of it.

Transition rules (one action = one unit of cost):

    turn left / right      always legal
    forward                target not blocked, items are collected on entry
    unlock                 key held, door ahead, once per door per branch
    chop                   axe held, tree ahead; grants a raft
    blast                  dynamite held, not afloat, wall ahead
                           (optionally restricted to an allow-list)
    board / sail           raft held or already afloat, water ahead
    land                   stepping off water loses the raft
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional, Tuple

from treasure_agent.geometry import Coordinate, Direction
from treasure_agent.world_model import Mode, Tile, WorldModel


@dataclass(frozen=True)
class Inventory:
    """What the agent is carrying. Immutable: every change returns a new inventory."""
    has_gold: bool = False
    has_key: bool = False
    has_axe: bool = False
    has_raft: bool = False
    on_raft: bool = False
    dynamite: int = 0

    def collect(self, tile: Tile) -> "Inventory":
        """Inventory after picking up the item on ``tile`` (unchanged for non-items)."""
        if tile is Tile.GOLD:
            return replace(self, has_gold=True)
        if tile is Tile.KEY:
            return replace(self, has_key=True)
        if tile is Tile.AXE:
            return replace(self, has_axe=True)
        if tile is Tile.DYNAMITE:
            return replace(self, dynamite=self.dynamite + 1)
        return self

    def moved(self, here: Tile, there: Tile) -> "Inventory":
        """
        Raft bookkeeping for one step from a cell holding ``here`` onto ``there``.

        Entering water puts the raft in use. Leaving water onto anything else
        loses it, including a raft chopped while afloat.
        """
        if there is Tile.WATER:
            return replace(self, has_raft=False, on_raft=True)
        if here is Tile.WATER:
            return replace(self, has_raft=False, on_raft=False)
        if self.on_raft:
            return replace(self, on_raft=False)
        return self

    @property
    def can_float(self) -> bool:
        return self.has_raft or self.on_raft


@dataclass(eq=False)
class SearchState:
    """A node in a search over agent states."""
    position: Coordinate
    facing: Direction
    inventory: Inventory = field(default_factory=Inventory)
    cleared: FrozenSet[Coordinate] = frozenset()

    # Search bookkeeping, not part of the node's identity
    g: int = 0
    h: int = 0
    parent: Optional["SearchState"] = None

    def __post_init__(self) -> None:
        if not isinstance(self.cleared, frozenset):
            self.cleared = frozenset(self.cleared)

    @property
    def key(self) -> Tuple[Coordinate, Direction, Inventory, FrozenSet[Coordinate]]:
        return (self.position, self.facing, self.inventory, self.cleared)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchState):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"({self.position.x}, {self.position.y}, {self.facing.symbol})"

    # --- Bookkeeping -----------------------------------------------------

    def priority(self, heuristic_weight: int = 2) -> int:
        """A* ranking value. The heuristic is weighted to favour speed over optimality."""
        return self.g + heuristic_weight * self.h

    def detached(self) -> "SearchState":
        """Same node without search bookkeeping, for starting a new search from it."""
        return SearchState(self.position, self.facing, self.inventory, self.cleared)

    def path(self) -> List["SearchState"]:
        """The chain of states from the search root to this one."""
        chain = [self]
        while chain[-1].parent is not None:
            chain.append(chain[-1].parent)
        chain.reverse()
        return chain

    def estimate_to(self, goal: Coordinate, world: WorldModel, mode: Mode) -> int:
        """
        Heuristic distance to ``goal``.

        Manhattan distance, plus in PLANNED mode a rough tour through every
        known dynamite not yet collected on this branch. Not admissible.
        """
        estimate = self.position.manhattan(goal)
        if mode is Mode.PLANNED:
            estimate += world.resource_tour(self.position, self.cleared)
        return estimate

    def is_goal(self, goal: Coordinate, mode: Mode) -> bool:
        """
        Position matches and, in resource-accounting runs, the dynamite
        balance is not negative. A negative balance means the branch still
        owes dynamite it has not picked up yet.
        """
        if self.position != goal:
            return False
        return not mode.accounts_resources or self.inventory.dynamite >= 0

    # --- Transitions -----------------------------------------------------

    def _derive(self, position: Optional[Coordinate] = None,
                facing: Optional[Direction] = None,
                inventory: Optional[Inventory] = None,
                clear: Optional[Coordinate] = None) -> "SearchState":
        cleared = self.cleared if clear is None else self.cleared | {clear}
        return SearchState(
            self.position if position is None else position,
            self.facing if facing is None else facing,
            self.inventory if inventory is None else inventory,
            cleared,
        )

    def _forward(self, world: WorldModel, ahead: Coordinate,
                 tile: Tile) -> "SearchState":
        inventory = self.inventory.moved(world.tile_at(self.position), tile)
        if tile.is_item and ahead not in self.cleared:
            return self._derive(position=ahead, inventory=inventory.collect(tile),
                                clear=ahead)
        return self._derive(position=ahead, inventory=inventory)

    def successors(self, world: WorldModel, mode: Mode,
                   allowed_blasts: Optional[Iterable[Coordinate]] = None
                   ) -> List["SearchState"]:
        """
        Every state one action away.

        ``allowed_blasts`` restricts which walls may be blasted; None means
        any wall, an empty collection means none.
        """
        inv = self.inventory
        ahead = self.position.step(self.facing)
        tile = world.tile_at(ahead)
        cleared_ahead = ahead in self.cleared

        states = [
            self._derive(facing=self.facing.left()),
            self._derive(facing=self.facing.right()),
        ]

        if mode is Mode.WATER:
            if tile is Tile.WATER:
                if inv.can_float:
                    states.append(self._forward(world, ahead, tile))
            elif not world.is_blocked(ahead, Mode.WATER, cleared=self.cleared):
                states.append(self._forward(world, ahead, tile))
            return states

        if mode.can_chop and inv.has_axe and tile is Tile.TREE and not cleared_ahead:
            states.append(self._derive(inventory=replace(inv, has_raft=True), clear=ahead))
        elif (mode.can_blast and inv.dynamite > 0 and tile is Tile.WALL
                and not cleared_ahead and not inv.on_raft
                and (allowed_blasts is None or ahead in allowed_blasts)):
            states.append(self._derive(inventory=replace(inv, dynamite=inv.dynamite - 1),
                                       clear=ahead))
        elif mode.can_sail and tile is Tile.WATER and inv.can_float:
            states.append(self._forward(world, ahead, tile))
        elif inv.has_key and tile is Tile.DOOR and not cleared_ahead:
            states.append(self._derive(clear=ahead))
        elif not world.is_blocked(ahead, Mode.SAFE, cleared=self.cleared):
            # Obstacles must be cleared explicitly before a search walks through them
            states.append(self._forward(world, ahead, tile))

        return states
