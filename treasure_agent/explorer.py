"""
Explorer — the search algorithms the planner runs against the world model.

Four searches, each reused by several planner stages with a different
planning mode deciding which moves are legal:

1. **Frontier discovery** (breadth-first): the nearest reachable cell from
   which the agent would see something new.
2. **Path search** (A*): a cheap-enough chain of states from the agent to a
   goal cell. The heuristic is weighted and may overestimate, trading
   optimality for speed, and the search gives up after a fixed number of
   expansions.
3. **Least-dynamite route** (Dijkstra): which explodable walls the cheapest
   route to a cell has to blast, used as an allow-list that steers A*.
4. **Closest tile** (uniform-cost over states): the nearest spot from which a
   given tile is straight ahead, walking on open ground only.

Finally ``generate_actions`` turns a state chain into primitive actions.

No search raises on failure: an unreachable goal is an empty list (or
None for the single-answer searches), and the planner moves on.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from treasure_agent.geometry import Action, Coordinate
from treasure_agent.search_state import SearchState
from treasure_agent.world_model import Mode, Tile, WorldModel

logger = logging.getLogger(__name__)


@dataclass
class SearchConfig:
    """Tuning knobs shared by the searches."""
    expansion_cutoff: int = 25000   # A* gives up after closing this many nodes
    heuristic_weight: int = 2       # Weight of h relative to g in the A* ranking
    blast_cost: int = 1000          # Cost of entering a wall in the least-dynamite search


class Explorer:
    """
    Stateless search engine over a ``WorldModel``.

    Only the configuration is kept between calls; every search takes the
    world model it should read.
    """

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or SearchConfig()

    # ------------------------------------------------------------------
    # Frontier discovery
    # ------------------------------------------------------------------

    def find_unexplored_tile(self, start: Coordinate, world: WorldModel,
                             mode: Mode = Mode.SAFE, has_key: bool = False,
                             cleared: Iterable[Coordinate] = frozenset()
                             ) -> Optional[Coordinate]:
        """
        Breadth-first search for the nearest exploration target.

        Walks over cells that are not blocked in ``mode`` (WATER mode only
        walks on water) and returns the first cell, other than ``start``,
        whose 5x5 surroundings still hold an unknown cell. None when the
        reachable region is fully explored.
        """
        cleared = frozenset(cleared)
        discovered = {start}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            if current != start and world.is_exploration_target(current):
                return current
            for neighbor in current.neighbors():
                if neighbor in discovered:
                    continue
                if world.is_blocked(neighbor, mode, has_key, cleared):
                    continue
                if mode is Mode.WATER and world.tile_at(neighbor) is not Tile.WATER:
                    continue
                discovered.add(neighbor)
                queue.append(neighbor)
        return None

    # ------------------------------------------------------------------
    # A* path search
    # ------------------------------------------------------------------

    def find_path(self, start: SearchState, goal: Coordinate, world: WorldModel,
                  mode: Mode = Mode.SAFE,
                  allowed_blasts: Optional[Iterable[Coordinate]] = None
                  ) -> List[SearchState]:
        """
        A* from ``start`` to any state standing on ``goal``.

        Returns the chain of states from start to goal, or an empty list
        when the goal cannot be reached or the expansion ceiling is hit.
        ``allowed_blasts`` restricts which walls may be blasted (None means
        any wall).
        """
        weight = self.config.heuristic_weight
        allowed = None if allowed_blasts is None else frozenset(allowed_blasts)

        root = start.detached()
        root.h = root.estimate_to(goal, world, mode)

        counter = itertools.count()
        open_states: Dict[SearchState, SearchState] = {root: root}
        frontier: List[Tuple[int, int, int, SearchState]] = [
            (root.priority(weight), root.h, next(counter), root)
        ]
        closed: Set[SearchState] = set()

        while frontier and len(closed) < self.config.expansion_cutoff:
            _, _, _, current = heapq.heappop(frontier)
            if open_states.get(current) is not current:
                continue  # Superseded by a cheaper copy, or already expanded
            if current.is_goal(goal, mode):
                return current.path()

            del open_states[current]
            closed.add(current)

            for neighbor in current.successors(world, mode, allowed):
                if neighbor in closed:
                    continue
                g = current.g + 1
                known = open_states.get(neighbor)
                if known is not None and g >= known.g:
                    continue
                neighbor.g = g
                neighbor.h = neighbor.estimate_to(goal, world, mode)
                neighbor.parent = current
                open_states[neighbor] = neighbor
                heapq.heappush(frontier, (neighbor.priority(weight), neighbor.h,
                                          next(counter), neighbor))

        if len(closed) >= self.config.expansion_cutoff:
            logger.debug("A* to %s in %s mode hit the expansion ceiling (%d)",
                         goal, mode.value, self.config.expansion_cutoff)
        return []

    # ------------------------------------------------------------------
    # Least-dynamite route
    # ------------------------------------------------------------------

    def least_dynamite_path(self, start: Coordinate, goal: Coordinate,
                            world: WorldModel,
                            cleared: Iterable[Coordinate] = frozenset()
                            ) -> Optional[List[Coordinate]]:
        """
        Walls that must be blasted on the cheapest-in-dynamite route to ``goal``.

        Dijkstra over known cells where an ordinary step costs 1 and entering
        an uncleared explodable wall costs ``blast_cost``, so the route avoids
        walls whenever it can and otherwise blasts as few as possible.
        Boundaries and unknown cells cannot be crossed. Returns the walls in
        start-to-goal order (empty when none is needed), or None when the goal
        is unreachable.
        """
        cleared = frozenset(cleared)
        counter = itertools.count()
        distance: Dict[Coordinate, int] = {start: 0}
        parent: Dict[Coordinate, Coordinate] = {}
        heap: List[Tuple[int, int, Coordinate]] = [(0, next(counter), start)]

        while heap:
            dist, _, cell = heapq.heappop(heap)
            if dist > distance[cell]:
                continue
            if cell == goal:
                return self._walls_on_route(cell, parent, world, cleared)
            for neighbor in cell.neighbors():
                tile = world.tile_at(neighbor)
                if tile in (Tile.UNKNOWN, Tile.BOUNDARY):
                    continue
                cost = 1
                if tile is Tile.WALL and neighbor not in cleared:
                    cost = self.config.blast_cost
                alt = dist + cost
                if alt < distance.get(neighbor, alt + 1):
                    distance[neighbor] = alt
                    parent[neighbor] = cell
                    heapq.heappush(heap, (alt, next(counter), neighbor))
        return None

    @staticmethod
    def _walls_on_route(end: Coordinate, parent: Dict[Coordinate, Coordinate],
                        world: WorldModel,
                        cleared: FrozenSet[Coordinate]) -> List[Coordinate]:
        walls = []
        cell = end
        while cell in parent:
            if world.tile_at(cell) is Tile.WALL and cell not in cleared:
                walls.append(cell)
            cell = parent[cell]
        walls.reverse()
        return walls

    # ------------------------------------------------------------------
    # Closest tile of a type
    # ------------------------------------------------------------------

    def find_closest_tile(self, tile: Tile, start: SearchState,
                          world: WorldModel) -> List[SearchState]:
        """
        Shortest chain of turns and steps that leaves ``tile`` directly ahead.

        Only open ground (or cells already cleared on ``start``'s branch) is
        walked on, so the result never disturbs anything on the way. Every
        action costs the same, so a breadth-first pass over (cell, facing)
        states is a uniform-cost search. Empty list when no such spot is
        reachable.
        """
        root = start.detached()
        seen = {(root.position, root.facing)}
        queue = deque([root])

        while queue:
            current = queue.popleft()
            ahead = current.position.step(current.facing)
            if world.tile_at(ahead) is tile and ahead not in current.cleared:
                return current.path()

            moves = [
                SearchState(current.position, current.facing.left(),
                            current.inventory, current.cleared),
                SearchState(current.position, current.facing.right(),
                            current.inventory, current.cleared),
            ]
            if world.tile_at(ahead) is Tile.EMPTY or ahead in current.cleared:
                moves.append(SearchState(ahead, current.facing,
                                         current.inventory, current.cleared))
            for state in moves:
                if (state.position, state.facing) in seen:
                    continue
                seen.add((state.position, state.facing))
                state.g = current.g + 1
                state.parent = current
                queue.append(state)
        return []

    # ------------------------------------------------------------------
    # Action synthesis
    # ------------------------------------------------------------------

    @staticmethod
    def generate_actions(path: List[SearchState], world: WorldModel) -> List[Action]:
        """
        Primitive actions that walk the agent along ``path``.

        Each adjacent pair of states yields one action: a change of position
        is a forward step, a change of facing is a turn, and anything else is
        the action that clears the tile in front of the earlier state.
        """
        actions: List[Action] = []
        for before, after in zip(path, path[1:]):
            if before.position != after.position:
                actions.append(Action.FORWARD)
            elif before.facing != after.facing:
                if after.facing == before.facing.left():
                    actions.append(Action.LEFT)
                else:
                    actions.append(Action.RIGHT)
            else:
                ahead = world.tile_ahead(before.position, before.facing)
                if ahead is Tile.DOOR:
                    actions.append(Action.UNLOCK)
                elif ahead is Tile.TREE:
                    actions.append(Action.CHOP)
                elif ahead is Tile.WALL:
                    actions.append(Action.BLAST)
        return actions

