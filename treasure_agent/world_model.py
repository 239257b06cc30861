"""
World model — the agent's accumulated knowledge of the map.

The agent never sees the whole world. Each tick the engine sends a 5x5
window centred on the agent and rotated so that the first row is whatever
lies ahead. The world model turns each window back to a fixed north-up
orientation and writes it into an oversized grid, so that a physical cell is
always stored under one coordinate no matter which way the agent was facing
when it saw it.

The grid is a square numpy buffer centred on the start cell:

    maps are at most 80x80 and the agent may start anywhere inside one,
    so a 164x164 buffer centred on the start can never be walked off.

Cells start UNKNOWN and only ever become known through ``update``; an
UNKNOWN symbol arriving in a view is ignored so that a known cell never
reverts.

Besides storage, the model answers the spatial questions the search
algorithms need: what is at a cell, which cells hold a given tile, whether
a cell can be entered in a given planning mode, and whether standing on a
cell would reveal anything new.
"""

from __future__ import annotations

import logging
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from treasure_agent.geometry import Coordinate, Direction

logger = logging.getLogger(__name__)

WORLD_SIZE = 164
VIEW_SIZE = 5
VIEW_RADIUS = VIEW_SIZE // 2


# ---------------------------------------------------------------------------
# Tiles and planning modes
# ---------------------------------------------------------------------------

class Tile(IntEnum):
    """What a cell is known to contain."""
    UNKNOWN = 0
    EMPTY = 1
    BOUNDARY = 2   # Permanent wall / edge of the map
    WALL = 3       # Explodable wall
    DOOR = 4       # Opens with the key
    TREE = 5       # Chopped with the axe, yields a raft
    WATER = 6      # Crossable only on a raft
    GOLD = 7
    KEY = 8
    AXE = 9
    DYNAMITE = 10

    @property
    def symbol(self) -> str:
        """The character the game engine uses for this tile."""
        return _SYMBOLS[self]

    @property
    def is_item(self) -> bool:
        return self in ITEMS

    @classmethod
    def from_symbol(cls, symbol: Union[str, int]) -> "Tile":
        """Parse an engine character (or pass through an existing tile code)."""
        if isinstance(symbol, (int, np.integer)):
            return cls(int(symbol))
        try:
            return _TILES[symbol]
        except KeyError:
            raise ValueError(f"Unknown map symbol {symbol!r}") from None


_SYMBOLS: Dict[Tile, str] = {
    Tile.UNKNOWN: "?",
    Tile.EMPTY: " ",
    Tile.BOUNDARY: ".",
    Tile.WALL: "*",
    Tile.DOOR: "-",
    Tile.TREE: "T",
    Tile.WATER: "~",
    Tile.GOLD: "$",
    Tile.KEY: "k",
    Tile.AXE: "a",
    Tile.DYNAMITE: "d",
}
_TILES: Dict[str, Tile] = {symbol: tile for tile, symbol in _SYMBOLS.items()}

ITEMS: FrozenSet[Tile] = frozenset({Tile.GOLD, Tile.KEY, Tile.AXE, Tile.DYNAMITE})


class Mode(Enum):
    """
    Planning mode of a search run (and stage of the planner).

    The mode decides which cells count as blocked and which obstacle-clearing
    moves a search may use.
    """
    SAFE = "safe"
    PLANNED = "planned"
    WATER = "water"
    LUMBERJACK = "lumberjack"
    BOMBERMAN = "bomberman"

    @property
    def accounts_resources(self) -> bool:
        """Resource-accounting runs track dynamite and demand a non-negative balance at the goal."""
        return self in (Mode.PLANNED, Mode.BOMBERMAN)

    @property
    def can_chop(self) -> bool:
        return self in (Mode.PLANNED, Mode.LUMBERJACK, Mode.BOMBERMAN)

    @property
    def can_blast(self) -> bool:
        return self in (Mode.PLANNED, Mode.BOMBERMAN)

    @property
    def can_sail(self) -> bool:
        """Whether a raft may be launched onto water outside WATER mode."""
        return self in (Mode.PLANNED, Mode.LUMBERJACK, Mode.BOMBERMAN)


_SAFE_BLOCKING = frozenset({
    Tile.WATER, Tile.BOUNDARY, Tile.WALL, Tile.TREE, Tile.DOOR, Tile.UNKNOWN,
})
_LUMBERJACK_BLOCKING = _SAFE_BLOCKING - {Tile.TREE}
_WATER_PASSABLE = frozenset({Tile.WATER, Tile.EMPTY})


# ---------------------------------------------------------------------------
# View orientation
# ---------------------------------------------------------------------------

ViewLike = Union[Sequence[str], Sequence[Sequence[Union[str, int]]], np.ndarray]


def parse_view(view: ViewLike) -> np.ndarray:
    """
    Convert a 5x5 view into a grid of tile codes.

    Rows may be strings or sequences of symbols/tile codes. The centre cell
    is the agent itself and is always read as UNKNOWN.
    """
    if len(view) != VIEW_SIZE or any(len(row) != VIEW_SIZE for row in view):
        raise ValueError(f"View must be {VIEW_SIZE}x{VIEW_SIZE}")
    grid = np.full((VIEW_SIZE, VIEW_SIZE), Tile.UNKNOWN, dtype=np.int8)
    for i, row in enumerate(view):
        for j, symbol in enumerate(row):
            if i == VIEW_RADIUS and j == VIEW_RADIUS:
                continue
            grid[i, j] = Tile.from_symbol(symbol)
    return grid


def rotate_view(view: ViewLike, facing: Direction) -> np.ndarray:
    """Turn an egocentric view (row 0 ahead) into the north-up orientation."""
    return np.rot90(parse_view(view), k=-int(facing))


def unrotate_view(grid: np.ndarray, facing: Direction) -> np.ndarray:
    """Inverse of ``rotate_view``: north-up window to egocentric view."""
    return np.rot90(np.asarray(grid), k=int(facing))


# ---------------------------------------------------------------------------
# World model
# ---------------------------------------------------------------------------

class WorldModel:
    """
    Everything the agent has seen so far, in coordinates relative to its start.

    Only ``update`` writes to the grid. All other methods are read-only
    queries used by the explorer and the planner.
    """

    def __init__(self, size: int = WORLD_SIZE):
        self.size = size
        self._origin = size // 2
        self._grid = np.full((size, size), Tile.UNKNOWN, dtype=np.int8)

        # Explored window in buffer indices (empty until the first update)
        self._min_row = self._min_col = size
        self._max_row = self._max_col = -1

        self._positions_cache: Dict[Tile, List[Coordinate]] = {}
        self.num_updates = 0

    # --- Storage ---------------------------------------------------------

    def _index(self, coord: Coordinate) -> Tuple[int, int]:
        return self._origin + coord.y, self._origin + coord.x

    def _in_buffer(self, row: int, col: int) -> bool:
        return 0 <= row < self.size and 0 <= col < self.size

    def _coord(self, row: int, col: int) -> Coordinate:
        return Coordinate(col - self._origin, row - self._origin)

    def update(self, view: ViewLike, position: Coordinate,
               facing: Direction) -> None:
        """
        Write one sensor window into the map.

        ``position`` and ``facing`` are where the agent believes it is when
        the window was taken. The centre cell is never written.
        """
        canonical = rotate_view(view, facing)
        row0, col0 = self._index(position)

        for i in range(VIEW_SIZE):
            for j in range(VIEW_SIZE):
                if i == VIEW_RADIUS and j == VIEW_RADIUS:
                    continue
                tile = canonical[i, j]
                if tile == Tile.UNKNOWN:
                    continue
                row = row0 + i - VIEW_RADIUS
                col = col0 + j - VIEW_RADIUS
                if not self._in_buffer(row, col):
                    logger.warning("Observed cell %s lies outside the map buffer",
                                   self._coord(row, col))
                    continue
                self._grid[row, col] = tile
                self._min_row = min(self._min_row, row)
                self._max_row = max(self._max_row, row)
                self._min_col = min(self._min_col, col)
                self._max_col = max(self._max_col, col)

        self._positions_cache.clear()
        self.num_updates += 1

    def _explored_window(self) -> Optional[np.ndarray]:
        if self._max_row < 0:
            return None
        return self._grid[self._min_row:self._max_row + 1,
                          self._min_col:self._max_col + 1]

    # --- Lookups ---------------------------------------------------------

    def tile_at(self, coord: Coordinate) -> Tile:
        row, col = self._index(coord)
        if not self._in_buffer(row, col):
            return Tile.UNKNOWN
        return Tile(int(self._grid[row, col]))

    def tile_ahead(self, position: Coordinate, facing: Direction) -> Tile:
        return self.tile_at(position.step(facing))

    def positions_of(self, tile: Tile,
                     near: Optional[Coordinate] = None) -> List[Coordinate]:
        """
        Every known coordinate holding ``tile``.

        Coordinates come in row-major order, or sorted by Manhattan distance
        from ``near`` when it is given.
        """
        if tile not in self._positions_cache:
            window = self._explored_window()
            found: List[Coordinate] = []
            if window is not None:
                rows, cols = np.nonzero(window == tile)
                found = [self._coord(int(r) + self._min_row, int(c) + self._min_col)
                         for r, c in zip(rows, cols)]
            self._positions_cache[tile] = found

        positions = list(self._positions_cache[tile])
        if near is not None:
            positions.sort(key=near.manhattan)
        return positions

    def known_cells(self) -> List[Coordinate]:
        window = self._explored_window()
        if window is None:
            return []
        rows, cols = np.nonzero(window != Tile.UNKNOWN)
        return [self._coord(int(r) + self._min_row, int(c) + self._min_col)
                for r, c in zip(rows, cols)]

    def count_of(self, tile: Tile,
                 excluding: Union[Coordinate, Iterable[Coordinate], None] = None) -> int:
        """Number of known cells holding ``tile``, not counting ``excluding``."""
        if isinstance(excluding, Coordinate):
            excluding = (excluding,)
        skipped = set(excluding or ())
        return sum(1 for c in self.positions_of(tile) if c not in skipped)

    # --- Legality --------------------------------------------------------

    def is_blocked(self, coord: Coordinate, mode: Mode, has_key: bool = False,
                   cleared: Iterable[Coordinate] = frozenset()) -> bool:
        """
        Whether ``coord`` cannot be entered in ``mode``.

        SAFE, PLANNED and BOMBERMAN block water, walls, trees, doors and
        unknown cells (doors open up when the agent holds the key).
        LUMBERJACK additionally lets trees through. WATER blocks everything
        but water and open ground. Anything cleared in the current search
        branch is never blocking.
        """
        if coord in cleared:
            return False
        tile = self.tile_at(coord)
        if mode is Mode.WATER:
            return tile not in _WATER_PASSABLE
        if has_key and tile is Tile.DOOR:
            return False
        blocking = _LUMBERJACK_BLOCKING if mode is Mode.LUMBERJACK else _SAFE_BLOCKING
        return tile in blocking

    def is_exploration_target(self, coord: Coordinate) -> bool:
        """True when standing on ``coord`` would reveal at least one unknown cell."""
        row, col = self._index(coord)
        top, left = row - VIEW_RADIUS, col - VIEW_RADIUS
        bottom, right = row + VIEW_RADIUS + 1, col + VIEW_RADIUS + 1
        if top < 0 or left < 0 or bottom > self.size or right > self.size:
            return True
        return bool((self._grid[top:bottom, left:right] == Tile.UNKNOWN).any())

    # --- Resource planning ----------------------------------------------

    def resource_tour(self, start: Coordinate,
                      cleared: Iterable[Coordinate] = frozenset()) -> int:
        """
        Rough length of a tour through every known, uncollected dynamite.

        Consecutive dynamite cells (in scan order) are chained by Manhattan
        distance, plus the distance from ``start`` to the nearest one.
        """
        dynamites = [c for c in self.positions_of(Tile.DYNAMITE) if c not in cleared]
        if not dynamites:
            return 0
        chain = sum(a.manhattan(b) for a, b in zip(dynamites, dynamites[1:]))
        return chain + min(start.manhattan(c) for c in dynamites)

    # --- Reporting -------------------------------------------------------

    def render(self, position: Optional[Coordinate] = None,
               facing: Optional[Direction] = None) -> str:
        """ASCII rendering of the explored part of the map."""
        if self._max_row < 0:
            return ""
        markers = {
            Direction.NORTH: "^",
            Direction.EAST: ">",
            Direction.SOUTH: "v",
            Direction.WEST: "<",
        }
        agent = self._index(position) if position is not None else None
        lines = []
        for row in range(self._min_row, self._max_row + 1):
            line = ""
            for col in range(self._min_col, self._max_col + 1):
                if (row, col) == agent:
                    line += markers.get(facing, "A")
                else:
                    line += Tile(int(self._grid[row, col])).symbol
            lines.append(line)
        return "\n".join(lines)

    def summary(self) -> str:
        """Human-readable summary of what is known."""
        lines = [
            "═" * 40,
            "  World Model Summary",
            "═" * 40,
            f"  Updates:      {self.num_updates}",
            f"  Known cells:  {len(self.known_cells())}",
        ]
        for tile in (Tile.GOLD, Tile.KEY, Tile.AXE, Tile.DYNAMITE,
                     Tile.TREE, Tile.WATER, Tile.WALL, Tile.DOOR):
            count = self.count_of(tile)
            if count:
                lines.append(f"  {tile.name.lower():12s}  {count}")
        lines.append("═" * 40)
        return "\n".join(lines)
