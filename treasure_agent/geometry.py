"""
Grid geometry shared by every other module.

Coordinates are relative to the cell the agent started on: ``x`` grows to
the east and ``y`` grows to the south, so the start cell (home) is (0, 0).
Directions carry their own offsets and turn order, so all of the direction
math lives in small pure methods on the enum.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Tuple


# ---------------------------------------------------------------------------
# Coordinates and directions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinate:
    """An immutable grid position."""
    x: int
    y: int

    def step(self, direction: "Direction") -> "Coordinate":
        """The neighbouring coordinate one cell in ``direction``."""
        dx, dy = direction.delta()
        return Coordinate(self.x + dx, self.y + dy)

    def manhattan(self, other: "Coordinate") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def neighbors(self) -> List["Coordinate"]:
        """The four cardinal neighbours, in N, E, S, W order."""
        return [self.step(d) for d in Direction.all()]

    def __repr__(self) -> str:
        return f"({self.x},{self.y})"


HOME = Coordinate(0, 0)

# One step north, east, south, west
_DELTAS = ((0, -1), (1, 0), (0, 1), (-1, 0))


class Direction(IntEnum):
    """The four headings. The value is the number of clockwise quarter turns from north."""
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    def delta(self) -> Tuple[int, int]:
        """x, y displacement of one step in this direction."""
        return _DELTAS[self.value]

    def left(self) -> "Direction":
        return Direction((self.value - 1) % 4)

    def right(self) -> "Direction":
        return Direction((self.value + 1) % 4)

    @property
    def symbol(self) -> str:
        """Single-letter name used in logs and renders."""
        return "NESW"[self.value]

    @staticmethod
    def all() -> List["Direction"]:
        return [Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST]


# ---------------------------------------------------------------------------
# Primitive actions
# ---------------------------------------------------------------------------

class Action(str, Enum):
    """The primitive actions understood by the game engine."""
    FORWARD = "f"
    LEFT = "l"
    RIGHT = "r"
    UNLOCK = "u"
    CHOP = "c"
    BLAST = "b"

    @classmethod
    def from_symbol(cls, symbol: str) -> "Action":
        """Parse an action byte; the engine accepts upper or lower case."""
        return cls(symbol.lower())

    def __str__(self) -> str:
        return self.value
