"""
Treasure Agent: a planning agent for a partially observable grid game.

Each tick the game shows the agent a 5x5 window around itself. The agent
stitches the windows into a map, and a staged planner built on A* and
breadth-first searches decides how to find the gold, collect tools on the
way (key, axe, dynamite), clear obstacles and bring the gold home.
"""

from treasure_agent.geometry import HOME, Action, Coordinate, Direction
from treasure_agent.world_model import Mode, Tile, WorldModel
from treasure_agent.search_state import Inventory, SearchState
from treasure_agent.explorer import Explorer, SearchConfig
from treasure_agent.planner import Plan, Planner, PlannerConfig

__version__ = "0.1.0"
__all__ = [
    "HOME",
    "Action",
    "Coordinate",
    "Direction",
    "Mode",
    "Tile",
    "WorldModel",
    "Inventory",
    "SearchState",
    "Explorer",
    "SearchConfig",
    "Plan",
    "Planner",
    "PlannerConfig",
]
