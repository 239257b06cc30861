"""
Local stand-ins for the game server.

A small engine that implements the treasure-hunt rules, a handful of
canned levels and an episode runner, so the planner can be exercised
without a network connection.
"""

from treasure_agent.worlds.grid_env import (
    GridConfig, GridWorld, StepResult,
    make_corridor, make_key_door_level, make_river_level, make_wall_level,
)
from treasure_agent.worlds.episode import EpisodeLog, run_episode

__all__ = [
    "GridWorld",
    "GridConfig",
    "StepResult",
    "EpisodeLog",
    "run_episode",
    "make_corridor",
    "make_key_door_level",
    "make_wall_level",
    "make_river_level",
]
