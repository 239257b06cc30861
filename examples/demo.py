"""
Demo: the planner plays each canned level on the local engine.

For every level the drawn map is shown, the game is played with per-step
output, and the episode summary plus the agent's reconstructed map are
printed. The reconstructed map is in the agent's own frame, so it matches
the drawn one because the demo tells the planner its true starting heading.
"""

import logging

from treasure_agent.planner import Planner, PlannerConfig
from treasure_agent.worlds import (
    make_corridor, make_key_door_level, make_river_level, make_wall_level, run_episode,
)

LEVELS = [
    ("Level 1: Corridor", make_corridor),
    ("Level 2: Key and Door", make_key_door_level),
    ("Level 3: Explodable Wall", make_wall_level),
    ("Level 4: River", make_river_level),
]


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("  Treasure Agent — Canned Levels")
    print("=" * 60)

    for title, make in LEVELS:
        print(f"\n--- {title} ---\n")
        env = make()
        print("Map:")
        print(env.render())
        print()

        planner = Planner(PlannerConfig(initial_facing=env.start_facing))
        log = run_episode(env, planner, verbose=True)
        print()
        print(log.summary())
        print()
        print("Agent's map:")
        print(planner.world.render(planner.position, planner.facing))


if __name__ == "__main__":
    main()
