"""
Episode runner — plays one planner against one local world.

    view → planner.act → engine.step → view ...

until the engine reports the game over (won, drowned or out of steps) or the
runner's own step limit is hit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from treasure_agent.geometry import Action
from treasure_agent.planner import Planner, PlannerConfig
from treasure_agent.world_model import Mode
from treasure_agent.worlds.grid_env import GridWorld

logger = logging.getLogger(__name__)


@dataclass
class EpisodeLog:
    """Record of a single episode."""
    steps: int
    won: bool
    reason: str
    actions: List[Action] = field(default_factory=list)
    stages: List[Mode] = field(default_factory=list)   # Stage of the plan behind each action

    def summary(self) -> str:
        counts = {}
        for stage in self.stages:
            counts[stage] = counts.get(stage, 0) + 1
        lines = [
            "═" * 45,
            "  Episode Result",
            "═" * 45,
            f"  Won:      {'Yes' if self.won else 'No'}",
            f"  Steps:    {self.steps}",
            f"  Reason:   {self.reason or 'N/A'}",
            f"  Actions:  {''.join(a.value for a in self.actions)}",
            "",
            "  Actions per stage:",
        ]
        for stage, count in counts.items():
            lines.append(f"    {stage.value:12s} {count}")
        lines.append("═" * 45)
        return "\n".join(lines)


def run_episode(env: GridWorld, planner: Optional[Planner] = None,
                max_steps: int = 1000, verbose: bool = False) -> EpisodeLog:
    """
    Play ``env`` from its start until the game ends.

    Without a ``planner`` a fresh one is built whose initial heading matches
    the world's, so the planner's map lines up with the drawn one.
    """
    if planner is None:
        planner = Planner(PlannerConfig(initial_facing=env.start_facing))

    view = env.reset()
    log = EpisodeLog(steps=0, won=False, reason="")

    for step in range(max_steps):
        action = planner.act(view)
        log.actions.append(action)
        log.stages.append(planner.current_plan.stage)

        result = env.step(action)
        log.steps = step + 1
        view = result.view

        if verbose:
            print(f"  [step {log.steps:4d}] {action.value}  "
                  f"{planner.current_plan.reason:16s} {result.reason}")

        if result.done:
            log.won = result.won
            log.reason = result.reason
            break
    else:
        log.reason = "step limit"

    logger.info("Episode finished after %d steps: %s", log.steps,
                log.reason or "no result")
    return log
