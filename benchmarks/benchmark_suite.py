"""
Benchmark suite for the treasure agent.

Plays the planner on a set of levels of increasing complexity, measuring:
- Success (gold brought home)
- Episode length (actions used)
- Stage mix (which planner stages produced the actions)
- Computational cost (wall-clock time)
"""

import time
import numpy as np
from dataclasses import dataclass
from typing import Callable

from treasure_agent.planner import Planner, PlannerConfig
from treasure_agent.world_model import Mode
from treasure_agent.worlds import (
    GridConfig, GridWorld, make_corridor, make_key_door_level,
    make_river_level, make_wall_level, run_episode,
)


@dataclass
class BenchmarkLevel:
    """A benchmark level: find the gold and bring it home."""
    name: str
    description: str
    build: Callable[[], GridWorld]
    difficulty: str = "easy"  # easy, medium, hard


def make_vault() -> GridWorld:
    """Gold in a walled vault, dynamite and the key scattered around."""
    return GridWorld(GridConfig(rows=[
        "..............",
        ".  d     k   .",
        ".   .....    .",
        ".   .$ *     .",
        ".   .....    .",
        ".       ^    .",
        "..............",
    ]))


def make_islands() -> GridWorld:
    """Gold on an island, the axe behind a locked door."""
    return GridWorld(GridConfig(rows=[
        "..............",
        ".k    ~~~~~~ .",
        ".     ~ T  ~ .",
        ". T   ~  $ ~ .",
        ".---  ~    ~ .",
        ". a   ~~~~~~ .",
        ".  v         .",
        "..............",
    ], max_steps=2000))


# ---------------------------------------------------------------------------
# Benchmark levels — ordered by difficulty
# ---------------------------------------------------------------------------

BENCHMARKS = [
    BenchmarkLevel("corridor", "gold in sight", make_corridor, "easy"),
    BenchmarkLevel("key_door", "key behind the agent", make_key_door_level, "easy"),
    BenchmarkLevel("wall", "dynamite out of sight", make_wall_level, "medium"),
    BenchmarkLevel("river", "raft on each bank", make_river_level, "medium"),
    BenchmarkLevel("vault", "walled vault", make_vault, "hard"),
    BenchmarkLevel("islands", "door, axe and island", make_islands, "hard"),
]


def run_benchmark(level: BenchmarkLevel, max_steps: int = 2000,
                  verbose: bool = False) -> dict:
    """Run a single benchmark level."""
    env = level.build()
    planner = Planner(PlannerConfig(initial_facing=env.start_facing))

    t0 = time.time()
    log = run_episode(env, planner, max_steps=max_steps, verbose=verbose)
    elapsed = time.time() - t0

    stage_mix = {mode.value: log.stages.count(mode) for mode in Mode}
    return {
        "name": level.name,
        "difficulty": level.difficulty,
        "won": log.won,
        "reason": log.reason,
        "steps": log.steps,
        "stages": stage_mix,
        "time_sec": elapsed,
        "sec_per_step": elapsed / max(log.steps, 1),
    }


def run_all_benchmarks(max_steps: int = 2000, verbose: bool = True):
    """Run all benchmark levels and print a summary table."""
    print("=" * 90)
    print("  Treasure Agent — Benchmark Suite")
    print("=" * 90)
    print()

    results = []
    for level in BENCHMARKS:
        if verbose:
            print(f"  [{level.difficulty:6s}] {level.name:10s} — {level.description}")
        r = run_benchmark(level, max_steps=max_steps)
        results.append(r)
        if verbose:
            status = "✓" if r["won"] else "✗"
            mix = "  ".join(f"{k}={v}" for k, v in r["stages"].items() if v)
            print(f"           {status} steps={r['steps']:4d}  "
                  f"time={r['time_sec']:.2f}s  {mix}  "
                  f"{r['reason']}")
            print()

    # Summary
    solved = [r for r in results if r["won"]]
    print("=" * 90)
    print(f"  Solved: {len(solved)}/{len(results)}")
    if solved:
        print(f"  Mean steps (solved):  {np.mean([r['steps'] for r in solved]):.1f}")
        print(f"  Mean ms per step:     {1000 * np.mean([r['sec_per_step'] for r in results]):.2f}")

    by_difficulty = {}
    for r in results:
        d = r["difficulty"]
        if d not in by_difficulty:
            by_difficulty[d] = {"solved": 0, "total": 0}
        by_difficulty[d]["total"] += 1
        if r["won"]:
            by_difficulty[d]["solved"] += 1

    for d in ["easy", "medium", "hard"]:
        if d in by_difficulty:
            s = by_difficulty[d]
            print(f"    {d:8s}: {s['solved']}/{s['total']}")

    print("=" * 90)

    return results


if __name__ == "__main__":
    run_all_benchmarks()
