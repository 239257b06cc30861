"""
Command-line client that plays the game against a running engine.

The engine speaks a bare byte protocol over TCP. Each tick it sends the
24 cells of the 5x5 window around the agent (row by row, the agent's own
centre cell left out) and waits for a single action byte in reply.

Usage:

    treasure-agent -p 31415
    treasure-agent -p 31415 --host gameserver --show-view -v
"""

from __future__ import annotations

import argparse
import logging
import socket
import sys
from typing import BinaryIO, List, Optional, Sequence

from treasure_agent.planner import Planner
from treasure_agent.world_model import VIEW_RADIUS, VIEW_SIZE

logger = logging.getLogger(__name__)

VIEW_BYTES = VIEW_SIZE * VIEW_SIZE - 1


def read_view(stream: BinaryIO) -> List[str]:
    """
    Read one window from the engine.

    Raises ``EOFError`` when the stream ends before a full window arrives.
    """
    data = stream.read(VIEW_BYTES)
    if data is None or len(data) < VIEW_BYTES:
        raise EOFError("engine closed the connection")
    cells = data.decode("latin-1")
    # Put the agent back in the middle
    cells = cells[:VIEW_BYTES // 2] + "^" + cells[VIEW_BYTES // 2:]
    return [cells[i * VIEW_SIZE:(i + 1) * VIEW_SIZE] for i in range(VIEW_SIZE)]


def format_view(view: Sequence[str]) -> str:
    """Bordered printout of a window, with the agent drawn as ``^``."""
    lines = ["+" + "-" * VIEW_SIZE + "+"]
    for i, row in enumerate(view):
        cells = list(row)
        if i == VIEW_RADIUS:
            cells[VIEW_RADIUS] = "^"
        lines.append("|" + "".join(cells) + "|")
    lines.append("+" + "-" * VIEW_SIZE + "+")
    return "\n".join(lines)


def play(reader: BinaryIO, writer: BinaryIO, planner: Planner,
         show_view: bool = False) -> None:
    """Answer windows with actions until the engine hangs up."""
    while True:
        view = read_view(reader)
        if show_view:
            print(format_view(view))
        action = planner.act(view)
        logger.debug("tick %d: %s (%s)", planner.ticks, action.value,
                     planner.current_plan.reason)
        writer.write(action.value.encode("ascii"))
        writer.flush()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="treasure-agent",
        description="Play the treasure-hunt game against a running engine.",
    )
    parser.add_argument("-p", "--port", type=int, required=True,
                        help="engine port")
    parser.add_argument("--host", default="localhost",
                        help="engine host (default: localhost)")
    parser.add_argument("--show-view", action="store_true",
                        help="print every window received")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log planning decisions")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        conn = socket.create_connection((args.host, args.port))
    except OSError as exc:
        logger.error("Could not connect to %s:%d: %s", args.host, args.port, exc)
        return 1

    planner = Planner()
    with conn:
        reader = conn.makefile("rb")
        writer = conn.makefile("wb")
        try:
            play(reader, writer, planner, show_view=args.show_view)
        except (EOFError, OSError) as exc:
            logger.error("Lost connection to %s:%d after %d ticks: %s",
                         args.host, args.port, planner.ticks, exc)
            return 1
        finally:
            reader.close()
            writer.close()


if __name__ == "__main__":
    sys.exit(main())
