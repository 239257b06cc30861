"""Tests for the command-line client and its byte protocol."""

import io
import socket
import unittest
from unittest import mock

from treasure_agent.client import format_view, main, parse_args, play, read_view
from treasure_agent.planner import Planner

# 24 cells of a 5x5 window, row by row, centre left out
WINDOW = b"  $  " + b" *   " + b"    " + b"     " + b"  ~  "
ROWS = ["  $  ", " *   ", "  ^  ", "     ", "  ~  "]


class TestProtocol(unittest.TestCase):

    def test_read_view(self):
        self.assertEqual(read_view(io.BytesIO(WINDOW)), ROWS)

    def test_short_read(self):
        with self.assertRaises(EOFError):
            read_view(io.BytesIO(WINDOW[:10]))
        with self.assertRaises(EOFError):
            read_view(io.BytesIO(b""))

    def test_format_view(self):
        text = format_view(ROWS)
        self.assertEqual(text.split("\n"), [
            "+-----+",
            "|  $  |",
            "| *   |",
            "|  ^  |",
            "|     |",
            "|  ~  |",
            "+-----+",
        ])

    def test_play_answers_every_window(self):
        reader = io.BytesIO(WINDOW * 3)
        writer = io.BytesIO()
        planner = Planner()
        with self.assertRaises(EOFError):
            play(reader, writer, planner)
        answer = writer.getvalue().decode("ascii")
        self.assertEqual(len(answer), 3)
        self.assertTrue(set(answer) <= set("flrucb"))
        self.assertEqual(planner.ticks, 3)


class TestCommandLine(unittest.TestCase):

    def test_port_is_required(self):
        with mock.patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                parse_args([])

    def test_defaults(self):
        args = parse_args(["-p", "31415"])
        self.assertEqual(args.port, 31415)
        self.assertEqual(args.host, "localhost")
        self.assertFalse(args.show_view)
        self.assertFalse(args.verbose)

    def test_connection_refused(self):
        with mock.patch("treasure_agent.client.socket.create_connection",
                        side_effect=ConnectionRefusedError("refused")):
            with self.assertLogs("treasure_agent.client", level="ERROR"):
                self.assertEqual(main(["-p", "31415"]), 1)

    def test_lost_connection_exits_with_error(self):
        engine, agent = socket.socketpair()
        try:
            engine.sendall(WINDOW)
            engine.shutdown(socket.SHUT_WR)
            with mock.patch("treasure_agent.client.socket.create_connection",
                            return_value=agent):
                with self.assertLogs("treasure_agent.client", level="ERROR"):
                    self.assertEqual(main(["-p", "31415"]), 1)
            self.assertIn(engine.recv(1), [b"f", b"l", b"r", b"u", b"c", b"b"])
        finally:
            engine.close()
            agent.close()


if __name__ == "__main__":
    unittest.main()
