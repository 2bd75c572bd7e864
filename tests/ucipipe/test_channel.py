# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <http://www.gnu.org/licenses/>.

"""End to end tests against a real engine subprocess (tests/ucipipe/fake_engine.py)."""

import asyncio
import os
import sys
import unittest

import chess

from ucipipe.channel import ProcessChannel
from ucipipe.command import BESTMOVE_END, READY_END, STARTPOS
from ucipipe.engine import SessionState, UciEngine
from ucipipe.errors import SpawnFailure, WriteFailure
from ucipipe.reader import ResponseReader

FAKE_ENGINE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_engine.py")
WINDOW_MS = 100  # generous, the fake engine is a python process


def fake_engine(name: str = "engine") -> UciEngine:
    return UciEngine(sys.executable, args=[FAKE_ENGINE], window_ms=WINDOW_MS, engine_debug_name=name)


class TestProcessChannel(unittest.IsolatedAsyncioTestCase):
    async def test_missing_executable(self):
        with self.assertRaises(SpawnFailure):
            await ProcessChannel.spawn("/nonexistent/engine/binary")

    async def test_poll_returns_buffered_output(self):
        channel = await ProcessChannel.spawn(sys.executable, FAKE_ENGINE)
        self.addAsyncCleanup(channel.terminate, 0)
        await channel.write("isready")
        output = ""
        for _ in range(100):
            output += channel.poll_available()
            if "readyok" in output:
                break
            await asyncio.sleep(0.05)
        self.assertIn("FakeFish 1.0 by ucipipe tests", output)
        self.assertIn("readyok", output)
        self.assertEqual("", channel.poll_available())

    async def test_failing_listener_does_not_stop_reading(self):
        channel = await ProcessChannel.spawn(sys.executable, FAKE_ENGINE)
        self.addAsyncCleanup(channel.terminate, 0)

        def broken_listener(text):
            raise ValueError("cannot parse output")

        channel.add_data_listener(broken_listener)
        await channel.write("isready")
        await asyncio.sleep(0.5)
        channel.remove_data_listener(broken_listener)
        self.assertFalse(channel.exited)
        self.assertIsNone(channel.returncode)
        reader = ResponseReader(channel)
        await channel.write("isready")
        with self.assertRaises(ValueError):
            await asyncio.wait_for(reader.wait_until(broken_listener), timeout=10)
        self.assertFalse(channel.exited)
        await channel.write("isready")
        self.assertIn("readyok", await asyncio.wait_for(reader.wait_until(READY_END), timeout=10))
        self.assertFalse(channel.exited)

    async def test_write_after_exit_fails(self):
        channel = await ProcessChannel.spawn(sys.executable, FAKE_ENGINE)
        await channel.write("quit")
        await asyncio.wait_for(channel.process.wait(), timeout=10)
        with self.assertRaises(WriteFailure):
            await channel.write("isready")
        self.assertEqual(0, await channel.terminate())

    async def test_terminate_kills_engine_ignoring_quit(self):
        channel = await ProcessChannel.spawn(sys.executable, FAKE_ENGINE, "--ignore-quit")
        await channel.write("quit")
        returncode = await channel.terminate(grace=0.2)
        self.assertIsNotNone(returncode)
        self.assertNotEqual(0, returncode)


class TestEngineSession(unittest.IsolatedAsyncioTestCase):
    async def test_full_session(self):
        async with fake_engine() as engine:
            self.assertIs(SessionState.READY, engine.state)
            self.assertEqual("FakeFish", engine.get_name())
            self.assertTrue(await engine.is_ready())
            await engine.set_position({"from": STARTPOS})
            self.assertEqual(chess.STARTING_FEN, await engine.fen())
            move = await engine.best_move({"depth": 1}, end=BESTMOVE_END)
            self.assertEqual("a2a3", move)
            await engine.apply_move(move)
            board = chess.Board()
            board.push_uci("a2a3")
            self.assertEqual(board.fen(), await engine.fen())
        self.assertIs(SessionState.CLOSED, engine.state)
        self.assertIsNotNone(engine.channel.returncode)

    async def test_no_move_in_mate(self):
        fools_mate = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
        async with fake_engine() as engine:
            await engine.set_position({"from": fools_mate})
            self.assertIsNone(await engine.best_move({"depth": 1}, end=BESTMOVE_END))

    async def test_two_sessions_are_isolated(self):
        async with fake_engine("white") as white, fake_engine("black") as black:
            await asyncio.gather(
                white.set_position({"from": STARTPOS, "moves": ["e2e4"]}),
                black.set_position({"from": STARTPOS, "moves": ["d2d4"]}),
            )
            white_fen, black_fen = await asyncio.gather(white.fen(), black.fen())
        self.assertIn("4P3", white_fen)
        self.assertIn("3P4", black_fen)
        self.assertNotEqual(white_fen, black_fen)
