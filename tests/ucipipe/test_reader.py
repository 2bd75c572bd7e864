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

import asyncio
import unittest

from fakes import FakeChannel

from ucipipe.command import READY_END
from ucipipe.errors import ConcurrentCommandError, UnexpectedTermination
from ucipipe.reader import ResponseReader


def broken_predicate(response: str) -> bool:
    raise ValueError("cannot parse response")


class TestDrain(unittest.IsolatedAsyncioTestCase):
    async def test_drain_collects_until_a_quiet_window(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        channel.emit("  info depth 1\n")
        channel.emit_later(0.075, "bestmove e2e4\n\n")
        result = await reader.drain(50)
        self.assertEqual("info depth 1\nbestmove e2e4", result)

    async def test_drain_without_output_is_absent(self):
        reader = ResponseReader(FakeChannel())
        self.assertIsNone(await reader.drain(5))

    async def test_drain_of_whitespace_is_absent(self):
        channel = FakeChannel()
        channel.emit(" \n\n ")
        self.assertIsNone(await ResponseReader(channel).drain(5))

    async def test_drain_result_is_trimmed(self):
        channel = FakeChannel()
        channel.emit("\n readyok \n")
        result = await ResponseReader(channel).drain(5)
        self.assertEqual("readyok", result)
        self.assertEqual(result, result.strip())

    async def test_drain_after_exit_returns_what_is_left(self):
        channel = FakeChannel(banner="bye\n")
        channel.finish()
        self.assertEqual("bye", await ResponseReader(channel).drain(5))


class TestWaitUntil(unittest.IsolatedAsyncioTestCase):
    async def test_predicate_sees_accumulated_chunks(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        channel.emit_later(0.01, "read")
        channel.emit_later(0.02, "yok\n")
        result = await reader.wait_until(READY_END)
        self.assertEqual("readyok\n", result)

    async def test_buffered_output_counts(self):
        channel = FakeChannel(banner="readyok\n")
        result = await ResponseReader(channel).wait_until(READY_END)
        self.assertEqual("readyok\n", result)

    async def test_later_output_stays_buffered(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        channel.emit_later(0.01, "readyok\n")
        channel.emit_later(0.05, "info string later\n")
        await reader.wait_until(READY_END)
        await asyncio.sleep(0.08)
        self.assertEqual("info string later\n", channel.poll_available())

    async def test_listeners_detached_after_match(self):
        channel = FakeChannel()
        channel.emit_later(0.01, "readyok\n")
        await ResponseReader(channel).wait_until(READY_END)
        self.assertEqual([], channel._data_listeners)
        self.assertEqual([], channel._exit_listeners)

    async def test_exit_while_waiting_fails(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        channel.emit_later(0.01, "info string almost\n")
        asyncio.get_running_loop().call_later(0.02, channel.finish)
        with self.assertRaises(UnexpectedTermination):
            await reader.wait_until(READY_END)
        self.assertEqual([], channel._data_listeners)
        self.assertEqual([], channel._exit_listeners)

    async def test_stream_error_is_the_cause(self):
        channel = FakeChannel()
        error = OSError("pipe broke")
        asyncio.get_running_loop().call_later(0.01, channel.finish, error)
        with self.assertRaises(UnexpectedTermination) as cm:
            await ResponseReader(channel).wait_until(READY_END)
        self.assertIs(error, cm.exception.__cause__)

    async def test_already_exited_fails_at_once(self):
        channel = FakeChannel()
        channel.finish()
        with self.assertRaises(UnexpectedTermination):
            await ResponseReader(channel).wait_until(READY_END)

    async def test_external_timeout_detaches_listeners(self):
        channel = FakeChannel()
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(ResponseReader(channel).wait_until(READY_END), timeout=0.05)
        self.assertEqual([], channel._data_listeners)
        self.assertEqual([], channel._exit_listeners)

    async def test_raising_predicate_on_buffered_output_detaches_listeners(self):
        channel = FakeChannel(banner="FakeFish 1.0\n")
        with self.assertRaises(ValueError):
            await ResponseReader(channel).wait_until(broken_predicate)
        self.assertEqual([], channel._data_listeners)
        self.assertEqual([], channel._exit_listeners)
        channel.emit("readyok\n")
        self.assertEqual("readyok\n", channel.poll_available())

    async def test_raising_predicate_on_streamed_output(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        channel.emit_later(0.01, "readyok\n")
        with self.assertRaises(ValueError):
            await reader.wait_until(broken_predicate)
        self.assertFalse(channel.exited)
        self.assertFalse(reader.reading)
        self.assertEqual([], channel._data_listeners)
        channel.emit("readyok\n")
        self.assertEqual("readyok\n", await reader.wait_until(READY_END))


class TestExclusiveReads(unittest.IsolatedAsyncioTestCase):
    async def test_second_read_is_rejected(self):
        channel = FakeChannel()
        reader = ResponseReader(channel)
        pending = asyncio.ensure_future(reader.wait_until(READY_END))
        await asyncio.sleep(0)
        self.assertTrue(reader.reading)
        with self.assertRaises(ConcurrentCommandError):
            await reader.drain(5)
        channel.emit("readyok\n")
        self.assertEqual("readyok\n", await pending)
        self.assertFalse(reader.reading)
