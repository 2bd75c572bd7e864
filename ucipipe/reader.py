# Copyright (C) 2013-2018 Jean-Francois Romang (jromang@posteo.de)
#                         Shivkumar Shivaji ()
#                         Jürgen Précour (LocutusOfPenguin@posteo.de)
#                         Johan Sjöblom (messier109@gmail.com)
#
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

"""Decide when an engine has finished answering a command.

UCI output carries no framing, so a response is either considered complete
after a quiet polling window (drain) or once the accumulated text satisfies
a caller supplied predicate (wait_until).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Iterator, Optional, Protocol

from ucipipe.channel import DataListener, ExitListener
from ucipipe.errors import ConcurrentCommandError, UnexpectedTermination

logger = logging.getLogger(__name__)


class ReadableChannel(Protocol):
    """What the reader needs from a channel."""

    name: str

    @property
    def exited(self) -> bool: ...

    def poll_available(self) -> str: ...

    def add_data_listener(self, listener: DataListener) -> None: ...

    def remove_data_listener(self, listener: DataListener) -> None: ...

    def add_exit_listener(self, listener: ExitListener) -> None: ...

    def remove_exit_listener(self, listener: ExitListener) -> None: ...


class ResponseReader:
    """Read one response at a time from a channel."""

    def __init__(self, channel: ReadableChannel):
        self.channel = channel
        self._reading = False

    @contextlib.contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._reading:
            raise ConcurrentCommandError(f"{self.channel.name}: another command is still waiting for its response")
        self._reading = True
        try:
            yield
        finally:
            self._reading = False

    @property
    def reading(self) -> bool:
        """True while a read waits for output."""
        return self._reading

    async def drain(self, window_ms: float) -> Optional[str]:
        """Poll every ``window_ms`` until one window passes without output.

        Never fails: a silent or dead engine just gives None.
        """
        with self._exclusive():
            chunks: list[str] = []
            while True:
                await asyncio.sleep(window_ms / 1000.0)
                output = self.channel.poll_available()
                if not output:
                    break
                chunks.append(output)
            result = "".join(chunks).strip()
            return result or None

    async def wait_until(self, predicate: Callable[[str], bool]) -> str:
        """Collect output until ``predicate(text so far)`` is true.

        There is no timeout; wrap the call in asyncio.wait_for() if one is needed.
        Errors raised by ``predicate`` propagate unchanged.

        :raises UnexpectedTermination: the engine exited or its stream failed first
        """
        with self._exclusive():
            done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            chunks: list[str] = []

            def on_data(text: str) -> None:
                if done.done():
                    return
                chunks.append(text)
                try:
                    matched = predicate("".join(chunks))
                except Exception as e:
                    done.set_exception(e)
                    return
                if matched:
                    done.set_result(None)

            def on_exit(error: Optional[BaseException]) -> None:
                if done.done():
                    return
                failure = UnexpectedTermination(f"{self.channel.name} terminated while waiting for a response")
                failure.__cause__ = error
                done.set_exception(failure)

            try:
                self.channel.add_exit_listener(on_exit)
                self.channel.add_data_listener(on_data)
                if self.channel.exited:
                    on_exit(None)
                await done
            finally:
                self.channel.remove_data_listener(on_data)
                self.channel.remove_exit_listener(on_exit)
            return "".join(chunks)
