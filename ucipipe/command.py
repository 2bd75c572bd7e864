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

"""Turn UCI commands into protocol lines and collect their responses."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, Union

from ucipipe.errors import ConcurrentCommandError
from ucipipe.reader import ReadableChannel, ResponseReader

DEFAULT_WINDOW_MS = 10  # quiet time which ends a response without terminator

READYOK = "readyok"
UCIOK = "uciok"
BESTMOVE = "bestmove"
NONE_MOVE = "(none)"
STARTPOS = "startpos"

logger = logging.getLogger(__name__)


class UciCommand(str, Enum):
    """Commands understood by the engine."""

    UCI = "uci"
    IS_READY = "isready"
    SET_OPTION = "setoption"
    NEW_GAME = "ucinewgame"
    BOARD = "d"
    EVAL = "eval"
    POSITION = "position"
    GO = "go"
    STOP = "stop"
    PONDER_HIT = "ponderhit"
    QUIT = "quit"


@dataclass(frozen=True)
class QuiescenceWindow:
    """Response ends after ``duration_ms`` without new output."""

    duration_ms: float = DEFAULT_WINDOW_MS


@dataclass(frozen=True)
class Predicate:
    """Response ends as soon as ``test(text so far)`` is true."""

    test: Callable[[str], bool]
    name: str = "predicate"

    def __call__(self, response: str) -> bool:
        return self.test(response)


EndCondition = Union[QuiescenceWindow, Predicate]


def line_predicate(name: str, pattern: str) -> Predicate:
    """Predicate matching a line of the response against ``pattern``."""
    regex = re.compile(pattern, re.MULTILINE)
    return Predicate(lambda response: regex.search(response) is not None, name)


UCI_END = line_predicate(UCIOK, r"^uciok\s*$")
READY_END = line_predicate(READYOK, r"^readyok\s*$")
# complete line only, the ponder move may follow in a later chunk
BESTMOVE_END = line_predicate(BESTMOVE, r"^bestmove\b[^\n]*\n")


def as_end_condition(end: Union[EndCondition, float, Callable[[str], bool], None]) -> Optional[EndCondition]:
    """Accept a window in ms or a plain callable as shorthand."""
    if end is None or isinstance(end, (QuiescenceWindow, Predicate)):
        return end
    if isinstance(end, bool):
        raise TypeError("end must be a window in ms, a predicate or an EndCondition")
    if isinstance(end, (int, float)):
        return QuiescenceWindow(end)
    if callable(end):
        return Predicate(end)
    raise TypeError(f"unsupported end condition {end!r}")


@dataclass(frozen=True)
class Command:
    """One protocol command with its parameters and how its response ends."""

    name: UciCommand
    params: tuple[str, ...] = ()
    end: Optional[EndCondition] = None

    def message(self) -> str:
        if self.params:
            return f"{self.name.value} {' '.join(self.params)}"
        return self.name.value


class WritableChannel(ReadableChannel, Protocol):
    async def write(self, text: str) -> None: ...


class CommandDispatcher:
    """Send a command and read its response, one command at a time."""

    def __init__(
        self,
        channel: WritableChannel,
        reader: Optional[ResponseReader] = None,
        window_ms: float = DEFAULT_WINDOW_MS,
    ):
        self.channel = channel
        self.reader = reader or ResponseReader(channel)
        self.default_end = QuiescenceWindow(window_ms)
        self._in_flight: Optional[Command] = None

    async def command(
        self,
        name: Union[UciCommand, str],
        params: Iterable[str] = (),
        end: Union[EndCondition, float, Callable[[str], bool], None] = None,
    ) -> Optional[str]:
        """Send ``name params...`` and return the trimmed response or None."""
        return await self.dispatch(Command(UciCommand(name), tuple(params), as_end_condition(end)))

    async def dispatch(self, command: Command) -> Optional[str]:
        if self._in_flight is not None:
            raise ConcurrentCommandError(
                f"{self.channel.name}: cannot send {command.name.value!r} "
                f"while {self._in_flight.name.value!r} waits for its response"
            )
        self._in_flight = command
        try:
            await self.channel.write(command.message())
            end = command.end or self.default_end
            if isinstance(end, Predicate):
                logger.debug("%s waiting for %s", self.channel.name, end.name)
                response: Optional[str] = await self.reader.wait_until(end)
            else:
                response = await self.reader.drain(end.duration_ms)
        finally:
            self._in_flight = None
        response = response.strip() if response else ""
        return response or None
