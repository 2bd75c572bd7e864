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

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from types import TracebackType
from typing import Any, Mapping, Optional, Sequence

from chess.engine import EngineTerminatedError

from ucipipe.channel import ProcessChannel
from ucipipe.command import (
    BESTMOVE,
    DEFAULT_WINDOW_MS,
    NONE_MOVE,
    READY_END,
    READYOK,
    UCI_END,
    CommandDispatcher,
    EndCondition,
    QuiescenceWindow,
    UciCommand,
)
from ucipipe.errors import EngineStateError
from ucipipe.options import OptionValue, is_unset, merge_options, setoption_params
from ucipipe.params import go_tokens, position_tokens

DEFAULT_ENGINE_PATH = "stockfish"  # looked up on PATH
DEFAULT_SEARCH_WINDOW_MS = 100  # quiet window for go
NULL_MOVE = "0000"

FEN_LABEL = re.compile(r"fen:", re.IGNORECASE)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CREATED = "created"
    PROCESS_SPAWNED = "process spawned"
    HANDSHAKE_SENT = "handshake sent"
    READY = "ready"
    CLOSED = "closed"


class Handshake(Enum):
    """How the start sequence decides that uci and isready were answered."""

    PREDICATE = "predicate"  # wait for uciok / readyok
    QUIESCENCE = "quiescence"  # quiet windows, isready repeated until readyok


def parse_fen(board_text: Optional[str]) -> Optional[str]:
    """Return the FEN of a board dump (the ``Fen: ...`` line) or None."""
    if not board_text:
        return None
    for line in board_text.splitlines():
        if FEN_LABEL.search(line):
            return FEN_LABEL.sub("", line).strip() or None
    return None


def parse_best_move(search_text: Optional[str]) -> Optional[str]:
    """Return the move after ``bestmove`` or None if there is no move.

    Only lines starting with ``bestmove`` count. A missing move, ``(none)``
    and the UCI null move ``0000`` all mean the engine has no move.
    """
    if not search_text:
        return None
    for line in search_text.splitlines():
        tokens = line.split()
        # info lines may mention bestmove in free text
        if tokens and tokens[0] == BESTMOVE:
            move = tokens[1] if len(tokens) > 1 else None
            if move in (None, NONE_MOVE, NULL_MOVE):
                return None
            return move
    return None


class UciEngine:
    """Handle the communication with one UCI engine process.

    Every coroutine sends one command and reads its answer. A session must be
    used by one task at a time: await each call before starting the next one.
    Calls that overlap raise ConcurrentCommandError. Separate engines are
    independent and can be used concurrently.
    """

    def __init__(
        self,
        path: str = DEFAULT_ENGINE_PATH,
        options: Optional[Mapping[str, OptionValue]] = None,
        handshake: Handshake = Handshake.PREDICATE,
        window_ms: float = DEFAULT_WINDOW_MS,
        args: Sequence[str] = (),
        engine_debug_name: str = "engine",
    ):
        self.path = path
        self.args = tuple(args)
        self.options = dict(options or {})
        self.handshake = handshake
        self.window_ms = window_ms
        self.whoami = engine_debug_name
        self.state = SessionState.CREATED
        self.channel: Optional[ProcessChannel] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        self.id: dict[str, str] = {}
        self.engine_name = "NN"

    @classmethod
    async def open(
        cls,
        path: str = DEFAULT_ENGINE_PATH,
        options: Optional[Mapping[str, OptionValue]] = None,
        handshake: Handshake = Handshake.PREDICATE,
        window_ms: float = DEFAULT_WINDOW_MS,
        args: Sequence[str] = (),
        engine_debug_name: str = "engine",
    ) -> UciEngine:
        """Start the engine and run the initialisation sequence."""
        engine = cls(path, options, handshake, window_ms, args, engine_debug_name)
        await engine.open_engine()
        return engine

    async def __aenter__(self) -> UciEngine:
        if self.state is SessionState.CREATED:
            await self.open_engine()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def open_engine(self, channel: Optional[ProcessChannel] = None) -> None:
        """Spawn the process (unless a channel is given) and bring it to READY.

        :raises SpawnFailure: the engine executable could not be started
        """
        if self.state is not SessionState.CREATED:
            raise EngineStateError(f"{self.whoami} was already opened ({self.state.value})")
        self.channel = channel or await ProcessChannel.spawn(self.path, *self.args)
        self.dispatcher = CommandDispatcher(self.channel, window_ms=self.window_ms)
        self.state = SessionState.PROCESS_SPAWNED
        try:
            await self._handshake()
            await self._command(UciCommand.NEW_GAME)
            for name, value in merge_options(self.options).items():
                await self._send_option(name, value)
            trailing = await self.dispatcher.reader.drain(self.window_ms)
            if trailing:
                logger.debug("%s trailing output after setup: %s", self.whoami, trailing)
        except (Exception, asyncio.CancelledError):
            logger.exception("%s failed to initialise %s", self.whoami, self.path)
            await self.channel.terminate(grace=0)
            self.state = SessionState.CLOSED
            raise
        self.state = SessionState.READY
        logger.info("Loaded engine [%s]", self.engine_name)

    async def _handshake(self) -> None:
        assert self.dispatcher is not None
        banner = await self.dispatcher.reader.drain(self.window_ms)
        if banner:
            logger.debug("%s startup banner: %s", self.whoami, banner)
        self._read_id(banner)
        self.state = SessionState.HANDSHAKE_SENT
        if self.handshake is Handshake.PREDICATE:
            self._read_id(await self._command(UciCommand.UCI, end=UCI_END))
            await self._command(UciCommand.IS_READY, end=READY_END)
            return
        self._read_id(await self._command(UciCommand.UCI))
        retries = 0
        while await self._command(UciCommand.IS_READY) != READYOK:
            retries += 1
            logger.debug("%s not ready yet, retry %d", self.whoami, retries)

    def _read_id(self, response: Optional[str]) -> None:
        """Remember ``id name`` / ``id author`` lines."""
        for line in (response or "").splitlines():
            parts = line.strip().split(maxsplit=2)
            if len(parts) == 3 and parts[0] == "id":
                self.id[parts[1]] = parts[2]
        if "name" in self.id:
            self.engine_name = self.id["name"]

    async def _command(
        self, command: UciCommand, params: Sequence[str] = (), end: Optional[EndCondition] = None
    ) -> Optional[str]:
        if self.dispatcher is None:
            raise EngineStateError(f"{self.whoami} has no engine process")
        return await self.dispatcher.command(command, params, end)

    def _require_ready(self) -> None:
        if self.state is not SessionState.READY:
            raise EngineStateError(f"{self.whoami} is not ready ({self.state.value})")

    async def _send_option(self, name: str, value: OptionValue) -> Optional[str]:
        if is_unset(value):
            return None
        return await self._command(UciCommand.SET_OPTION, setoption_params(name, value))

    def loaded_ok(self) -> bool:
        """check if engine was loaded ok"""
        return self.state is SessionState.READY

    def get_name(self) -> str:
        """Get engine name that was reported by engine"""
        return self.engine_name

    async def is_ready(self) -> bool:
        self._require_ready()
        return await self._command(UciCommand.IS_READY) == READYOK

    async def new_game(self) -> Optional[str]:
        self._require_ready()
        return await self._command(UciCommand.NEW_GAME)

    async def board(self) -> Optional[str]:
        """Board dump of the engine (``d``), including its ``Fen:`` line."""
        self._require_ready()
        return await self._command(UciCommand.BOARD)

    async def eval(self) -> Optional[str]:
        """Static evaluation text of the current position."""
        self._require_ready()
        return await self._command(UciCommand.EVAL)

    async def fen(self) -> Optional[str]:
        return parse_fen(await self.board())

    async def set_option(self, name: str, value: OptionValue) -> Optional[str]:
        """Send one option. None and "" are ignored and send nothing."""
        self._require_ready()
        if is_unset(value):
            logger.debug("%s option %s has no value - not sent", self.whoami, name)
        return await self._send_option(name, value)

    async def search(
        self,
        params: Optional[Mapping[str, Any]] = None,
        window_ms: float = DEFAULT_SEARCH_WINDOW_MS,
        end: Optional[EndCondition] = None,
    ) -> Optional[str]:
        """Send ``go`` and return the raw analysis text.

        By default the answer ends after ``window_ms`` without output; pass
        ``end=BESTMOVE_END`` to wait for the bestmove line instead.
        """
        self._require_ready()
        return await self._command(UciCommand.GO, go_tokens(params or {}), end or QuiescenceWindow(window_ms))

    go = search

    async def best_move(
        self,
        params: Optional[Mapping[str, Any]] = None,
        window_ms: float = DEFAULT_SEARCH_WINDOW_MS,
        end: Optional[EndCondition] = None,
    ) -> Optional[str]:
        """Search and return the best move.

        Returns None when the engine answers ``bestmove (none)`` or the null
        move ``0000``.
        """
        return parse_best_move(await self.search(params, window_ms, end))

    async def set_position(self, params: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        self._require_ready()
        return await self._command(UciCommand.POSITION, position_tokens(params or {}))

    position = set_position

    async def apply_move(self, move: Any) -> Optional[str]:
        """Play ``move`` (text or chess.Move) on the engine's current position.

        The engine decides whether the move is legal. Returns None without
        sending anything if the current FEN cannot be read.
        """
        fen = await self.fen()
        if not fen:
            logger.debug("%s no fen - cannot apply move %s", self.whoami, move)
            return None
        return await self.set_position({"from": fen, "moves": [str(move)]})

    move = apply_move

    async def ponder_hit(self) -> Optional[str]:
        self._require_ready()
        return await self._command(UciCommand.PONDER_HIT)

    async def stop(self) -> Optional[str]:
        self._require_ready()
        return await self._command(UciCommand.STOP)

    async def close(self) -> None:
        """Send quit and make sure the process is gone."""
        if self.state is SessionState.CLOSED:
            return
        if self.channel is None:
            self.state = SessionState.CLOSED
            return
        try:
            await self._command(UciCommand.QUIT)
        except EngineTerminatedError:
            logger.debug("%s already terminated when sending quit", self.whoami)
        finally:
            returncode = await self.channel.terminate()
            self.state = SessionState.CLOSED
            logger.debug("%s closed with return code %s", self.whoami, returncode)
