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

"""Example sessions: analyse the start position, let two engines play."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import chess
import chess.pgn

from ucipipe.command import STARTPOS, EndCondition
from ucipipe.engine import UciEngine

QUIT_ANSWERS = ("q", "quit")

Output = Callable[[str], None]
Ask = Callable[[str], str]  # blocking prompt such as input(), run in a worker thread

logger = logging.getLogger(__name__)


async def analyse(engine: UciEngine, depth: int = 11, multipv: int = 12, output: Output = print) -> Optional[str]:
    """Search the start position to ``depth`` and print the info lines."""
    await engine.set_position({"from": STARTPOS})
    await engine.set_option("MultiPV", multipv)
    info = await engine.search({"depth": depth})
    output(f"info\n{info}")
    return info


async def play_match(
    white: UciEngine,
    black: UciEngine,
    depth: int = 11,
    output: Output = print,
    ask: Optional[Ask] = None,
    max_plies: Optional[int] = None,
    search_end: Optional[EndCondition] = None,
) -> chess.pgn.Game:
    """Let ``white`` and ``black`` play from the start position.

    Both engines keep their own copy of the position, every move is applied to
    both. The match ends when the side to move has no move, after
    ``max_plies`` or when ``ask`` returns "q".

    :return: the game as PGN
    """
    game = chess.pgn.Game()
    game.headers["Event"] = "ucipipe match"
    game.headers["White"] = white.get_name()
    game.headers["Black"] = black.get_name()
    node: chess.pgn.GameNode = game

    await white.set_position({"from": STARTPOS})
    await black.set_position({"from": STARTPOS})

    loop = asyncio.get_running_loop()
    engines = (white, black)
    plies = 0
    while max_plies is None or plies < max_plies:
        mover = engines[plies % 2]
        move = await mover.best_move({"depth": depth}, end=search_end)
        if not move:
            logger.debug("%s has no move after %d plies", mover.get_name(), plies)
            break
        await asyncio.gather(white.apply_move(move), black.apply_move(move))
        node = node.add_variation(chess.Move.from_uci(move))
        plies += 1

        board_text = await white.board()
        if not board_text:
            break
        output(f"board\n{board_text}")
        if ask is not None:
            answer = await loop.run_in_executor(None, ask, "next move (q to quit)? ")
            if answer.strip().lower() in QUIT_ANSWERS:
                break

    game.headers["Result"] = node.board().result()
    return game
