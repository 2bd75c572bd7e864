#!/usr/bin/env python3

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

"""Command line front end: analyse with one engine or play a two engine match."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Sequence

from ucipipe.command import BESTMOVE_END, DEFAULT_WINDOW_MS
from ucipipe.demo import analyse, play_match
from ucipipe.engine import DEFAULT_ENGINE_PATH, Handshake, UciEngine
from ucipipe.options import read_option_file

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)7s %(module)10s - %(funcName)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drive UCI chess engines over stdin/stdout.")
    parser.add_argument("--engine", default=DEFAULT_ENGINE_PATH, help="engine executable (default: %(default)s)")
    parser.add_argument("--engine-b", help="second engine for a match (default: same as --engine)")
    parser.add_argument("--options-file", help="ini file with engine options")
    parser.add_argument("--depth", type=int, default=11, help="search depth (default: %(default)s)")
    parser.add_argument(
        "--window", type=float, default=DEFAULT_WINDOW_MS, help="quiet window in ms (default: %(default)s)"
    )
    parser.add_argument(
        "--handshake",
        choices=[h.value for h in Handshake],
        default=Handshake.PREDICATE.value,
        help="how uci/isready answers are awaited (default: %(default)s)",
    )
    parser.add_argument("--log-file", help="log to this file in the logs directory")
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="warning",
        help="logging level (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="mode", required=True)
    sub.add_parser("analyse", help="analyse the start position")
    match = sub.add_parser("match", help="let two engines play each other")
    match.add_argument("--max-plies", type=int, help="stop after this many plies")
    match.add_argument("--step", action="store_true", help="ask before every move")
    match.add_argument("--pgn", help="write the game to this file")
    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], log_level: str) -> None:
    level = getattr(logging, log_level.upper())
    if log_file:
        os.makedirs("logs", exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            "logs" + os.sep + log_file, maxBytes=1 * 1024 * 1024, backupCount=5
        )
    else:
        handler = logging.StreamHandler()
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, handlers=[handler])


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function."""
    args = parse_args(argv)
    setup_logging(args.log_file, args.log_level)
    logger.debug("startup parameters: %s", vars(args))

    options = read_option_file(args.options_file) if args.options_file else {}
    handshake = Handshake(args.handshake)

    if args.mode == "analyse":
        async with UciEngine(args.engine, options, handshake, args.window) as engine:
            await analyse(engine, depth=args.depth)
        return 0

    async with UciEngine(args.engine, options, handshake, args.window, engine_debug_name="white") as white:
        async with UciEngine(
            args.engine_b or args.engine, options, handshake, args.window, engine_debug_name="black"
        ) as black:
            game = await play_match(
                white,
                black,
                depth=args.depth,
                ask=input if args.step else None,
                max_plies=args.max_plies,
                search_end=BESTMOVE_END,
            )
    print(game)
    if args.pgn:
        with open(args.pgn, "w") as pgn_file:
            print(game, file=pgn_file)
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
