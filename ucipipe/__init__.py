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

"""Talk to UCI chess engines over their standard input/output."""

from ucipipe.command import BESTMOVE_END, READY_END, UCI_END, Predicate, QuiescenceWindow, UciCommand
from ucipipe.engine import Handshake, SessionState, UciEngine
from ucipipe.errors import (
    ConcurrentCommandError,
    EngineStateError,
    SpawnFailure,
    UnexpectedTermination,
    WriteFailure,
)
from ucipipe.options import TRIGGER, read_option_file

__all__ = [
    "BESTMOVE_END",
    "READY_END",
    "UCI_END",
    "TRIGGER",
    "ConcurrentCommandError",
    "EngineStateError",
    "Handshake",
    "Predicate",
    "QuiescenceWindow",
    "SessionState",
    "SpawnFailure",
    "UciCommand",
    "UciEngine",
    "UnexpectedTermination",
    "WriteFailure",
    "read_option_file",
]
