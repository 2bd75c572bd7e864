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

"""Errors raised while talking to an engine process.

All of them derive from the python-chess engine errors, so code that already
catches ``chess.engine.EngineError`` or ``EngineTerminatedError`` also
catches these.
"""

from chess.engine import EngineError, EngineTerminatedError


class SpawnFailure(EngineError):
    """The engine executable could not be started."""


class WriteFailure(EngineTerminatedError):
    """A command could not be written to the engine (pipe closed)."""


class UnexpectedTermination(EngineTerminatedError):
    """The engine exited or its stream failed while we waited for an answer."""


class EngineStateError(EngineError):
    """An operation was requested in a session state that does not allow it."""


class ConcurrentCommandError(EngineStateError):
    """A second command was started while another one still waits for its answer."""
