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

"""Translate go/position parameters into protocol tokens.

Every parameter has a declared kind. The kind, not the shape of the value,
decides how the parameter is written:

- FLAG   -> ``key`` when the value is True, nothing otherwise
- LIST   -> ``key v1 v2 ...``, nothing for an empty list
- SCALAR -> ``key value``
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, TypedDict

from ucipipe.command import STARTPOS


class ParamKind(Enum):
    FLAG = "flag"
    LIST = "list"
    SCALAR = "scalar"


GO_PARAMETERS: dict[str, ParamKind] = {
    "searchmoves": ParamKind.LIST,
    "ponder": ParamKind.FLAG,
    "wtime": ParamKind.SCALAR,
    "btime": ParamKind.SCALAR,
    "winc": ParamKind.SCALAR,
    "binc": ParamKind.SCALAR,
    "movestogo": ParamKind.SCALAR,
    "depth": ParamKind.SCALAR,
    "nodes": ParamKind.SCALAR,
    "mate": ParamKind.SCALAR,
    "movetime": ParamKind.SCALAR,
    "infinite": ParamKind.FLAG,
    "perft": ParamKind.SCALAR,
}

POSITION_PARAMETERS: dict[str, ParamKind] = {
    "from": ParamKind.SCALAR,
    "moves": ParamKind.LIST,
}


class GoParams(TypedDict, total=False):
    searchmoves: list[str]
    ponder: bool
    wtime: int
    btime: int
    winc: int
    binc: int
    movestogo: int
    depth: int
    nodes: int
    mate: int
    movetime: int
    infinite: bool
    perft: int


# "from" is a keyword, hence the functional syntax
PositionParams = TypedDict("PositionParams", {"from": str, "moves": list}, total=False)


def param_token(key: str, value: Any, kind: ParamKind) -> Optional[str]:
    """Return the token for one parameter, or None if it writes nothing."""
    if value is None:
        return None
    if kind is ParamKind.FLAG:
        return key if value is True else None
    if kind is ParamKind.LIST:
        if isinstance(value, str):
            raise TypeError(f"{key} expects a sequence of moves, got {value!r}")
        elements = [str(element) for element in value]
        return f"{key} {' '.join(elements)}" if elements else None
    return f"{key} {value}"


def to_tokens(params: Mapping[str, Any], schema: Mapping[str, ParamKind]) -> list[str]:
    """Translate ``params`` in their given order; undeclared keys are scalars."""
    tokens = []
    for key, value in params.items():
        token = param_token(key, value, schema.get(key, ParamKind.SCALAR))
        if token is not None:
            tokens.append(token)
    return tokens


def go_tokens(params: Mapping[str, Any]) -> list[str]:
    return to_tokens(params, GO_PARAMETERS)


def position_tokens(params: Mapping[str, Any]) -> list[str]:
    """Tokens for ``position``; the position source always comes first."""
    tokens: list[str] = []
    source = params.get("from")
    if source is not None:
        tokens.append(STARTPOS if source == STARTPOS else f"fen {source}")
    rest = {key: value for key, value in params.items() if key != "from"}
    tokens.extend(to_tokens(rest, POSITION_PARAMETERS))
    return tokens

