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

"""Engine option catalog, defaults and option files."""

from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class OptionType(str, Enum):
    """UCI option types as announced by ``option name ... type ...``."""

    SPIN = "spin"
    CHECK = "check"
    STRING = "string"
    COMBO = "combo"
    BUTTON = "button"


class AnalysisContempt(str, Enum):
    BOTH = "Both"
    WHITE = "White"
    BLACK = "Black"
    OFF = "Off"


class _Trigger:
    """Value for button options: send the option without a value field."""

    _instance: Optional[_Trigger] = None

    def __new__(cls) -> _Trigger:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TRIGGER"


TRIGGER = _Trigger()

OptionValue = Union[int, bool, str, _Trigger, None]


@dataclass(frozen=True)
class OptionSpec:
    type: OptionType
    default: OptionValue


# Stockfish options; None and "" defaults are never sent
OPTION_CATALOG: dict[str, OptionSpec] = {
    "Threads": OptionSpec(OptionType.SPIN, 1),
    "Hash": OptionSpec(OptionType.SPIN, 16),
    "Ponder": OptionSpec(OptionType.CHECK, False),
    "MultiPV": OptionSpec(OptionType.SPIN, 1),
    "Use NNUE": OptionSpec(OptionType.CHECK, True),
    "EvalFile": OptionSpec(OptionType.STRING, ""),
    "UCI_AnalyseMode": OptionSpec(OptionType.CHECK, False),
    "UCI_Chess960": OptionSpec(OptionType.CHECK, False),
    "UCI_ShowWDL": OptionSpec(OptionType.CHECK, False),
    "UCI_LimitStrength": OptionSpec(OptionType.CHECK, False),
    "UCI_Elo": OptionSpec(OptionType.SPIN, 1350),
    "Skill Level": OptionSpec(OptionType.SPIN, 20),
    "SyzygyPath": OptionSpec(OptionType.STRING, ""),
    "SyzygyProbeDepth": OptionSpec(OptionType.SPIN, 1),
    "Syzygy50MoveRule": OptionSpec(OptionType.CHECK, True),
    "SyzygyProbeLimit": OptionSpec(OptionType.SPIN, 7),
    "Contempt": OptionSpec(OptionType.SPIN, 24),
    "Analysis Contempt": OptionSpec(OptionType.COMBO, AnalysisContempt.BOTH.value),
    "Move Overhead": OptionSpec(OptionType.SPIN, 10),
    "Slow Mover": OptionSpec(OptionType.SPIN, 100),
    "nodestime": OptionSpec(OptionType.SPIN, 0),
    "Clear Hash": OptionSpec(OptionType.BUTTON, None),
    "Debug Log File": OptionSpec(OptionType.STRING, ""),
}

DEFAULT_OPTIONS: dict[str, OptionValue] = {key: spec.default for key, spec in OPTION_CATALOG.items()}

_CATALOG_BY_LOWER_NAME = {key.lower(): spec for key, spec in OPTION_CATALOG.items()}


def merge_options(options: Optional[Mapping[str, OptionValue]] = None) -> dict[str, OptionValue]:
    """Defaults overridden by ``options``, in catalog order followed by extra keys."""
    merged = dict(DEFAULT_OPTIONS)
    if options:
        merged.update(options)
    return merged


def is_unset(value: Any) -> bool:
    """True for values which are never sent to the engine."""
    return value is None or (isinstance(value, str) and value == "")


def format_value(value: OptionValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def setoption_params(name: str, value: OptionValue) -> list[str]:
    """Parameters of ``setoption`` for one option."""
    if value is TRIGGER:
        return [f"name {name}"]
    return [f"name {name}", f"value {format_value(value)}"]


def parse_bool_flag(value: Any) -> bool:
    """Interpret ini style boolean flags."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes", "on", "y")


def coerce_value(name: str, raw: Optional[str]) -> OptionValue:
    """Convert option file text to the type the catalog declares for ``name``.

    Options missing from the catalog are kept as text.

    :raises ValueError: a spin option is not an integer
    """
    spec = _CATALOG_BY_LOWER_NAME.get(name.lower())
    if spec is None:
        return raw
    if spec.type is OptionType.BUTTON:
        # a bare key line presses the button
        return TRIGGER if raw is None or parse_bool_flag(raw) else None
    if raw is None or raw.strip() == "":
        return None
    if spec.type is OptionType.SPIN:
        try:
            return int(raw.strip())
        except ValueError:
            raise ValueError(f"option {name} expects an integer, got {raw!r}") from None
    if spec.type is OptionType.CHECK:
        return parse_bool_flag(raw)
    return raw.strip()


def read_option_file(filename: str) -> dict[str, OptionValue]:
    """Read engine options from an ini file.

    The last section of the file is used, every ``key = value`` line of it is
    one option. Keys keep their case.

    :raises FileNotFoundError: the file cannot be read
    """
    parser = configparser.ConfigParser(allow_no_value=True, interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    if not parser.read(filename):
        raise FileNotFoundError(f"cannot read option file {filename}")
    sections = parser.sections()
    if not sections:
        logger.warning("option file %s has no section", filename)
        return {}
    section = parser[sections.pop()]
    options = {key: coerce_value(key, section.get(key)) for key in section}
    logger.debug("options from %s: %s", filename, options)
    return options
