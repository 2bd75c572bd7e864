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

"""Own the engine subprocess and its stdin/stdout byte streams."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import os
from typing import Callable, Optional

from ucipipe.errors import SpawnFailure, WriteFailure

# Seconds to wait for an engine to exit before escalating.
ENGINE_QUIT_TIMEOUT = 3.0  # waiting seconds for a normal engine to quit
ENGINE_TERMINATE_TIMEOUT = 2.0  # if not send SIGTERM and wait a bit
ENGINE_KILL_TIMEOUT = 1.0  # finally send SIGKILL, wait time gives OS some time

READ_CHUNK_SIZE = 4096

DataListener = Callable[[str], None]
ExitListener = Callable[[Optional[BaseException]], None]

logger = logging.getLogger(__name__)


class ProcessChannel:
    """Duplex text channel to one engine process.

    Output is read by a background task. While data listeners are attached the
    chunks are handed to them as they arrive; otherwise they are kept in a
    buffer until somebody calls poll_available().
    """

    def __init__(self, process: asyncio.subprocess.Process, name: str = "engine"):
        self.process = process
        self.name = name
        self._pending: list[str] = []
        self._data_listeners: list[DataListener] = []
        self._exit_listeners: list[ExitListener] = []
        self._eof = False
        self._error: BaseException | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    @classmethod
    async def spawn(
        cls,
        path: str,
        *args: str,
        cwd: str | None = None,
        stderr: int | None = asyncio.subprocess.DEVNULL,
    ) -> ProcessChannel:
        """Start the engine executable and wrap it in a channel.

        :raises SpawnFailure: the executable is missing or not runnable
        """
        logger.info("starting engine %s %s", path, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                path,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=stderr,
                cwd=cwd,
            )
        except OSError as e:
            raise SpawnFailure(f"could not start engine {path}: {e}") from e
        logger.debug("engine %s started with pid %d", path, process.pid)
        return cls(process, name=os.path.basename(path))

    @property
    def exited(self) -> bool:
        """True once the output stream has ended."""
        return self._eof

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    async def _pump(self) -> None:
        """Read engine output until end of stream."""
        assert self.process.stdout is not None
        try:
            while True:
                chunk = await self.process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._deliver(self._decoder.decode(chunk))
            self._deliver(self._decoder.decode(b"", final=True))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("%s output stream failed", self.name, exc_info=True)
            self._error = e
        self._eof = True
        logger.debug("%s output stream closed", self.name)
        for listener in list(self._exit_listeners):
            listener(self._error)

    def _deliver(self, text: str) -> None:
        if not text:
            return
        logger.debug("%s >> %s", self.name, text.rstrip())
        if self._data_listeners:
            for listener in list(self._data_listeners):
                # listener errors stay out of the read loop
                try:
                    listener(text)
                except Exception:
                    logger.exception("%s data listener failed", self.name)
        else:
            self._pending.append(text)

    def poll_available(self) -> str:
        """Return the output buffered so far and clear it. Never blocks."""
        text = "".join(self._pending)
        self._pending.clear()
        return text

    def add_data_listener(self, listener: DataListener) -> None:
        """Switch to flowing mode; buffered output goes to the new listener first."""
        self._data_listeners.append(listener)
        buffered = self.poll_available()
        if buffered:
            listener(buffered)

    def remove_data_listener(self, listener: DataListener) -> None:
        with contextlib.suppress(ValueError):
            self._data_listeners.remove(listener)

    def add_exit_listener(self, listener: ExitListener) -> None:
        """Call ``listener(error)`` when the stream ends; error is None on a clean exit."""
        self._exit_listeners.append(listener)

    def remove_exit_listener(self, listener: ExitListener) -> None:
        with contextlib.suppress(ValueError):
            self._exit_listeners.remove(listener)

    async def write(self, text: str) -> None:
        """Send one protocol line.

        :raises WriteFailure: the engine input is closed
        """
        stdin = self.process.stdin
        if self.exited or self.process.returncode is not None or stdin is None or stdin.is_closing():
            raise WriteFailure(f"{self.name} is not running, cannot send {text!r}")
        logger.debug("%s << %s", self.name, text)
        try:
            stdin.write(f"{text}\n".encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise WriteFailure(f"{self.name} closed its input, cannot send {text!r}") from e

    async def terminate(self, grace: float = ENGINE_QUIT_TIMEOUT) -> int | None:
        """Make sure the process is gone, escalating from waiting to SIGTERM to SIGKILL.

        :return: the process return code
        """
        if not await self._wait_for_exit(grace):
            logger.warning("%s failed to quit within %.1fs - terminating", self.name, grace)
            with contextlib.suppress(ProcessLookupError):
                self.process.terminate()
            if not await self._wait_for_exit(ENGINE_TERMINATE_TIMEOUT):
                logger.warning("%s still running - killing process", self.name)
                with contextlib.suppress(ProcessLookupError):
                    self.process.kill()
                await self._wait_for_exit(ENGINE_KILL_TIMEOUT)

        stdin = self.process.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()
        if not self._pump_task.done():
            self._pump_task.cancel()
        await asyncio.gather(self._pump_task, return_exceptions=True)
        logger.debug("%s exited with code %s", self.name, self.process.returncode)
        return self.process.returncode

    async def _wait_for_exit(self, timeout: float) -> bool:
        """Wait until the process exits or timeout elapses."""
        if self.process.returncode is not None:
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self.process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
