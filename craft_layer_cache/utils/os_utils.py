# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2022 Canonical Ltd.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""Utilities to run external processes."""

import contextlib
import logging
import subprocess
import tempfile
from typing import IO, Iterator, List, Optional, cast

from craft_layer_cache import errors

logger = logging.getLogger(__name__)


def process_output(command: List[str]) -> str:
    """Run a command and return its standard output.

    :param command: The command to run.

    :return: The decoded standard output.

    :raises ContainerEngineError: If the command exits with a non-zero code.
    """
    logger.debug("execute %s", command)
    proc = subprocess.run(command, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise errors.ContainerEngineError(
            command=command, exit_code=proc.returncode, stderr=proc.stderr
        )

    return proc.stdout


@contextlib.contextmanager
def process_stream(command: List[str], *, mode: str) -> Iterator[IO[bytes]]:
    """Run a command, streaming its standard output or standard input.

    With mode ``r`` the yielded stream is the command output, with mode
    ``w`` it is the command input. The command is waited for when the
    context exits.

    :param command: The command to run.
    :param mode: Either ``r`` or ``w``.

    :raises ContainerEngineError: If the command exits with a non-zero code.
    """
    if mode not in ("r", "w"):
        raise ValueError(f"invalid stream mode {mode!r}")

    logger.debug("execute %s (stream %s)", command, mode)
    with tempfile.TemporaryFile() as stderr:
        if mode == "r":
            proc = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=stderr)
            stream = cast(IO[bytes], proc.stdout)
        else:
            proc = subprocess.Popen(command, stdin=subprocess.PIPE, stderr=stderr)
            stream = cast(IO[bytes], proc.stdin)

        # the command may exit before consuming all of its input
        pipe_error: Optional[BrokenPipeError] = None
        try:
            try:
                yield stream
                if mode == "r":
                    _discard(stream)
            except BrokenPipeError as err:
                pipe_error = err
            finally:
                try:
                    stream.close()
                except BrokenPipeError as err:
                    pipe_error = pipe_error or err
        finally:
            exit_code = proc.wait()

        if exit_code != 0:
            stderr.seek(0)
            raise errors.ContainerEngineError(
                command=command,
                exit_code=exit_code,
                stderr=stderr.read().decode(errors="replace"),
            ) from pipe_error

        if pipe_error:
            raise pipe_error


def _discard(stream: IO[bytes]) -> None:
    """Read a stream to the end, so the writer is not interrupted."""
    while stream.read(65536):
        pass
