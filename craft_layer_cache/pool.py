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

"""Bounded fan-out of concurrent tasks."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskSkipped(Exception):
    """A task was not run because an earlier task stopped the pool."""


def _always(exc: BaseException) -> bool:
    return True


class BoundedPool:
    """Run callables concurrently with a cap on the tasks in flight.

    Submitted tasks are queued and started in submission order as workers
    become free. When a task fails with an error accepted by ``stop_on``
    the pool stops: queued tasks that have not started yet fail with
    :class:`TaskSkipped` instead of running, and tasks already running
    are left to finish.

    :param concurrency: The maximum number of tasks running at once.
    :param stop_on: Decide whether a task error stops the pool. By
        default any error does.
    """

    def __init__(
        self,
        concurrency: int,
        *,
        stop_on: Optional[Callable[[BaseException], bool]] = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        self._concurrency = concurrency
        self._stop_on = stop_on or _always
        self._stopped = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=concurrency)

    def __enter__(self) -> "BoundedPool":
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.shutdown(cancel_pending=exc_type is not None)
        return False

    @property
    def concurrency(self) -> int:
        """The maximum number of tasks running at once."""
        return self._concurrency

    @property
    def stopped(self) -> bool:
        """Whether a task error stopped the pool."""
        return self._stopped.is_set()

    def submit(self, fn: Callable[..., T], *args, **kwargs) -> "Future[T]":
        """Queue a callable without waiting for a free worker.

        :return: The future holding the callable result.
        """
        return self._executor.submit(self._run, fn, args, kwargs)

    def map(self, fn: Callable[..., T], items: Iterable) -> List["Future[T]"]:
        """Queue a callable once per item."""
        return [self.submit(fn, item) for item in items]

    def shutdown(self, *, cancel_pending: bool = False) -> None:
        """Wait for running tasks and release the worker threads.

        :param cancel_pending: Whether tasks not yet started are cancelled.
        """
        self._executor.shutdown(wait=True, cancel_futures=cancel_pending)

    def _run(self, fn: Callable[..., T], args: Tuple, kwargs: Dict[str, Any]) -> T:
        if self._stopped.is_set():
            raise TaskSkipped(f"{getattr(fn, '__name__', fn)!r} not run")

        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            # stop before the future completes, so no queued task starts
            if self._stop_on(exc):
                self._stopped.set()
            raise


def gather(futures: Iterable["Future[T]"]) -> List[T]:
    """Wait for all futures and return their results in order.

    After every future has completed, the first failure in submission
    order is raised. Skipped tasks are only reported if nothing else
    failed.
    """
    futures = list(futures)
    wait(futures)
    for future in futures:
        exc = future.exception()
        if exc is not None and not isinstance(exc, TaskSkipped):
            raise exc

    return [future.result() for future in futures]


def drain(futures: Iterable[Future]) -> List[BaseException]:
    """Wait for all futures and collect their errors.

    :return: The exceptions raised by failed futures, which are
        otherwise discarded.
    """
    exceptions: List[BaseException] = []
    for future in list(futures):
        if future.cancelled():
            continue
        exc: Optional[BaseException] = future.exception()
        if exc is not None:
            logger.debug("discarded task error: %s", exc)
            exceptions.append(exc)

    return exceptions
