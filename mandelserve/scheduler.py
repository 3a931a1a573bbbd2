"""Parallel rendering of a Mandelbrot frame into a shared pixel grid.

A frame is split into :class:`RowSpan` work units. Every unit names a
half-open column range of one row, and a partition is only dispatched once
:func:`check_partition` has confirmed that the units tile the grid exactly
once. Workers therefore write into disjoint slices of the grid and need no
lock around it.

Two strategies are available:

``queue``
    A fixed pool of ``config.workers`` threads pulls units from a queue that
    is filled and closed before the first worker starts.

``per-row``
    One short-lived thread per unit. Parallelism equals the image height,
    which is unbounded; use ``queue`` when resource usage must be capped.

The per-iteration loop of :func:`~mandelserve.evaluator.escape_intensity_row`
runs in Python and holds the GIL, so threads overlap mostly inside numpy
ufuncs. Adding workers buys little beyond a few, and the default 4096x4096
frame takes a long time under either strategy.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Iterable, Optional, Sequence

import numpy as np

from .config import RenderConfig
from .errors import PartitionError, RenderCancelled, RenderError
from .evaluator import escape_intensity_row

logger = logging.getLogger(__name__)

_DONE = object()


@dataclass(frozen=True)
class RowSpan:
    """Columns ``start`` to ``stop`` (exclusive) of image row ``row``."""

    row: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


def partition_rows(config: RenderConfig) -> list[RowSpan]:
    """Split the frame into one unit per full row."""

    return [RowSpan(row, 0, config.width) for row in range(config.height)]


def check_partition(units: Iterable[RowSpan], width: int, height: int) -> None:
    """Raise :class:`PartitionError` unless ``units`` cover every pixel once."""

    by_row: dict[int, list[RowSpan]] = {}
    for unit in units:
        if not 0 <= unit.row < height:
            raise PartitionError(f"{unit} lies outside rows 0..{height - 1}")
        if not 0 <= unit.start < unit.stop <= width:
            raise PartitionError(f"{unit} is empty or lies outside columns 0..{width - 1}")
        by_row.setdefault(unit.row, []).append(unit)

    if len(by_row) != height:
        missing = sorted(set(range(height)) - set(by_row))
        raise PartitionError(f"rows without a work unit: {missing[:10]}")

    for row, spans in by_row.items():
        column = 0
        for unit in sorted(spans, key=lambda span: span.start):
            if unit.start < column:
                raise PartitionError(f"{unit} overlaps columns already assigned in row {row}")
            if unit.start > column:
                raise PartitionError(f"columns {column}..{unit.start - 1} of row {row} are unassigned")
            column = unit.stop
        if column != width:
            raise PartitionError(f"columns {column}..{width - 1} of row {row} are unassigned")


def column_coordinates(config: RenderConfig) -> np.ndarray:
    """Real part of every image column."""

    px = np.arange(config.width, dtype=np.float64)
    return px / np.float64(config.width) * (config.xmax - config.xmin) + config.xmin


def row_coordinate(config: RenderConfig, py: int) -> float:
    """Imaginary part of image row ``py``."""

    return py / config.height * (config.ymax - config.ymin) + config.ymin


class _RenderJob:
    """State shared by the workers of one render."""

    def __init__(self, config: RenderConfig, cancel: Optional[threading.Event]) -> None:
        self.config = config
        self.grid = np.zeros((config.height, config.width), dtype=np.uint8)
        self.xs = column_coordinates(config)
        self._cancel = cancel
        self._abort = threading.Event()
        self._skipped = threading.Event()
        self._error_lock = threading.Lock()
        self._error: Optional[BaseException] = None

    @property
    def stopped(self) -> bool:
        if self._abort.is_set():
            return True
        return self._cancel is not None and self._cancel.is_set()

    def fail(self, exc: BaseException) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = exc
        self._abort.set()

    def run(self, unit: RowSpan) -> None:
        if self.stopped:
            self._skipped.set()
            return
        try:
            y = row_coordinate(self.config, unit.row)
            self.grid[unit.row, unit.start:unit.stop] = escape_intensity_row(self.xs[unit.start:unit.stop], y)
        except Exception as exc:
            logger.debug("worker failed on %s", unit, exc_info=True)
            self.fail(exc)

    def raise_for_failure(self) -> None:
        if self._error is not None:
            raise RenderError(f"render aborted: {self._error}") from self._error
        if self._skipped.is_set():
            raise RenderCancelled("render cancelled before every row was computed")


class Scheduler(ABC):
    """Render a frame by fanning work units out to concurrent workers."""

    name: ClassVar[str]

    def partition(self, config: RenderConfig) -> Sequence[RowSpan]:
        return partition_rows(config)

    def render(self, config: RenderConfig, cancel: Optional[threading.Event] = None) -> np.ndarray:
        """Return the finished ``(height, width)`` grid of gray levels.

        Blocks until every worker has terminated. Raises :class:`RenderError`
        if a worker failed and :class:`RenderCancelled` if ``cancel`` was set
        before the last row was computed.
        """

        units = self.partition(config)
        check_partition(units, config.width, config.height)

        job = _RenderJob(config, cancel)
        started = time.perf_counter()
        self._dispatch(job, units)
        job.raise_for_failure()
        logger.debug(
            "rendered %dx%d with %s strategy in %.3fs",
            config.width,
            config.height,
            self.name,
            time.perf_counter() - started,
        )
        return job.grid

    @abstractmethod
    def _dispatch(self, job: _RenderJob, units: Sequence[RowSpan]) -> None:
        """Compute every unit and return once all workers have joined."""


def _start_all(job: _RenderJob, threads: Iterable[threading.Thread]) -> list[threading.Thread]:
    started = []
    for thread in threads:
        try:
            thread.start()
        except RuntimeError as exc:
            job.fail(exc)
            break
        started.append(thread)
    return started


class QueueScheduler(Scheduler):
    """Fixed pool of workers pulling row units from a closed queue."""

    name = "queue"

    def _dispatch(self, job: _RenderJob, units: Sequence[RowSpan]) -> None:
        # Extra workers would only ever receive the end-of-queue marker.
        worker_count = min(job.config.workers, len(units))

        work: queue.Queue = queue.Queue(maxsize=len(units) + worker_count)
        for unit in units:
            work.put_nowait(unit)
        for _ in range(worker_count):
            work.put_nowait(_DONE)

        logger.debug(
            "dispatching %d rows (%d pixels) to %d workers",
            len(units),
            sum(unit.size for unit in units),
            worker_count,
        )
        threads = (
            threading.Thread(target=self._work, args=(job, work), name=f"mandel-worker-{i}", daemon=True)
            for i in range(worker_count)
        )
        for thread in _start_all(job, threads):
            thread.join()

    @staticmethod
    def _work(job: _RenderJob, work: queue.Queue) -> None:
        while True:
            unit = work.get()
            if unit is _DONE:
                return
            job.run(unit)


class PerRowScheduler(Scheduler):
    """One worker per row unit, with no limit on concurrency."""

    name = "per-row"

    def _dispatch(self, job: _RenderJob, units: Sequence[RowSpan]) -> None:
        logger.debug("spawning %d row workers", len(units))
        threads = (
            threading.Thread(target=job.run, args=(unit,), name=f"mandel-row-{unit.row}", daemon=True)
            for unit in units
        )
        for thread in _start_all(job, threads):
            thread.join()


SCHEDULERS: dict[str, type[Scheduler]] = {
    QueueScheduler.name: QueueScheduler,
    PerRowScheduler.name: PerRowScheduler,
}


def get_scheduler(name: str) -> Scheduler:
    try:
        return SCHEDULERS[name]()
    except KeyError:
        raise ValueError(f"unknown strategy {name!r}; choose one of {', '.join(SCHEDULERS)}") from None


def render(config: RenderConfig, cancel: Optional[threading.Event] = None) -> np.ndarray:
    """Render ``config`` with the strategy it names."""

    return get_scheduler(config.strategy).render(config, cancel=cancel)
