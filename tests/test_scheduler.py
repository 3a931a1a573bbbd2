import threading

import numpy as np
import pytest

from mandelserve import scheduler
from mandelserve.config import RenderConfig
from mandelserve.errors import PartitionError, RenderCancelled, RenderError
from mandelserve.evaluator import escape_intensity
from mandelserve.scheduler import (
    PerRowScheduler,
    QueueScheduler,
    RowSpan,
    check_partition,
    get_scheduler,
    partition_rows,
    render,
    row_coordinate,
)

STRATEGIES = ["queue", "per-row"]


def _config(**overrides):
    values = dict(xmin=-2.0, ymin=-1.5, xmax=1.0, ymax=1.5, width=40, height=30, workers=4)
    values.update(overrides)
    return RenderConfig(**values)


def _reference_grid(config):
    grid = np.empty((config.height, config.width), dtype=np.uint8)
    for py in range(config.height):
        for px in range(config.width):
            grid[py, px] = escape_intensity(config.point(px, py))
    return grid


def test_partition_rows_covers_grid():
    config = _config(width=7, height=5)
    units = partition_rows(config)
    assert units == [RowSpan(row, 0, 7) for row in range(5)]
    check_partition(units, 7, 5)


def test_check_partition_accepts_split_rows():
    units = [RowSpan(0, 3, 6), RowSpan(0, 0, 3), RowSpan(1, 0, 6)]
    check_partition(units, 6, 2)


@pytest.mark.parametrize(
    "units",
    [
        [RowSpan(0, 0, 4), RowSpan(0, 3, 6), RowSpan(1, 0, 6)],
        [RowSpan(0, 0, 6), RowSpan(1, 0, 6), RowSpan(1, 0, 6)],
        [RowSpan(0, 0, 2), RowSpan(0, 3, 6), RowSpan(1, 0, 6)],
        [RowSpan(0, 0, 5), RowSpan(1, 0, 6)],
        [RowSpan(0, 0, 6)],
        [RowSpan(0, 0, 6), RowSpan(2, 0, 6)],
        [RowSpan(0, 0, 6), RowSpan(1, 0, 7)],
        [RowSpan(0, 0, 6), RowSpan(1, 2, 2), RowSpan(1, 0, 6)],
    ],
    ids=["overlap", "duplicate", "gap", "short", "missing-row", "row-out-of-range", "column-out-of-range", "empty"],
)
def test_check_partition_rejects_bad_tilings(units):
    with pytest.raises(PartitionError):
        check_partition(units, 6, 2)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_render_matches_pointwise_evaluation(strategy):
    config = _config(strategy=strategy)
    grid = render(config)
    assert grid.shape == (30, 40)
    assert grid.dtype == np.uint8
    np.testing.assert_array_equal(grid, _reference_grid(config))


def test_render_is_deterministic_across_workers_and_strategies():
    base = render(_config(workers=1))
    for strategy in STRATEGIES:
        for workers in (1, 2, 16, 64):
            np.testing.assert_array_equal(render(_config(workers=workers, strategy=strategy)), base)
    np.testing.assert_array_equal(render(_config(workers=1)), base)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_every_row_is_computed_exactly_once(monkeypatch, strategy):
    config = _config(width=9, height=12, workers=5, strategy=strategy)
    seen = []
    lock = threading.Lock()

    def fake_row(xs, y):
        with lock:
            seen.append((y, len(xs)))
        return np.full(len(xs), 7, dtype=np.uint8)

    monkeypatch.setattr(scheduler, "escape_intensity_row", fake_row)
    grid = render(config)

    assert (grid == 7).all()
    expected = sorted((row_coordinate(config, row), 9) for row in range(12))
    assert sorted(seen) == expected


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_single_pixel_render(strategy):
    grid = render(_config(xmin=-2, ymin=-2, xmax=2, ymax=2, width=1, height=1, strategy=strategy))
    assert grid.shape == (1, 1)
    assert grid[0, 0] == 255


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_worker_failure_aborts_with_single_error(monkeypatch, strategy):
    config = _config(width=5, height=20, workers=3, strategy=strategy)
    failing_y = row_coordinate(config, 4)
    boom = MemoryError("no room for row")

    def flaky_row(xs, y):
        if y == failing_y:
            raise boom
        return np.ones(len(xs), dtype=np.uint8)

    monkeypatch.setattr(scheduler, "escape_intensity_row", flaky_row)
    with pytest.raises(RenderError) as excinfo:
        render(config)
    assert excinfo.value.__cause__ is boom
    assert not isinstance(excinfo.value, RenderCancelled)


def test_failure_to_start_workers_is_reported(monkeypatch):
    def refuse(self):
        raise RuntimeError("can't start new thread")

    monkeypatch.setattr(threading.Thread, "start", refuse)
    with pytest.raises(RenderError):
        PerRowScheduler().render(_config(width=3, height=3))


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_cancelled_render_raises(strategy):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(RenderCancelled):
        get_scheduler(strategy).render(_config(strategy=strategy), cancel=cancel)


def test_unset_cancel_event_does_not_interrupt():
    grid = QueueScheduler().render(_config(), cancel=threading.Event())
    np.testing.assert_array_equal(grid, render(_config()))


def test_more_workers_than_rows():
    config = _config(height=3, workers=50)
    np.testing.assert_array_equal(render(config), _reference_grid(config))


def test_get_scheduler_by_name():
    assert isinstance(get_scheduler("queue"), QueueScheduler)
    assert isinstance(get_scheduler("per-row"), PerRowScheduler)
    with pytest.raises(ValueError):
        get_scheduler("spiral")


def test_custom_partition_is_checked_before_dispatch():
    class Overlapping(QueueScheduler):
        def partition(self, config):
            return partition_rows(config) + [RowSpan(0, 0, 1)]

    with pytest.raises(PartitionError):
        Overlapping().render(_config())


def test_split_row_partition_renders_identically():
    class HalfRows(QueueScheduler):
        def partition(self, config):
            middle = config.width // 2
            units = []
            for row in range(config.height):
                units.append(RowSpan(row, middle, config.width))
                units.append(RowSpan(row, 0, middle))
            return units

    config = _config(workers=3)
    np.testing.assert_array_equal(HalfRows().render(config), render(config))


def test_queue_dispatch_logs_pixel_count(caplog):
    config = _config(width=7, height=5, workers=2)
    assert sum(unit.size for unit in partition_rows(config)) == 35
    with caplog.at_level("DEBUG", logger="mandelserve.scheduler"):
        QueueScheduler().render(config)
    assert "dispatching 5 rows (35 pixels) to 2 workers" in caplog.text
