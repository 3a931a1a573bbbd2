"""Escape-time evaluation of points in the complex plane."""

from __future__ import annotations

import numpy as np

MAX_ITERATIONS = 200
ESCAPE_RADIUS = 2.0
CONTRAST_STEP = 30


def shade(n: int) -> int:
    """Intensity of a point that escaped on iteration ``n``.

    The arithmetic wraps modulo 256, so points that escape late cycle through
    bands of gray instead of settling at black.
    """

    return (255 - CONTRAST_STEP * n) % 256


def escape_intensity(z: complex) -> int:
    """Return the gray level of ``z``: 0 when it never escapes."""

    v = 0j
    for n in range(MAX_ITERATIONS):
        v = v * v + z
        try:
            escaped = abs(v) > ESCAPE_RADIUS
        except OverflowError:
            escaped = True
        if escaped:
            return shade(n)
    return 0


def _escape_step(
    zr: np.ndarray, zi: np.ndarray, cr: np.ndarray, ci: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Perform a single Mandelbrot iteration and flag the escaped points."""

    rr = zr * zr
    ii = zi * zi
    ri = zr * zi
    zr = (rr - ii) + cr
    zi = (ri + ri) + ci
    escaped = np.hypot(zr, zi) > ESCAPE_RADIUS
    return zr, zi, escaped


def escape_intensity_row(xs: np.ndarray, y: float) -> np.ndarray:
    """Evaluate every point ``x + iy`` for ``x`` in ``xs``.

    The update is split into the same real operations, in the same order, as
    complex multiplication, so the result matches :func:`escape_intensity`
    point for point.
    """

    xs = np.asarray(xs, dtype=np.float64)
    out = np.zeros(xs.shape, dtype=np.uint8)

    active = np.arange(xs.size)
    cr = xs.copy()
    ci = np.full(xs.shape, np.float64(y))
    zr = np.zeros(xs.shape, dtype=np.float64)
    zi = np.zeros(xs.shape, dtype=np.float64)

    with np.errstate(over="ignore", invalid="ignore"):
        for n in range(MAX_ITERATIONS):
            if active.size == 0:
                break
            zr, zi, escaped = _escape_step(zr, zi, cr, ci)
            if escaped.any():
                out[active[escaped]] = shade(n)
                remaining = ~escaped
                active = active[remaining]
                zr, zi = zr[remaining], zi[remaining]
                cr, ci = cr[remaining], ci[remaining]
    return out
