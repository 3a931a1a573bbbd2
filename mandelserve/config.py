"""Render configuration and parsing of the ``/mandel`` query string."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_POSITION = (-2.0, -2.0, 2.0, 2.0)
DEFAULT_WIDTH = 4096
DEFAULT_HEIGHT = 4096
DEFAULT_WORKERS = 8
DEFAULT_STRATEGY = "queue"
STRATEGIES = ("queue", "per-row")

_INT32_MAX = 2 ** 31 - 1
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:inf|infinity|nan)", re.IGNORECASE)
_HEX_FLOAT_PATTERN = re.compile(r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)[pP][+-]?[0-9]+")


@dataclass(frozen=True)
class RenderConfig:
    """Parameters that describe a single render of the Mandelbrot set."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    width: int
    height: int
    workers: int = DEFAULT_WORKERS
    strategy: str = DEFAULT_STRATEGY

    def __post_init__(self) -> None:
        bounds = (self.xmin, self.ymin, self.xmax, self.ymax)
        if not all(math.isfinite(value) for value in bounds):
            raise ConfigError(f"viewport bounds must be finite: {bounds}")
        if not self.xmax > self.xmin:
            raise ConfigError(f"xmax ({self.xmax}) must be greater than xmin ({self.xmin})")
        if not self.ymax > self.ymin:
            raise ConfigError(f"ymax ({self.ymax}) must be greater than ymin ({self.ymin})")
        for name in ("width", "height", "workers"):
            value = getattr(self, name)
            if not 1 <= value <= _INT32_MAX:
                raise ConfigError(f"{name} must be between 1 and {_INT32_MAX}, got {value}")
        if self.strategy not in STRATEGIES:
            raise ConfigError(f"unknown strategy {self.strategy!r}; choose one of {', '.join(STRATEGIES)}")

    @property
    def position(self) -> tuple[float, float, float, float]:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def point(self, px: int, py: int) -> complex:
        """Return the complex value represented by image point ``(px, py)``."""

        x = px / self.width * (self.xmax - self.xmin) + self.xmin
        y = py / self.height * (self.ymax - self.ymin) + self.ymin
        return complex(x, y)

    @classmethod
    def from_query(
        cls,
        args: Mapping[str, str],
        *,
        default_workers: int = DEFAULT_WORKERS,
        strategy: str = DEFAULT_STRATEGY,
    ) -> "RenderConfig":
        """Build a config from request arguments, defaulting each missing one.

        Empty values count as missing and unknown arguments are ignored. The
        strategy is chosen by the caller, never by the request. Raises
        :class:`ConfigError` for anything that does not parse or violates the
        config invariants.
        """

        position = DEFAULT_POSITION
        pos_str = args.get("pos") or ""
        if pos_str:
            position = parse_position(pos_str)

        width = _int_arg(args, "width", DEFAULT_WIDTH)
        height = _int_arg(args, "height", DEFAULT_HEIGHT)
        workers = _int_arg(args, "workers", default_workers)

        xmin, ymin, xmax, ymax = position
        return cls(
            xmin=xmin,
            ymin=ymin,
            xmax=xmax,
            ymax=ymax,
            width=width,
            height=height,
            workers=workers,
            strategy=strategy,
        )


def parse_position(pos_str: str) -> tuple[float, float, float, float]:
    """Parse ``"xmin,ymin,xmax,ymax"`` into four floats."""

    parts = pos_str.split(",")
    if len(parts) != 4:
        raise ConfigError(f"Invalid position string : {pos_str}")
    try:
        xmin, ymin, xmax, ymax = (parse_float(part, "pos") for part in parts)
    except ConfigError as exc:
        raise ConfigError(f"Invalid position string : {pos_str}") from exc
    return xmin, ymin, xmax, ymax


def parse_float(value: str, name: str) -> float:
    """Parse a decimal or hexadecimal float with no surrounding whitespace."""

    if _FLOAT_PATTERN.fullmatch(value):
        return float(value)
    if _HEX_FLOAT_PATTERN.fullmatch(value):
        try:
            return float.fromhex(value)
        except OverflowError as exc:
            raise ConfigError(f"{name} is out of range: {value}") from exc
    raise ConfigError(f"{name} must be a number, got {value!r}")


def parse_int(value: str, name: str) -> int:
    """Parse a base-10 integer that fits in a signed 32-bit range."""

    if not _INT_PATTERN.fullmatch(value):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    parsed = int(value)
    if not -_INT32_MAX - 1 <= parsed <= _INT32_MAX:
        raise ConfigError(f"{name} is out of range: {value}")
    return parsed


def _int_arg(args: Mapping[str, str], name: str, default: int) -> int:
    raw: Optional[str] = args.get(name)
    if not raw:
        return default
    return parse_int(raw, name)
