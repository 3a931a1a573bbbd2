"""Public API for Mandelbrot rendering over HTTP."""

from .config import RenderConfig, parse_position
from .encoder import encode_png, write_single_image
from .errors import (
    ConfigError,
    EncodeError,
    MandelError,
    PartitionError,
    RenderCancelled,
    RenderError,
)
from .evaluator import escape_intensity, escape_intensity_row
from .scheduler import (
    PerRowScheduler,
    QueueScheduler,
    RowSpan,
    Scheduler,
    check_partition,
    get_scheduler,
    render,
)
from .server import ServerSettings, create_app

__all__ = [
    "ConfigError",
    "EncodeError",
    "MandelError",
    "PartitionError",
    "PerRowScheduler",
    "QueueScheduler",
    "RenderCancelled",
    "RenderConfig",
    "RenderError",
    "RowSpan",
    "Scheduler",
    "ServerSettings",
    "check_partition",
    "create_app",
    "encode_png",
    "escape_intensity",
    "escape_intensity_row",
    "get_scheduler",
    "parse_position",
    "render",
    "write_single_image",
]
