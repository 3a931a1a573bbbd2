"""Exception hierarchy shared by the renderer and the HTTP layer."""

from __future__ import annotations


class MandelError(Exception):
    """Base class for every error raised by :mod:`mandelserve`."""


class ConfigError(MandelError, ValueError):
    """The requested render configuration is malformed or out of range."""


class PartitionError(MandelError):
    """A set of work units does not tile the pixel grid exactly once."""


class RenderError(MandelError):
    """A worker failed and the render was aborted."""


class RenderCancelled(RenderError):
    """The render was cancelled before every row was computed."""


class EncodeError(MandelError):
    """A finished pixel grid could not be serialised."""
