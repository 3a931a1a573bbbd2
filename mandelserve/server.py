"""HTTP front end serving rendered frames at ``GET /mandel``."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from flask import Flask, Response, request

from .config import DEFAULT_STRATEGY, DEFAULT_WORKERS, RenderConfig
from .encoder import encode_png
from .errors import ConfigError, EncodeError, MandelError
from .scheduler import render

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8080


@dataclass(frozen=True)
class ServerSettings:
    """Process-level options injected into the request handler."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    default_workers: int = DEFAULT_WORKERS
    strategy: str = DEFAULT_STRATEGY


def create_app(settings: ServerSettings | None = None) -> Flask:
    settings = settings or ServerSettings()
    app = Flask(__name__)

    @app.get("/mandel")
    def mandel() -> Response:
        try:
            config = RenderConfig.from_query(
                request.args,
                default_workers=settings.default_workers,
                strategy=settings.strategy,
            )
        except ConfigError as exc:
            logger.info("rejected %s: %s", request.query_string.decode("latin-1"), exc)
            return Response(status=400)

        started = time.perf_counter()
        try:
            grid = render(config)
        except MandelError:
            logger.exception("render failed for %s", config)
            return Response(status=500)
        logger.info(
            "rendered %dx%d (%s, workers=%d) in %.3fs",
            config.width,
            config.height,
            config.strategy,
            config.workers,
            time.perf_counter() - started,
        )

        try:
            body = encode_png(grid)
        except EncodeError:
            logger.exception("encoding failed for %s", config)
            return Response(status=500)
        return Response(body, status=200, mimetype="image/png")

    return app
