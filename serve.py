import logging
import sys
import time
from argparse import ArgumentParser, Namespace
from pathlib import Path

from mandelserve import ConfigError, MandelError, RenderConfig, ServerSettings, create_app, render, write_single_image
from mandelserve.config import DEFAULT_HEIGHT, DEFAULT_STRATEGY, DEFAULT_WIDTH, DEFAULT_WORKERS, STRATEGIES
from mandelserve.server import DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger("mandelserve")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser():
    parser = ArgumentParser(description='Render the Mandelbrot set over HTTP or to a file.')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging, including per-render scheduling details.')

    commands = parser.add_subparsers(dest='command', metavar='COMMAND')
    commands.required = True

    serve = commands.add_parser('serve', help='run the HTTP service exposing GET /mandel')
    serve.add_argument('--host', type=str, default=DEFAULT_HOST,
                       help='address to listen on', metavar='HOST')
    serve.add_argument('--port', type=int, default=DEFAULT_PORT,
                       help='port to listen on', metavar='PORT')
    serve.add_argument('--workers', type=int, dest='workers', default=DEFAULT_WORKERS,
                       help='worker count used when a request does not pass one', metavar='WORKERS')
    serve.add_argument('--strategy', choices=STRATEGIES, default=DEFAULT_STRATEGY,
                       help='partitioning strategy for every request: "queue" caps threads at the worker count, "per-row" spawns one per row')

    single = commands.add_parser('render', help='render one frame and write it to disk')
    single.add_argument('--pos', type=str, default='-2,-2,2,2',
                        help='viewport in the complex plane as "xmin,ymin,xmax,ymax"', metavar='POS')
    single.add_argument('--width', type=int, default=DEFAULT_WIDTH,
                        help='image width in pixels', metavar='WIDTH')
    single.add_argument('--height', type=int, default=DEFAULT_HEIGHT,
                        help='image height in pixels', metavar='HEIGHT')
    single.add_argument('--workers', type=int, default=DEFAULT_WORKERS,
                        help='number of workers for the queue strategy', metavar='WORKERS')
    single.add_argument('--strategy', choices=STRATEGIES, default=DEFAULT_STRATEGY,
                        help='"queue" for a fixed worker pool, "per-row" for one worker per row')
    single.add_argument('--output', type=str, default='mandel.png',
                        help='destination file; the extension must match --format', metavar='OUTPUT')
    single.add_argument('--format', type=str, dest='format', default='png',
                        help='file format for the image. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT')

    return parser


def resolve_output_path(opt: Namespace, parser: ArgumentParser) -> Path:
    image_format = (opt.format or "png").lower().lstrip(".") or "png"
    output_path = Path(opt.output).expanduser()
    if output_path.exists() and output_path.is_dir():
        parser.error("--output must point to a file, not a directory.")
    expected_suffix = f".{image_format}"
    if output_path.suffix:
        if output_path.suffix.lower() != expected_suffix:
            parser.error(f"--output extension {output_path.suffix} does not match --format {image_format}.")
    else:
        output_path = output_path.with_suffix(expected_suffix)
    return output_path.resolve()


def run_render(opt: Namespace, parser: ArgumentParser) -> int:
    output_path = resolve_output_path(opt, parser)
    try:
        config = RenderConfig.from_query(
            {
                "pos": opt.pos,
                "width": str(opt.width),
                "height": str(opt.height),
                "workers": str(opt.workers),
            },
            strategy=opt.strategy,
        )
    except ConfigError as exc:
        parser.error(str(exc))

    started = time.perf_counter()
    try:
        grid = render(config)
        write_single_image(grid, output_path, opt.format)
    except MandelError as exc:
        logger.error("%s", exc)
        return 1
    logger.info("wrote %s in %.3fs", output_path, time.perf_counter() - started)
    return 0


def run_server(opt: Namespace, parser: ArgumentParser) -> int:
    if opt.workers < 1:
        parser.error("--workers must be at least 1.")
    settings = ServerSettings(
        host=opt.host,
        port=opt.port,
        default_workers=opt.workers,
        strategy=opt.strategy,
    )
    app = create_app(settings)
    logger.info("serving http://%s:%d/mandel", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, threaded=True)
    return 0


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)
    configure_logging(bool(opt.verbose))

    if opt.command == 'render':
        return run_render(opt, parser)
    return run_server(opt, parser)


if __name__ == '__main__':
    sys.exit(main())
