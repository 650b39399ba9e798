from __future__ import annotations

import argparse
import logging
import sys
import time

from .builder import Builder
from .config import guess_config_file, load_settings
from .errors import WebgenError
from .utils import parse_bool, parse_int
from .watch import serve, watch

TASKS = ("build", "release", "clean", "watch", "serve", "i18n-extract", "xmlsitemap")


def setup_logging(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("webgen")
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)
    for handler in logger.handlers:
        handler.setLevel(level)
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webgen", description="Configuration driven static website generator.")
    parser.add_argument("task", nargs="?", default="build", choices=TASKS, help="Task to run (default: build).")
    parser.add_argument("--config", default=None, help="Path to webgen.yaml (default: $WEBGEN_CONFIG or search).")
    parser.add_argument("--port", type=int, default=None, help="Port of the development server.")
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Remove the build directory before building.",
    )
    parser.add_argument(
        "--live-reload",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Inject the live reload script into served pages.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=0,
        help="Number of build worker threads (0 = CPU count).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug messages.")
    return parser


def run_task(args: argparse.Namespace) -> bool:
    config_path = guess_config_file(args.config)
    settings = load_settings(config_path, release=args.task == "release")
    builder = Builder(settings, workers=args.workers or None)
    port = args.port if args.port is not None else parse_int(settings.serve.get("port"), 8000)
    live_reload = args.live_reload
    if live_reload is None:
        live_reload = parse_bool(settings.serve.get("live_reload", True))

    if args.task in ("build", "release"):
        report = builder.build(clean=args.clean or args.task == "release")
        print(f"Pages written: {len(report.pages)}")
        if not report.ok:
            print(f"Contents with errors: {len(report.failed)}")
        print(f"Site generated in: {settings.build_path}")
        return True
    if args.task == "clean":
        builder.clean()
        return True
    if args.task == "watch":
        watch(builder, port=port, live_reload=live_reload)
        return True
    if args.task == "serve":
        serve(builder, port, live_reload=live_reload)
        return True
    if args.task == "i18n-extract":
        path = builder.extract_i18n()
        if path is not None:
            print(f"Translations written to: {path}")
        return True
    if args.task == "xmlsitemap":
        path = builder.build_xml_sitemap()
        if path is None:
            print("XML sitemap is disabled in the configuration.")
            return False
        print(f"XML sitemap written to: {path}")
        return True
    return False


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    start = time.perf_counter()
    try:
        run_task(args)
    except WebgenError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.perf_counter() - start
    print(f"Task {args.task} completed in {elapsed:.2f}s.")


if __name__ == "__main__":
    main()
