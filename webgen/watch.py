from __future__ import annotations

import fnmatch
import logging
import threading
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .assets import asset_sets
from .errors import WebgenError

logger = logging.getLogger("webgen.watch")

BUILD_ID_PATH = "/__webgen__/build-id"
LIVE_RELOAD_SCRIPT = (
    "<script>(function(){var current=null;function poll(){"
    "fetch('" + BUILD_ID_PATH + "',{cache:'no-store'}).then(function(r){return r.text();})"
    ".then(function(id){if(current!==null&&id!==current){window.location.reload();}current=id;})"
    ".catch(function(){}).then(function(){setTimeout(poll,1000);});}poll();})();</script>"
)

CONFIG = "config"
CONTENTS = "contents"
STYLES = "styles"
SCRIPTS = "scripts"
ASSETS = "assets"
IMAGES = "images"


def _matches(rel: str, patterns: list[str]) -> bool:
    included = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if fnmatch.fnmatch(rel, pattern[1:].lstrip("/")):
                return False
        elif fnmatch.fnmatch(rel, pattern.lstrip("/")):
            included = True
    return included


def _relative(path: Path, base: Path) -> str | None:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return None


def classify_change(path: Path, settings) -> str | None:
    """Tell which part of the build a changed file invalidates."""
    path = path.resolve()
    if path == settings.source:
        return CONFIG
    if _relative(path, settings.build_path) is not None:
        return None
    if settings.i18n.source is not None and path == settings.i18n.source.resolve():
        return CONTENTS
    if path in {Path(partial_path).resolve() for partial_path in settings.content.partials.values()}:
        return CONTENTS
    rel = _relative(path, settings.contents_root)
    if rel is not None and _matches(rel, settings.content.input):
        return CONTENTS
    if _relative(path, settings.masters_root) is not None:
        return CONTENTS
    rel = _relative(path, settings.source_root)
    if rel is None:
        return None
    if _matches(rel, settings.content.watch_more):
        return CONTENTS
    if any(_matches(rel, inputs) for inputs in asset_sets(settings.styles, "styles").values()):
        return STYLES
    if any(_matches(rel, inputs) for inputs in asset_sets(settings.scripts, "scripts").values()):
        return SCRIPTS
    images = settings.images.get("input") or []
    if isinstance(images, str):
        images = [images]
    if _matches(rel, [str(item) for item in images]):
        return IMAGES
    patterns = settings.assets.get("input") or []
    if isinstance(patterns, str):
        patterns = [patterns]
    if _matches(rel, [str(item) for item in patterns]):
        return ASSETS
    return None


class RebuildHandler(FileSystemEventHandler):
    """File system event handler with debounced rebuild."""

    def __init__(self, builder, stop_event: threading.Event, debounce_ms: int = 200):
        self.builder = builder
        self.stop_event = stop_event
        self.debounce_ms = debounce_ms
        self.timer: threading.Timer | None = None
        self.pending: set[str] = set()
        self.lock = threading.Lock()
        # one rebuild at a time; a timer firing meanwhile waits its turn
        self.rebuild_lock = threading.Lock()

    def _trigger_rebuild(self) -> None:
        with self.rebuild_lock:
            with self.lock:
                kinds, self.pending = self.pending, set()
            if kinds:
                self._rebuild(kinds)

    def _rebuild(self, kinds: set[str]) -> None:
        try:
            if CONTENTS in kinds:
                report = self.builder.rebuild_contents()
                logger.info("Rebuilt %d page(s).", len(report.pages))
            if STYLES in kinds:
                self.builder.build_styles()
            if SCRIPTS in kinds:
                self.builder.build_scripts()
            if ASSETS in kinds:
                self.builder.copy_assets()
            if IMAGES in kinds:
                self.builder.process_images()
            if kinds - {CONTENTS}:
                self.builder.generation += 1
        except WebgenError as exc:
            # keep watching: the next save may fix the problem
            logger.error("Error: %s", exc)

    def _schedule(self, kind: str) -> None:
        with self.lock:
            self.pending.add(kind)
            if self.timer is not None:
                self.timer.cancel()
            self.timer = threading.Timer(self.debounce_ms / 1000.0, self._trigger_rebuild)
            self.timer.daemon = True
            self.timer.start()

    def dispatch(self, event) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", None)]
        for value in paths:
            if not value:
                continue
            kind = classify_change(Path(value), self.builder.settings)
            if kind == CONFIG:
                logger.warning("Configuration file changed; restart the watcher to reload it.")
                self.stop_event.set()
                return
            if kind is not None:
                logger.debug("%s changed (%s).", value, kind)
                self._schedule(kind)


class LiveReloadHandler(SimpleHTTPRequestHandler):
    builder = None
    live_reload = True

    def do_GET(self):
        if self.path == BUILD_ID_PATH:
            body = str(self.builder.generation).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Cache-Control", "no-store")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return
        path = self.path.split("?", 1)[0].split("#", 1)[0]
        if not self.live_reload or not (path.endswith(".html") or path.endswith("/")):
            super().do_GET()
            return
        file_path = Path(self.translate_path(path))
        if file_path.is_dir():
            file_path = file_path / "index.html"
        if not file_path.is_file():
            self.send_error(404)
            return
        content = file_path.read_bytes()
        if b"</body>" in content:
            content = content.replace(b"</body>", LIVE_RELOAD_SCRIPT.encode("utf-8") + b"</body>", 1)
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(content)))
        self.end_headers()
        self.wfile.write(content)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(builder, port: int, live_reload: bool = True) -> ThreadingHTTPServer:
    handler_class = type(
        "BoundLiveReloadHandler",
        (LiveReloadHandler,),
        {"builder": builder, "live_reload": live_reload},
    )
    handler = partial(handler_class, directory=str(builder.settings.build_path))
    return ThreadingHTTPServer(("localhost", port), handler)


def serve(builder, port: int, live_reload: bool = True) -> None:
    httpd = make_server(builder, port, live_reload)
    logger.info("Serving %s on http://localhost:%d/", builder.settings.build_path, port)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        httpd.server_close()


def watch(builder, port: int | None = None, live_reload: bool = True) -> None:
    settings = builder.settings
    report = builder.build()
    logger.info("Built %d page(s) in %.2fs.", len(report.pages), report.elapsed)

    stop_event = threading.Event()
    handler = RebuildHandler(builder, stop_event)
    observer = Observer()
    watched = {settings.source_root, settings.source.parent}
    if settings.i18n.source is not None:
        watched.add(settings.i18n.source.resolve().parent)
    for path in sorted(watched):
        if path.exists():
            observer.schedule(handler, str(path), recursive=path == settings.source_root)
            logger.info("Watching: %s", path)
    observer.start()

    httpd = None
    if port is not None:
        httpd = make_server(builder, port, live_reload)
        threading.Thread(target=httpd.serve_forever, daemon=True).start()
        logger.info("Serving %s on http://localhost:%d/", settings.build_path, port)
    try:
        while not stop_event.wait(0.5):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
        if httpd is not None:
            httpd.shutdown()
            httpd.server_close()
