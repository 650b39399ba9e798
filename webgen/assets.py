from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

import csscompressor
import jinja2
import rjsmin
from PIL import Image

from .errors import ConfigurationError
from .hooks import HookRunner
from .paths import correct_css_paths
from .render import write_text
from .utils import match_files, warn

logger = logging.getLogger("webgen.assets")

EXTENSION_RE = re.compile(r"(\.[^.]+)$")
HTML_REPLACE_RE = re.compile(
    r"<!--\s*build:(?P<name>[0-9a-zA-Z_.\-]+)\s*-->.*?<!--\s*endbuild\s*-->",
    re.DOTALL,
)
DOCTYPE_RE = re.compile(r"(<!DOCTYPE[^>]+>|<\?xml.+?\?>)", re.IGNORECASE)

# Pillow save options per source format
IMAGE_OPTIMIZE_OPTIONS = {
    "PNG": {"optimize": True},
    "JPEG": {"optimize": True, "progressive": True},
    "GIF": {"optimize": True},
}


@dataclass
class AssetFile:
    name: str
    text: str


def suffixed_name(name: str, suffix: str) -> str:
    if EXTENSION_RE.search(name):
        return EXTENSION_RE.sub(lambda m: suffix + m.group(1), name)
    return name + suffix


def asset_sets(section: dict, what: str) -> dict[str, list[str]]:
    sets = section.get("sets") or {}
    if not isinstance(sets, dict):
        raise ConfigurationError(f"Sets for {what} is not a mapping.")
    result = {}
    for name, conf in sets.items():
        inputs = conf.get("input") if isinstance(conf, dict) else None
        if isinstance(inputs, str):
            inputs = [inputs]
        if not isinstance(inputs, list):
            raise ConfigurationError(f"Invalid input for {what} set |{name}|.")
        result[str(name)] = [str(item) for item in inputs]
    return result


def license_header(settings, file_name: str, prefix: str, suffix: str, line_prefix: str) -> str:
    if not settings.is_release or not settings.license_text:
        return ""
    lines = "\n".join(line_prefix + line for line in settings.license_text.split("\n"))
    try:
        template = jinja2.Environment(autoescape=False, keep_trailing_newline=True).from_string(prefix + lines + suffix)
        return template.render(app=settings.exposed_app_variables(), file={"name": file_name})
    except jinja2.TemplateError as exc:
        raise ConfigurationError(f"Cannot render license template: {exc}") from exc


def add_markup_license(text: str, settings, file_name: str) -> str:
    header = license_header(settings, file_name, "<!--\n", "\n-->\n", " * ")
    if not header:
        return text
    text = header + text
    # a doctype or an XML declaration must stay first
    match = DOCTYPE_RE.search(text)
    if match and not text.startswith(match.group(1)):
        text = match.group(1) + "\n" + text[: match.start()] + text[match.end() :]
    return text


def html_replace(text: str, settings) -> str:
    styles = asset_sets(settings.styles, "styles")
    scripts = asset_sets(settings.scripts, "scripts")
    suffix = settings.build_assets_suffix

    def repl(match: re.Match) -> str:
        name = match.group("name")
        if name in styles:
            return f'<link href="../{suffixed_name(name, suffix)}" rel="stylesheet" />'
        if name in scripts:
            return f'<script src="../{suffixed_name(name, suffix)}"></script>'
        warn("html", name, "No style or script set with this name.")
        return match.group(0)

    return HTML_REPLACE_RE.sub(repl, text)


def copy_assets(settings, hooks: HookRunner) -> list[Path]:
    patterns = settings.assets.get("input") or []
    if isinstance(patterns, str):
        patterns = [patterns]
    files = match_files(settings.source_root, [str(item) for item in patterns])
    files = hooks.run("before_copy_assets", files, settings)
    copied = []
    for source in files:
        dest = settings.build_path / source.relative_to(settings.source_root)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        copied.append(dest)
    logger.info("[assets] %d file(s) copied.", len(copied))
    return copied


def optimize_image(source: Path, dest: Path) -> bool:
    """Re-encode an image with Pillow's optimizer; False when the format is not handled."""
    with Image.open(source) as img:
        options = IMAGE_OPTIMIZE_OPTIONS.get(img.format or "")
        if options is None:
            return False
        img.save(dest, format=img.format, **options)
    return True


def process_images(settings, hooks: HookRunner) -> list[Path]:
    patterns = settings.images.get("input") or []
    if isinstance(patterns, str):
        patterns = [patterns]
    files = match_files(settings.source_root, [str(item) for item in patterns])
    files = hooks.run("before_images_processing", files, settings)
    outputs = []
    for source in files:
        rel = source.relative_to(settings.source_root).as_posix()
        dest = settings.build_path / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        optimized = False
        if settings.is_release:
            try:
                optimized = optimize_image(source, dest)
            except OSError as exc:
                warn("images", rel, f"Cannot optimize image, copied as is: {exc}")
        if not optimized:
            shutil.copy2(source, dest)
        outputs.append(dest)
    outputs = hooks.run("after_images_processing", outputs, settings)
    logger.info("[images] %d file(s) processed.", len(outputs))
    return outputs


def _remove_old_outputs(build_path: Path, name: str) -> None:
    pattern = EXTENSION_RE.sub(lambda m: ".*" + m.group(1), name)
    for old in build_path.glob(pattern):
        if old.is_file():
            old.unlink()


def _concat(settings, inputs: list[str]) -> str:
    files = match_files(settings.source_root, inputs)
    if not files:
        warn("assets", ", ".join(inputs), "No input file matches this set.")
    return "\n".join(path.read_text(encoding="utf-8") for path in files)


def build_styles(settings, hooks: HookRunner) -> list[Path]:
    outputs = []
    for name, inputs in asset_sets(settings.styles, "styles").items():
        records = hooks.run("before_styles_processing", [AssetFile(name, _concat(settings, inputs))], settings)
        records = hooks.run("before_css_paths_correction", records, settings)
        for record in records:
            record.text = correct_css_paths(record.text, record.name, settings.content.directory_index_pattern)
        records = hooks.run("after_css_paths_correction", records, settings)
        for record in records:
            if settings.is_release:
                record.text = csscompressor.compress(record.text)
                record.text = license_header(settings, record.name, "/*!\n", "\n */\n", " * ") + record.text
        records = hooks.run("after_styles_processing", records, settings)
        _remove_old_outputs(settings.build_path, name)
        for record in records:
            path = settings.build_path / suffixed_name(record.name, settings.build_assets_suffix)
            write_text(path, record.text)
            outputs.append(path)
    logger.info("[styles] %d set(s) written.", len(outputs))
    return outputs


def build_scripts(settings, hooks: HookRunner) -> list[Path]:
    outputs = []
    for name, inputs in asset_sets(settings.scripts, "scripts").items():
        records = hooks.run("before_scripts_processing", [AssetFile(name, _concat(settings, inputs))], settings)
        for record in records:
            if settings.is_release:
                record.text = rjsmin.jsmin(record.text)
                record.text = license_header(settings, record.name, "/*!\n", "\n */\n", " * ") + record.text
        records = hooks.run("after_scripts_processing", records, settings)
        _remove_old_outputs(settings.build_path, name)
        for record in records:
            path = settings.build_path / suffixed_name(record.name, settings.build_assets_suffix)
            write_text(path, record.text)
            outputs.append(path)
    logger.info("[scripts] %d set(s) written.", len(outputs))
    return outputs
