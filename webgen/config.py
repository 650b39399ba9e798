from __future__ import annotations

import copy
import datetime as dt
import json
import os
import random
import re
import time
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from .cache import release_suffix
from .errors import ConfigurationError

CONFIG_FILENAME = "webgen.yaml"
TOOLS_ROOT = Path(__file__).resolve().parent
CHANGE_FREQUENCIES = {"auto", "always", "hourly", "daily", "weekly", "monthly", "yearly", "never"}
PRIORITY_RE = re.compile(r"^[01]\.\d+$")

DEFAULTS: dict = {
    "root_url": "http://localhost",
    "source_path_root": "src",
    "build_path_root": ".",
    "build_delete_outside_of_config_dir": False,
    "license_template_file": None,
    "hooks": [],
    "content": {
        "input": ["*.j2", "*.md", "*.html"],
        "watch_more": [],
        "partials": {},
        "sitemap": {},
        "directory_index_pattern": r"index\.html$",
        "markdown_extensions": ["fenced_code", "tables", "codehilite"],
        "xmlsitemap": {
            "default_priority": "0.5",
            "default_change_frequency": "monthly",
        },
    },
    "i18n": {
        "source": "i18n.csv",
        "fallback_language": "en",
        "labels": {
            "en": {"en": "English"},
        },
    },
    "assets": {"input": []},
    "images": {"input": []},
    "styles": {"sets": {}},
    "scripts": {"sets": {}},
    "serve": {"port": 8000, "live_reload": True},
}


@dataclass(frozen=True)
class XmlSitemapSettings:
    default_priority: str | None
    default_change_frequency: str | None


@dataclass(frozen=True)
class ContentSettings:
    input: list[str]
    watch_more: list[str]
    partials: dict[str, Path]
    sitemap: dict
    directory_index_pattern: str | None
    markdown_extensions: list[str]
    xmlsitemap: XmlSitemapSettings | None


@dataclass(frozen=True)
class I18nSettings:
    source: Path | None
    fallback_language: str
    labels: dict[str, dict[str, str]]


@dataclass(frozen=True)
class Settings:
    source: Path
    root: Path
    source_root: Path
    tools_root: Path
    root_url: str
    app_name: str
    app_version: str
    author: str
    is_release: bool
    build_path_root: str
    build_path: Path
    build_assets_suffix: str
    build_date_time: str
    build_user: str
    build_delete_outside_of_config_dir: bool
    license_text: str
    hooks: list[Path]
    content: ContentSettings
    i18n: I18nSettings
    assets: dict
    images: dict
    styles: dict
    scripts: dict
    serve: dict
    raw: dict = field(repr=False, default_factory=dict)

    @property
    def contents_root(self) -> Path:
        return self.source_root / "contents"

    @property
    def masters_root(self) -> Path:
        return self.source_root / "masters"

    def release(self) -> Settings:
        return replace(
            self,
            is_release=True,
            build_assets_suffix=release_suffix(self.app_version),
            build_path=build_path_for(self.root, self.build_path_root, self.app_name, self.app_version, True),
        )

    def exposed_app_variables(self) -> dict:
        return {
            "author": self.author,
            "is_release": self.is_release,
            "build_date_time": self.build_date_time,
            "build_user": self.build_user,
            "root_url": self.root_url,
            "app_name": self.app_name,
            "app_version": self.app_version,
            "generator_name": "webgen",
        }


def load_config(path: Path) -> dict:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            # YAML does not accept tabs for indentation
            data = yaml.safe_load(text.replace("\t", " "))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config must be a mapping: {path}")
    return data


def merge_recursive(base: dict, override: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_recursive(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def guess_config_file(explicit: str | None = None, cwd: Path | None = None) -> Path:
    value = explicit or os.environ.get("WEBGEN_CONFIG")
    if value:
        return Path(value)
    cwd = cwd or Path.cwd()
    found = [
        path
        for path in cwd.rglob(CONFIG_FILENAME)
        if "node_modules" not in path.parts and ".git" not in path.parts
    ]
    if not found:
        raise ConfigurationError(f"No configuration option set and no {CONFIG_FILENAME} found.")
    if len(found) > 1:
        raise ConfigurationError(f"More than one {CONFIG_FILENAME} found below {cwd}; use --config.")
    return found[0]


def read_project_metadata(root: Path) -> dict:
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return {}
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError:
        return {}
    project = data.get("project", {})
    authors = project.get("authors") or []
    author = authors[0].get("name", "") if authors and isinstance(authors[0], dict) else ""
    return {"name": project.get("name"), "version": project.get("version"), "author": author}


def build_path_for(root: Path, build_path_root: str, app_name: str, app_version: str, is_release: bool) -> Path:
    base = (root / build_path_root).resolve()
    if is_release:
        return base / f"{app_name}-{app_version}"
    return base / "build-dev"


def resolve_tool_path(value: str, source_root: Path) -> Path:
    # paths starting with / are relative to the tool, others to the project sources
    if value.startswith("/"):
        return TOOLS_ROOT / value.lstrip("/")
    return source_root / value


def _as_list(value: object) -> list:
    if value is None or value is False:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return list(value)


def _sitemap_defaults(data: object) -> XmlSitemapSettings | None:
    if data is False or data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigurationError("No configuration for XML site map.")
    frequency = data.get("default_change_frequency")
    priority = data.get("default_priority")
    if not frequency:
        raise ConfigurationError("No default change frequency for XML sitemap.")
    if priority is None or priority == "":
        raise ConfigurationError("No default priority for XML sitemap.")
    if frequency not in CHANGE_FREQUENCIES:
        raise ConfigurationError(f"Invalid default XML sitemap change frequency: {frequency}")
    priority = str(priority)
    if priority != "auto" and not (PRIORITY_RE.match(priority) and float(priority) <= 1.0):
        raise ConfigurationError(f"Invalid default XML sitemap priority: {priority}")
    return XmlSitemapSettings(
        default_priority=None if priority == "auto" else priority,
        default_change_frequency=None if frequency == "auto" else frequency,
    )


def settings_from_dict(data: dict, source: Path, is_release: bool = False) -> Settings:
    root = source.resolve().parent
    conf = merge_recursive(DEFAULTS, data)
    project = read_project_metadata(root)
    app_name = conf.get("app_name") or project.get("name")
    app_version = conf.get("app_version") or project.get("version")
    if not app_name:
        raise ConfigurationError("Missing configuration: app_name (webgen.yaml) or [project].name (pyproject.toml)")
    if not app_version:
        raise ConfigurationError(
            "Missing configuration: app_version (webgen.yaml) or [project].version (pyproject.toml)"
        )
    app_version = str(app_version)
    source_root = (root / (conf.get("source_path_root") or ".")).resolve()

    content = conf.get("content")
    if not isinstance(content, dict):
        raise ConfigurationError("No configuration section for contents.")
    inputs = _as_list(content.get("input"))
    if not inputs:
        raise ConfigurationError("No input filter for template contents.")
    partials = content.get("partials") or {}
    if not isinstance(partials, dict):
        raise ConfigurationError("Defined partials is not a mapping.")
    sitemap = content.get("sitemap") or {}
    if not isinstance(sitemap, dict):
        raise ConfigurationError("Sitemap that has been defined is not a mapping.")

    i18n = conf.get("i18n")
    if not isinstance(i18n, dict):
        raise ConfigurationError("No configuration section for i18n.")
    if not i18n.get("fallback_language"):
        raise ConfigurationError("No fallback language has been defined.")
    labels = i18n.get("labels")
    if not isinstance(labels, dict) or not labels:
        raise ConfigurationError("No translations for i18n labels have been defined.")

    license_text = ""
    if conf.get("license_template_file"):
        license_path = source_root / conf["license_template_file"]
        try:
            license_text = license_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read license template {license_path}: {exc}") from exc

    build_path_root = str(conf.get("build_path_root") or ".")
    now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    settings = Settings(
        source=source.resolve(),
        root=root,
        source_root=source_root,
        tools_root=TOOLS_ROOT,
        root_url=str(conf.get("root_url") or "http://localhost").rstrip("/"),
        app_name=str(app_name),
        app_version=app_version,
        author=str(conf.get("author") or project.get("author") or ""),
        is_release=False,
        build_path_root=build_path_root,
        build_path=build_path_for(root, build_path_root, str(app_name), app_version, False),
        build_assets_suffix=f".dev-{int(time.time() * 1000)}-{random.randint(1, 1000)}",
        build_date_time=now.strftime("%Y-%m-%dT%H:%M:%SZ"),
        build_user=os.environ.get("USER", ""),
        build_delete_outside_of_config_dir=bool(conf.get("build_delete_outside_of_config_dir")),
        license_text=license_text,
        hooks=[resolve_tool_path(item, source_root) for item in _as_list(conf.get("hooks"))],
        content=ContentSettings(
            input=[str(item) for item in inputs],
            watch_more=[str(item) for item in _as_list(content.get("watch_more"))],
            partials={name: resolve_tool_path(str(value), source_root) for name, value in partials.items()},
            sitemap=sitemap,
            directory_index_pattern=content.get("directory_index_pattern") or None,
            markdown_extensions=list(content.get("markdown_extensions") or []),
            xmlsitemap=_sitemap_defaults(content.get("xmlsitemap")),
        ),
        i18n=I18nSettings(
            source=(root / i18n["source"]) if i18n.get("source") else None,
            fallback_language=str(i18n["fallback_language"]),
            labels=labels,
        ),
        assets=conf.get("assets") or {"input": []},
        images=conf.get("images") or {"input": []},
        styles=conf.get("styles") or {"sets": {}},
        scripts=conf.get("scripts") or {"sets": {}},
        serve=conf.get("serve") or {},
        raw=conf,
    )
    return settings.release() if is_release else settings


def load_settings(path: Path, release: bool = False) -> Settings:
    return settings_from_dict(load_config(path), path, is_release=release)
