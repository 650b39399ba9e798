from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

import yaml

from .errors import ConfigurationError
from .i18n import auto_detect_language

CONFIG_BLOCK_RE = re.compile(
    r"start-content-config[^\n]*\n(?P<body>.*?)\n?[^\n]*?end-content-config",
    re.DOTALL,
)
TEMPLATE_SUFFIX_RE = re.compile(r"\.(j2|md)$")
TEMPLATE_SUFFIX = ".j2"
MARKDOWN_SUFFIX = ".md"


@dataclass(frozen=True)
class ContentDescriptor:
    original_path: str
    translation_set: Mapping[str, str]
    title: str | None
    short_title: str | None
    master: str | None = None
    xmlsitemap: Mapping[str, object] = field(default_factory=dict)
    more: Mapping[str, object] = field(default_factory=dict)


def extract_config_block(text: str) -> str | None:
    match = CONFIG_BLOCK_RE.search(text)
    if not match:
        return None
    return match.group("body")


def default_output_path(relative: str) -> str:
    return "/" + TEMPLATE_SUFFIX_RE.sub(".html", relative)


def parse_descriptor(text: str, relative: str, fallback_language: str) -> ContentDescriptor:
    """Read the per-content metadata block of a content file.

    ``relative`` is the identifier of the file below the contents directory.
    Contents must live directly in that directory: output path correction
    assumes a single directory level.
    """
    if "/" in relative:
        raise ConfigurationError(
            f"Error processing file {relative}: contents cannot be stored in a sub-directory."
        )

    conf: dict = {}
    block = extract_config_block(text)
    if block is not None:
        try:
            conf = yaml.safe_load(block.replace("\t", " "))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse YAML configuration in {relative}: {exc}") from exc
        if not isinstance(conf, dict):
            raise ConfigurationError(f"Cannot parse YAML configuration in {relative}.")

    path = conf.get("path") or default_output_path(relative)
    if isinstance(path, str):
        lang = auto_detect_language(text) or fallback_language
        path = {lang: path}
    if not isinstance(path, dict):
        raise ConfigurationError(f"Path in {relative} must be a string or a language mapping.")

    translation_set = {}
    for lang, value in path.items():
        value = str(value)
        if not value.startswith("/"):
            raise ConfigurationError(f"Path {value} does not start with / in {relative}.")
        translation_set[str(lang)] = value[1:]

    for key in ("xmlsitemap", "more"):
        if conf.get(key) is not None and not isinstance(conf[key], dict):
            raise ConfigurationError(f"Field {key} must be a mapping in {relative}.")

    title = conf.get("title") or relative
    short_title = conf.get("shortTitle") or title
    master = conf.get("master") or None
    return ContentDescriptor(
        original_path=relative,
        translation_set=MappingProxyType(translation_set),
        title=str(title),
        short_title=str(short_title),
        master=str(master) if master else None,
        xmlsitemap=MappingProxyType(dict(conf.get("xmlsitemap") or {})),
        more=MappingProxyType(dict(conf.get("more") or {})),
    )
