from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping

from .content import ContentDescriptor
from .errors import ConfigurationError
from .utils import join_url

MAX_MENU_DEPTH = 32


@dataclass(frozen=True)
class ContentEntry:
    reference: str
    target: str | None
    translation_set: Mapping[str, str]
    title: str | None
    short_title: str | None
    master: str | None
    xmlsitemap: Mapping[str, object]
    more: Mapping[str, object]
    root_url: str
    canonical_url: str | None = None
    lang: str | None = None


@dataclass(frozen=True)
class MenuNode:
    id: str
    children: tuple[MenuNode, ...] | None = None

    def as_dict(self) -> dict:
        item: dict = {"id": self.id}
        if self.children is not None:
            item["children"] = [child.as_dict() for child in self.children]
        return item


@dataclass(frozen=True)
class SiteContext:
    """Read-only view over every content of the site and the navigation menus."""

    _contents: Mapping[str, ContentEntry]
    menus: Mapping[str, tuple[MenuNode, ...]] = field(default_factory=dict)

    def __getitem__(self, path: str) -> ContentEntry:
        return self._contents[path]

    def __contains__(self, path: object) -> bool:
        return path in self._contents

    def __iter__(self) -> Iterator[str]:
        return iter(self._contents)

    def __len__(self) -> int:
        return len(self._contents)

    def get(self, path: str) -> ContentEntry | None:
        return self._contents.get(path)

    def items(self):
        return self._contents.items()

    def source_path(self, path: str) -> str:
        entry = self._contents.get(path)
        if entry is None:
            return path
        return entry.reference

    def menus_copy(self) -> dict[str, list[dict]]:
        return {name: [node.as_dict() for node in nodes] for name, nodes in self.menus.items()}


def strip_directory_index(path: str, index_pattern: str | None) -> str:
    if not index_pattern:
        return path
    # never return an empty link: a bare index file becomes the current directory
    if re.match("^" + index_pattern, path):
        return "./"
    return re.sub(index_pattern, "", path)


def is_path_in_children(path: str, children: list[dict] | None) -> bool:
    for child in children or []:
        if child["id"] == path:
            return True
        if child.get("children") and is_path_in_children(path, child["children"]):
            return True
    return False


def gen_menus(items: Mapping) -> dict[str, tuple[MenuNode, ...]]:
    menus = {}
    for name, entries in items.items():
        menus[str(name)] = _gen_menu(entries, (), 0, f"sitemap/{name}")
    return menus


def _gen_menu(entries: object, ancestors: tuple[str, ...], depth: int, where: str) -> tuple[MenuNode, ...]:
    if depth > MAX_MENU_DEPTH:
        raise ConfigurationError(f"Sitemap {where} is nested more than {MAX_MENU_DEPTH} levels deep (cycle?).")
    if not isinstance(entries, list):
        raise ConfigurationError(f"Sitemap {where} must be a list.")
    nodes = []
    for entry in entries:
        if isinstance(entry, str):
            if entry in ancestors:
                raise ConfigurationError(f"Sitemap item {entry} is its own descendant in {where}.")
            nodes.append(MenuNode(entry))
            continue
        if not isinstance(entry, dict) or len(entry) != 1:
            raise ConfigurationError(f"Sitemap {where} items must be strings or single-key mappings.")
        ((key, children),) = entry.items()
        key = str(key)
        if key in ancestors:
            raise ConfigurationError(f"Sitemap item {key} is its own descendant in {where}.")
        nodes.append(MenuNode(key, _gen_menu(children, ancestors + (key,), depth + 1, f"{where}/{key}")))
    return tuple(nodes)


class SiteContextBuilder:
    def __init__(self, root_url: str, directory_index_pattern: str | None):
        self.root_url = root_url
        self.directory_index_pattern = directory_index_pattern
        self._contents: dict[str, ContentEntry] = {}
        self._menus: dict[str, tuple[MenuNode, ...]] = {}

    def add(self, descriptor: ContentDescriptor) -> None:
        reference = ContentEntry(
            reference=descriptor.original_path,
            target=None,
            translation_set=descriptor.translation_set,
            title=descriptor.title,
            short_title=descriptor.short_title,
            master=descriptor.master,
            xmlsitemap=descriptor.xmlsitemap,
            more=descriptor.more,
            root_url=self.root_url,
        )
        self._contents[descriptor.original_path] = reference
        for lang, path in descriptor.translation_set.items():
            # a single-language content may overwrite its own reference entry
            self._contents[path] = ContentEntry(
                reference=reference.reference,
                target=path,
                translation_set=reference.translation_set,
                title=reference.title,
                short_title=reference.short_title,
                master=reference.master,
                xmlsitemap=reference.xmlsitemap,
                more=reference.more,
                root_url=self.root_url,
                canonical_url=strip_directory_index(join_url(self.root_url, path), self.directory_index_pattern),
                lang=lang,
            )

    def set_menus(self, sitemap: Mapping) -> None:
        try:
            self._menus = gen_menus(sitemap)
        except RecursionError as exc:
            raise ConfigurationError("Sitemap is recursive.") from exc

    def build(self) -> SiteContext:
        return SiteContext(MappingProxyType(dict(self._contents)), MappingProxyType(dict(self._menus)))


def build_site_context(descriptors: list[ContentDescriptor], settings) -> SiteContext:
    builder = SiteContextBuilder(settings.root_url, settings.content.directory_index_pattern)
    builder.set_menus(settings.content.sitemap)
    for descriptor in descriptors:
        builder.add(descriptor)
    return builder.build()
