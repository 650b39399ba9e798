from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from .context import ContentEntry, SiteContext, strip_directory_index
from .errors import ContentRenderError

PASSTHROUGH_RE = re.compile(r"^(?:/|#|mailto:|data:|tel:|javascript:|[a-zA-Z][a-zA-Z0-9+.\-]*://)")
DIR_PART_RE = re.compile(r"^([^/]+/)")

# href|src + = + quote + link + quote
CONTENT_LINK_RE = re.compile(r"""(?P<prefix>\b(?:src|href)=)(?P<quote>["'])(?P<link>.*?)(?P=quote)""", re.DOTALL)
# url( + optional quote + link + quote + )
CSS_LINK_RE = re.compile(r"""(?P<prefix>url\(\s*)(?P<quote>["']?)(?P<link>[^"')]*?)(?P=quote)(?P<suffix>\s*\))""")


@dataclass(frozen=True)
class RenderJob:
    entry: ContentEntry
    lang: str
    output_path: str
    source_file: Path | None = None

    @property
    def reference(self) -> str:
        return self.entry.reference


def demux(relative: str, site: SiteContext, source_file: Path | None = None) -> list[RenderJob]:
    """Split one content source into one render job per declared language."""
    entry = site.get(relative)
    if entry is None:
        raise ContentRenderError(relative, "No content context exists for this file.")
    return [
        RenderJob(entry=entry, lang=lang, output_path=path, source_file=source_file)
        for lang, path in entry.translation_set.items()
    ]


def rewrite_link(link: str, file_relative: str, index_pattern: str | None) -> str:
    if not link or PASSTHROUGH_RE.match(link):
        return link

    # contents are authored one level below the build root
    if link.startswith("../"):
        link = link[3:]

    processed = file_relative
    while True:
        match = DIR_PART_RE.match(processed)
        if not match or not link.startswith(match.group(1)):
            break
        link = link[len(match.group(1)) :]
        processed = processed[len(match.group(1)) :]

    link = "../" * processed.count("/") + link
    return strip_directory_index(link, index_pattern)


def _replace_paths(pattern: re.Pattern, text: str, file_relative: str, index_pattern: str | None) -> str:
    def repl(match: re.Match) -> str:
        link = match.group("link")
        if not link:
            return match.group(0)
        groups = match.groupdict()
        return (
            groups["prefix"]
            + groups["quote"]
            + rewrite_link(link, file_relative, index_pattern)
            + groups["quote"]
            + (groups.get("suffix") or "")
        )

    return pattern.sub(repl, text)


def correct_content_paths(text: str, file_relative: str, index_pattern: str | None) -> str:
    return _replace_paths(CONTENT_LINK_RE, text, file_relative, index_pattern)


def correct_css_paths(text: str, file_relative: str, index_pattern: str | None) -> str:
    return _replace_paths(CSS_LINK_RE, text, file_relative, index_pattern)
