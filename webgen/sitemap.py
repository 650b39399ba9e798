from __future__ import annotations

import html

from .config import XmlSitemapSettings
from .context import SiteContext

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
URLSET_OPEN = (
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"'
    ' xmlns:xhtml="http://www.w3.org/1999/xhtml">'
)


def _hint(value: object, default: str | None) -> str | None:
    if value is None or value == "" or value == "auto":
        return default
    return str(value)


def collect_sitemap_urls(site: SiteContext, defaults: XmlSitemapSettings | None) -> dict[str, dict]:
    default_priority = defaults.default_priority if defaults else None
    default_frequency = defaults.default_change_frequency if defaults else None
    data: dict[str, dict] = {}
    for path, entry in site.items():
        # reference entries only point at their translations
        if not entry.target or not entry.canonical_url:
            continue
        hints = entry.xmlsitemap or {}
        alternates = {}
        reference = site.get(entry.reference)
        translation_set = reference.translation_set if reference else entry.translation_set
        for lang, other in translation_set.items():
            other_entry = site.get(other)
            if other_entry is not None and other_entry.canonical_url:
                alternates[lang] = other_entry.canonical_url
        data[entry.canonical_url] = {
            "priority": _hint(hints.get("priority"), default_priority),
            "frequency": _hint(hints.get("frequency"), default_frequency),
            "alternates": alternates,
        }
    return data


def generate_xml_sitemap(site: SiteContext, defaults: XmlSitemapSettings | None) -> str:
    items = []
    for url, info in collect_sitemap_urls(site, defaults).items():
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        for lang, href in info["alternates"].items():
            lines.append(
                f'<xhtml:link rel="alternate" hreflang="{html.escape(lang)}" href="{html.escape(href)}" />'
            )
        if info["priority"]:
            lines.append(f"<priority>{info['priority']}</priority>")
        if info["frequency"]:
            lines.append(f"<changefreq>{info['frequency']}</changefreq>")
        lines.append("</url>")
        items.append("\n".join(lines))
    parts = [XML_DECLARATION, URLSET_OPEN]
    if items:
        parts.append("\n".join(items))
    parts.append("</urlset>")
    return "\n".join(parts)
