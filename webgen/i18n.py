from __future__ import annotations

import csv
import io
import re
from pathlib import Path

from .utils import warn

HTML_LANG_RE = re.compile(r"""<html\s+?[^>]*?lang=(["'])([a-zA-Z\-]+?)\1[^>]*?>""")
I18N_TAG_RE = re.compile(r"<i18n>(.*?)</i18n>", re.DOTALL)
I18N_BRACE_RE = re.compile(r"\{i18n\s+(.*?)\s*\}", re.DOTALL)
I18N_HELPER_RE = re.compile(r"""i18n\(\s*(["'])(.*?)(?<!\\)\1\s*\)""", re.DOTALL)
WHITESPACE_RE = re.compile(r"\s+")

SOURCE_FILE_COLUMN = "source file (first match)"
COMMENT_COLUMN = "comment"


def normalize(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def auto_detect_language(text: str) -> str | None:
    match = HTML_LANG_RE.search(text)
    if match:
        return match.group(2)
    return None


class I18nCatalog:
    """Translation table keyed by the normalized fallback-language string."""

    def __init__(
        self,
        data: dict[str, dict[str, str]],
        fallback_language: str,
        languages: list[str],
        is_release: bool = False,
    ):
        self.data = data
        self.fallback_language = fallback_language
        self.languages = languages
        self.is_release = is_release

    @classmethod
    def from_csv(
        cls, text: str, fallback_language: str, languages: list[str], is_release: bool = False
    ) -> I18nCatalog:
        data: dict[str, dict[str, str]] = {}
        for row in csv.DictReader(io.StringIO(text)):
            key = row.get(fallback_language)
            if not key:
                continue
            key = normalize(key)
            entry = data.setdefault(key, {})
            for lang, value in row.items():
                if lang is None or value is None:
                    continue
                entry[lang] = normalize(value)
        return cls(data, fallback_language, languages, is_release)

    def get_translation(self, source: str, lang: str) -> str | None:
        translation = self.data.get(normalize(source), {}).get(lang)
        return translation or None

    def translate(self, source: str, lang: str | None, subject: str) -> str:
        source = normalize(source)
        if not lang:
            warn("i18n", subject, f"A translatable string has been found in a non-translated file: |{source}|.")
            return source
        translation = self.get_translation(source, lang)
        if translation:
            return translation

        classes = "i18n-missing-translation"
        warn(
            "i18n",
            subject,
            f"Cannot find translation for |{source}| in |{lang}|. "
            f"Falling back to fallback language |{self.fallback_language}|.",
        )
        translation = self.get_translation(source, self.fallback_language)
        if translation:
            classes += " i18n-is-language-fallback"
        else:
            warn("i18n", subject, f"Also no translation for the fallback language |{self.fallback_language}|.")
            classes += " i18n-no-language-fallback"
        text = translation or source
        if self.is_release:
            return text
        return f'<span class="webgen-debug webgen-error i18n-error {classes}">{text}</span>'

    def process_language_tags(self, content: str, lang: str | None) -> str:
        # <fr>...</fr> is kept for French pages only, <not-fr>...</not-fr> everywhere else
        for candidate in self.languages:
            keep = candidate == lang
            for prefix, wanted in (("", keep), ("not-", not keep)):
                pattern = re.compile(
                    rf"<{prefix}{re.escape(candidate)}(?:\s[^>]*)?>(.*?)</{prefix}{re.escape(candidate)}>",
                    re.DOTALL,
                )
                content = pattern.sub(lambda m: m.group(1) if wanted else "", content)
        return content

    def process_translations(self, content: str, lang: str | None, subject: str) -> str:
        content = I18N_TAG_RE.sub(lambda m: self.translate(m.group(1), lang, subject), content)
        return I18N_BRACE_RE.sub(lambda m: self.translate(m.group(1), lang, subject), content)

    def extract_strings(self, files: list[tuple[str, str]]) -> dict[str, dict[str, str]]:
        extracted: dict[str, dict[str, str]] = {}
        for name, text in files:
            sources = [m.group(1) for m in I18N_TAG_RE.finditer(text)]
            sources += [m.group(1) for m in I18N_BRACE_RE.finditer(text)]
            sources += [m.group(2) for m in I18N_HELPER_RE.finditer(text)]
            for source in sources:
                if source.startswith("{{"):
                    continue
                source = normalize(source)
                if not source or source in extracted:
                    continue
                row = {
                    SOURCE_FILE_COLUMN: name,
                    COMMENT_COLUMN: self.get_translation(source, COMMENT_COLUMN) or "",
                }
                for lang in self.languages:
                    if lang == self.fallback_language:
                        row[lang] = source
                    else:
                        row[lang] = self.get_translation(source, lang) or ""
                extracted[source] = row
        return extracted

    def write_source_file(self, path: Path, extracted: dict[str, dict[str, str]]) -> None:
        buffer = io.StringIO()
        writer = csv.DictWriter(
            buffer,
            fieldnames=[SOURCE_FILE_COLUMN, COMMENT_COLUMN, *self.languages],
            lineterminator="\r\n",
        )
        writer.writeheader()
        for row in extracted.values():
            writer.writerow(row)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(buffer.getvalue(), encoding="utf-8", newline="")


def load_catalog(settings) -> I18nCatalog:
    languages = list(settings.i18n.labels.keys())
    source = settings.i18n.source
    text = ""
    if source is not None:
        try:
            text = source.read_text(encoding="utf-8")
        except OSError:
            # a site does not need translations to build
            warn("i18n", str(source), "Cannot read i18n input file.")
    return I18nCatalog.from_csv(text, settings.i18n.fallback_language, languages, settings.is_release)
