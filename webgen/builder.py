from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from .assets import (
    AssetFile,
    add_markup_license,
    build_scripts,
    build_styles,
    copy_assets,
    html_replace,
    process_images,
)
from .content import ContentDescriptor, parse_descriptor
from .context import SiteContext, build_site_context
from .errors import ContentRenderError
from .hooks import HookRunner
from .i18n import I18nCatalog, load_catalog
from .paths import RenderJob, correct_content_paths, demux
from .render import Page, TemplateRenderer, write_text
from .sitemap import generate_xml_sitemap
from .typo import process_typo
from .utils import clean_output_dir, match_files, warn

logger = logging.getLogger("webgen.builder")

T = TypeVar("T")
R = TypeVar("R")

SITEMAP_FILENAME = "sitemap.xml"


@dataclass
class BuildReport:
    pages: list[str] = field(default_factory=list)
    failed: list[ContentRenderError] = field(default_factory=list)
    assets: list[Path] = field(default_factory=list)
    sitemap: Path | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed


class Builder:
    def __init__(self, settings, workers: int | None = None, hooks: HookRunner | None = None):
        self.settings = settings
        workers = workers or os.cpu_count() or 1
        self.workers = max(1, min(workers, 32))
        self.hooks = hooks if hooks is not None else HookRunner.from_paths(settings.hooks)
        self.hooks.notify("after_configuration_loading", settings)
        self.site: SiteContext | None = None
        self.catalog: I18nCatalog | None = None
        self.skipped: frozenset[str] = frozenset()
        self.generation = 0
        self._lock = threading.Lock()

    def _map(self, func: Callable[[T], R], items: Iterable[T]) -> list[R]:
        items = list(items)
        if len(items) <= 1 or self.workers == 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            return list(executor.map(func, items))

    def content_files(self) -> list[Path]:
        return match_files(self.settings.contents_root, self.settings.content.input)

    def relative_name(self, path: Path) -> str:
        return path.relative_to(self.settings.contents_root).as_posix()

    def _read_content(self, path: Path, failed: list[ContentRenderError]) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            relative = self.relative_name(path)
            warn("content", relative, "Cannot read this content file, it is skipped.")
            failed.append(ContentRenderError(relative, f"Cannot read content file: {exc}"))
            return None

    def _read_descriptor(self, path: Path, failed: list[ContentRenderError]) -> ContentDescriptor | None:
        text = self._read_content(path, failed)
        if text is None:
            return None
        return parse_descriptor(text, self.relative_name(path), self.settings.i18n.fallback_language)

    def load_site(self, report: BuildReport | None = None) -> SiteContext:
        """Parse every content and swap in a new site context.

        Nothing is written before this succeeds: a malformed descriptor or
        sitemap aborts the build here.
        """
        failed = report.failed if report is not None else []
        files = self.content_files()
        results = self._map(lambda path: self._read_descriptor(path, failed), files)
        skipped = frozenset(self.relative_name(path) for path, result in zip(files, results) if result is None)
        site = build_site_context([result for result in results if result is not None], self.settings)
        catalog = load_catalog(self.settings)
        with self._lock:
            self.site = site
            self.catalog = catalog
            self.skipped = skipped
        logger.debug("Site context loaded with %d entries.", len(site))
        return site

    def _require_site(self, report: BuildReport | None = None) -> tuple[SiteContext, I18nCatalog]:
        with self._lock:
            site, catalog = self.site, self.catalog
        if site is None or catalog is None:
            site = self.load_site(report)
            catalog = self.catalog
        return site, catalog

    def demux_jobs(self, site: SiteContext, report: BuildReport) -> list[RenderJob]:
        files = self.hooks.run("before_demux_paths", self.content_files(), self.settings)
        jobs = []
        with self._lock:
            skipped = self.skipped
        for path in files:
            if self.relative_name(path) in skipped:
                continue
            try:
                jobs.extend(demux(self.relative_name(path), site, path))
            except ContentRenderError as exc:
                warn("content", exc.subject, "No content context exists for this file.")
                report.failed.append(exc)
        return self.hooks.run("after_demux_paths", jobs, self.settings)

    def render_pages(self, renderer: TemplateRenderer, jobs: list[RenderJob], report: BuildReport) -> list[Page]:
        jobs = self.hooks.run("before_apply_template", jobs, self.settings)

        def render(job: RenderJob) -> Page | None:
            text = self._read_content(job.source_file, report.failed)
            if text is None:
                return None
            return renderer.render(job, text)

        pages = [page for page in self._map(render, jobs) if page is not None]
        return self.hooks.run("after_apply_template", pages, self.settings)

    def _stage(self, name: str, pages: list[Page], func: Callable[[Page], str]) -> list[Page]:
        pages = self.hooks.run(f"before_{name}", pages, self.settings)

        def apply(page: Page) -> Page:
            page.text = func(page)
            return page

        pages = self._map(apply, pages)
        return self.hooks.run(f"after_{name}", pages, self.settings)

    def process_html(self, pages: list[Page], catalog: I18nCatalog) -> list[Page]:
        settings = self.settings
        index_pattern = settings.content.directory_index_pattern
        pages = self.hooks.run("before_html_render", pages, settings)
        pages = self._stage(
            "i18n_processing",
            pages,
            lambda page: catalog.process_translations(
                catalog.process_language_tags(page.text, page.lang), page.lang, page.job.reference
            ),
        )
        pages = self._stage("typo_correction", pages, lambda page: process_typo(page.text, page.lang))
        for page in pages:
            page.text = html_replace(page.text, settings)
        pages = self._stage(
            "content_paths_correction",
            pages,
            lambda page: correct_content_paths(page.text, page.output_path, index_pattern),
        )
        for page in pages:
            page.text = add_markup_license(page.text, settings, page.output_path)
        return self.hooks.run("after_html_render", pages, settings)

    def build_contents(self, report: BuildReport | None = None) -> BuildReport:
        report = report or BuildReport()
        site, catalog = self._require_site(report)
        renderer = TemplateRenderer(self.settings, site, catalog)
        jobs = self.demux_jobs(site, report)
        pages = self.process_html(self.render_pages(renderer, jobs, report), catalog)
        for page in pages:
            write_text(self.settings.build_path / page.output_path, page.text)
            report.pages.append(page.output_path)
            report.failed.extend(page.errors)
        logger.info("[contents] %d page(s) written.", len(pages))
        return report

    def build_xml_sitemap(self) -> Path | None:
        defaults = self.settings.content.xmlsitemap
        if defaults is None:
            return None
        site, _ = self._require_site()
        self.hooks.notify("before_xml_sitemap_generation", site, self.settings)
        records = [AssetFile(SITEMAP_FILENAME, generate_xml_sitemap(site, defaults))]
        for record in records:
            record.text = add_markup_license(record.text, self.settings, record.name)
        records = self.hooks.run("after_xml_sitemap_generation", records, self.settings)
        path = None
        for record in records:
            path = self.settings.build_path / record.name
            write_text(path, record.text)
        logger.info("[sitemap] %s written.", SITEMAP_FILENAME)
        return path

    def build_styles(self) -> list[Path]:
        return build_styles(self.settings, self.hooks)

    def build_scripts(self) -> list[Path]:
        return build_scripts(self.settings, self.hooks)

    def copy_assets(self) -> list[Path]:
        return copy_assets(self.settings, self.hooks)

    def process_images(self) -> list[Path]:
        return process_images(self.settings, self.hooks)

    def clean(self) -> None:
        self.hooks.notify("before_clean_build_dir", self.settings)
        clean_output_dir(
            self.settings.build_path,
            self.settings.root,
            allow_outside=self.settings.build_delete_outside_of_config_dir,
        )
        self.hooks.notify("after_clean_build_dir", self.settings)
        logger.info("[clean] %s removed.", self.settings.build_path)

    def rebuild_contents(self) -> BuildReport:
        report = BuildReport()
        self.load_site(report)
        self.build_contents(report)
        report.sitemap = self.build_xml_sitemap()
        self.generation += 1
        return report

    def build(self, clean: bool = False) -> BuildReport:
        started = time.perf_counter()
        report = BuildReport()
        self.load_site(report)
        if clean:
            self.clean()
        report.assets.extend(self.copy_assets())
        report.assets.extend(self.process_images())
        report.assets.extend(self.build_styles())
        report.assets.extend(self.build_scripts())
        self.build_contents(report)
        report.sitemap = self.build_xml_sitemap()
        report.elapsed = time.perf_counter() - started
        self.generation += 1
        return report

    def extract_i18n(self) -> Path | None:
        source = self.settings.i18n.source
        if source is None:
            warn("i18n", "i18n-extract", "No i18n source file is configured.")
            return None
        files = list(self.content_files())
        files += match_files(self.settings.masters_root, ["*.j2", "**/*.j2"])
        files += [Path(path) for path in self.settings.content.partials.values() if Path(path).is_file()]
        inputs = []
        for path in files:
            try:
                name = path.relative_to(self.settings.root).as_posix()
            except ValueError:
                name = path.as_posix()
            inputs.append((name, path.read_text(encoding="utf-8")))
        catalog = load_catalog(self.settings)
        extracted = catalog.extract_strings(inputs)
        catalog.write_source_file(source, extracted)
        logger.info("[i18n] %d string(s) written to %s.", len(extracted), source)
        return source
