from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

import jinja2
import markdown

from .content import MARKDOWN_SUFFIX, TEMPLATE_SUFFIX
from .context import SiteContext, is_path_in_children
from .errors import ContentRenderError, StructuralFileError
from .helpers import HelperTable
from .i18n import I18nCatalog
from .paths import RenderJob
from .utils import warn

PLACEHOLDER_RE = re.compile(r"\{\{\s*(title|short_title|root_url|canonical_url|lang)\s*\}\}")
CONTENT_PARTIAL = "content"


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@dataclass(frozen=True)
class RenderContext:
    current_path: str
    lang: str | None
    reference: str
    target: str | None
    translation_set: Mapping[str, str]
    title: str | None
    short_title: str | None
    master: str | None
    canonical_url: str | None
    root_url: str
    xmlsitemap: Mapping[str, object]
    more: Mapping[str, object]
    menus: dict = field(default_factory=dict)
    submenus: dict = field(default_factory=dict)
    app: dict = field(default_factory=dict)

    def with_more(self, extra: Mapping[str, object]) -> RenderContext:
        return replace(self, more={**self.more, **extra})

    def as_template_vars(self) -> dict:
        return {
            "current_path": self.current_path,
            "lang": self.lang,
            "reference": self.reference,
            "target": self.target,
            "translation_set": dict(self.translation_set),
            "title": self.title,
            "short_title": self.short_title,
            "master": self.master,
            "canonical_url": self.canonical_url,
            "root_url": self.root_url,
            "xmlsitemap": dict(self.xmlsitemap),
            "more": dict(self.more),
            "menus": self.menus,
            "submenus": self.submenus,
            "app": self.app,
            "render_context": self,
        }


@dataclass
class Page:
    job: RenderJob
    text: str
    errors: list[ContentRenderError] = field(default_factory=list)

    @property
    def output_path(self) -> str:
        return self.job.output_path

    @property
    def lang(self) -> str:
        return self.job.lang


def compute_submenus(menus: dict[str, list[dict]], source_path: str) -> dict[str, dict[str, list[dict]]]:
    # FIXME only the first child subtree containing the path is followed on each level,
    # which does not find every deeply nested node
    submenus = {}
    for name, menu in menus.items():
        levels: dict[str, list[dict]] = {}
        current = menu
        level = 0
        descend = True
        while descend:
            descend = False
            for node in current:
                children = node.get("children")
                if children and is_path_in_children(source_path, children):
                    current = children
                    level += 1
                    levels[f"level_{level}"] = current
                    descend = True
                    break
        submenus[name] = levels
    return submenus


def build_render_context(job: RenderJob, site: SiteContext, app: dict | None = None) -> RenderContext:
    entry = site.get(job.output_path) or job.entry
    menus = site.menus_copy()
    return RenderContext(
        current_path=job.output_path,
        lang=job.lang,
        reference=entry.reference,
        target=entry.target,
        translation_set=entry.translation_set,
        title=entry.title,
        short_title=entry.short_title,
        master=entry.master,
        canonical_url=entry.canonical_url,
        root_url=entry.root_url,
        xmlsitemap=entry.xmlsitemap,
        more=entry.more,
        menus=menus,
        submenus=compute_submenus(menus, site.source_path(job.output_path)),
        app=dict(app or {}),
    )


class TemplateRenderer:
    """Renders content bodies and page masters for one build.

    The Jinja environment and its helper table belong to this renderer, so a
    rebuild gets fresh ones instead of re-registering into shared state.
    """

    def __init__(self, settings, site: SiteContext, catalog: I18nCatalog):
        self.settings = settings
        self.site = site
        self.catalog = catalog
        self.env = self._create_environment()
        self.helpers = HelperTable(self)
        self.helpers.install(self.env)

    def _create_environment(self) -> jinja2.Environment:
        partials = {CONTENT_PARTIAL: "{{ content_html }}"}
        for name, path in self.settings.content.partials.items():
            try:
                partials[name] = Path(path).read_text(encoding="utf-8")
            except OSError as exc:
                raise StructuralFileError(f"Cannot read partial {path}: {exc}") from exc
        loader = jinja2.ChoiceLoader(
            [
                jinja2.DictLoader(partials),
                jinja2.FileSystemLoader(str(self.settings.source_root)),
            ]
        )
        return jinja2.Environment(loader=loader, autoescape=False, keep_trailing_newline=True)

    def render_context(self, job: RenderJob) -> RenderContext:
        return build_render_context(job, self.site, self.settings.exposed_app_variables())

    def render(self, job: RenderJob, text: str) -> Page:
        page = Page(job=job, text="")
        context = self.render_context(job)
        variables = context.as_template_vars()
        identifier = job.source_file.name if job.source_file else job.reference
        body = self.apply_template_processing(identifier, text, variables, job.reference, page.errors)
        if not context.master:
            page.text = body
            return page

        variables["content_html"] = body
        try:
            template = self.env.get_template(f"masters/{context.master}{TEMPLATE_SUFFIX}")
        except jinja2.TemplateNotFound:
            self._fail(page.errors, job.reference, f"Cannot find master template |{context.master}|.")
            return page
        except jinja2.TemplateSyntaxError as exc:
            self._fail(page.errors, job.reference, f"Cannot compile master template |{context.master}|: {exc}")
            return page
        page.text = self._evaluate(
            template, variables, job.reference, f"master template |{context.master}|", page.errors
        )
        return page

    def apply_template_processing(
        self,
        identifier: str,
        text: str,
        variables: dict,
        subject: str,
        errors: list[ContentRenderError] | None = None,
    ) -> str:
        if identifier.endswith(TEMPLATE_SUFFIX):
            try:
                template = self.env.from_string(text)
            except jinja2.TemplateSyntaxError as exc:
                self._fail(errors, subject, f"Cannot compile content template: {exc}")
                return ""
            return self._evaluate(template, variables, subject, "content template", errors)
        if identifier.endswith(MARKDOWN_SUFFIX):
            md = markdown.Markdown(extensions=self.settings.content.markdown_extensions)
            text = md.convert(text)
        # untemplated contents only get a few literal substitutions
        return PLACEHOLDER_RE.sub(lambda m: str(variables.get(m.group(1)) or ""), text)

    def _evaluate(
        self,
        template: jinja2.Template,
        variables: dict,
        subject: str,
        what: str,
        errors: list[ContentRenderError] | None,
    ) -> str:
        chunks = []
        try:
            for chunk in template.generate(variables):
                chunks.append(chunk)
        except StructuralFileError:
            raise
        except Exception as exc:
            # keep what was rendered so far; one broken content must not stop the build
            self._fail(errors, subject, f"Exception when rendering {what}: {exc}")
        return "".join(chunks)

    @staticmethod
    def _fail(errors: list[ContentRenderError] | None, subject: str, message: str) -> None:
        warn("content", subject, message)
        if errors is not None:
            errors.append(ContentRenderError(subject, message))
