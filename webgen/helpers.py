from __future__ import annotations

import html
import json
import re

import jinja2
from jinja2 import pass_context

from .config import resolve_tool_path
from .context import is_path_in_children
from .errors import ContentRenderError, StructuralFileError
from .utils import warn

TAG_RE = re.compile(r"<[^>]+>")
LANGUAGE_LABEL_STYLES = ("native", "short", "current")


def _render_context(ctx: jinja2.runtime.Context):
    rc = ctx.get("render_context")
    if rc is None:
        raise ContentRenderError("template", "Helper called outside of a content rendering.")
    return rc


class HelperTable:
    """Template helpers and filters bound to one renderer.

    Every helper reads the content being rendered from the explicit
    ``render_context`` template variable, never from shared state.
    """

    def __init__(self, renderer):
        self.renderer = renderer

    @property
    def site(self):
        return self.renderer.site

    @property
    def settings(self):
        return self.renderer.settings

    def install(self, env: jinja2.Environment) -> None:
        env.globals.update(
            i18n=self.i18n,
            get_path=self.get_path,
            get_language_label=self.get_language_label,
            get_title=self.get_title,
            get_menu_item_classes=self.get_menu_item_classes,
            must_expand_menu=self.must_expand_menu,
            include_file=self.include_file,
        )
        env.filters.update(
            strip_html=strip_html,
            passthrough=passthrough,
            json=json_dump,
        )

    @pass_context
    def i18n(self, ctx, text: str) -> str:
        rc = _render_context(ctx)
        return self.renderer.catalog.translate(str(text), rc.lang, rc.reference)

    @pass_context
    def get_path(self, ctx, path: str, lang: str | None = None, canonical: bool = False) -> str:
        rc = _render_context(ctx)
        lang = lang or rc.lang or self.settings.i18n.fallback_language
        entry = self.site.get(path)
        if entry is None or lang not in entry.translation_set:
            warn("content", rc.reference, f"Could not find path for |{path}| in language |{lang}|.")
            return path
        target = entry.translation_set[lang]
        if canonical:
            target_entry = self.site.get(target)
            if target_entry is not None and target_entry.canonical_url:
                return target_entry.canonical_url
        return target

    @pass_context
    def get_language_label(self, ctx, code: str, style: str = "native", context=None) -> str:
        rc = _render_context(ctx)
        if isinstance(context, dict):
            context = context.get("render_context")
        current = getattr(context, "lang", None) or rc.lang or self.settings.i18n.fallback_language
        if style not in LANGUAGE_LABEL_STYLES:
            raise ContentRenderError(rc.reference, f"Invalid language label style: {style}")
        if style == "short":
            return code
        if style == "native":
            current = code
        label = self.settings.i18n.labels.get(code, {}).get(current)
        if not label:
            raise ContentRenderError(rc.reference, f"Missing language label for {code} in {current}.")
        return label

    @pass_context
    def get_title(self, ctx, path: str, short: bool = False) -> str:
        rc = _render_context(ctx)
        entry = self.site.get(path)
        title = None
        if entry is not None:
            title = entry.short_title if short else entry.title
        if not title:
            warn("content", rc.reference, f"Could not find title for |{path}|.")
            return f'<span class="webgen-debug webgen-error">Missing title for {html.escape(str(path))}</span>'
        return title

    @pass_context
    def get_menu_item_classes(self, ctx, is_first: bool, is_last: bool, item_id: str, children=None) -> str:
        rc = _render_context(ctx)
        current = self.site.source_path(rc.current_path)
        classes = []
        if is_first:
            classes.append("first")
        if is_last:
            classes.append("last")
        if children:
            classes.append("has-children")
        if item_id == current:
            classes.append("active")
        elif children and _in_children(current, children):
            classes.append("active-trail")
        if not classes:
            return ""
        return f' class="{" ".join(classes)}"'

    @pass_context
    def must_expand_menu(self, ctx, policy: str | None, children, item_id: str) -> bool:
        rc = _render_context(ctx)
        if not children:
            return False
        policy = policy or "always"
        if policy == "always":
            return True
        if policy == "never":
            return False
        if policy == "active_trail":
            current = self.site.source_path(rc.current_path)
            return item_id == current or _in_children(current, children)
        return False

    @pass_context
    def include_file(self, ctx, path: str, **extra) -> str:
        rc = _render_context(ctx)
        file = resolve_tool_path(str(path), self.settings.source_root)
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as exc:
            raise StructuralFileError(f"Cannot read included file {file}: {exc}") from exc
        variables = dict(ctx.get_all())
        variables.update(rc.with_more(extra).as_template_vars())
        return self.renderer.apply_template_processing(file.name, text, variables, rc.reference)


def _in_children(path: str, children) -> bool:
    return is_path_in_children(path, list(children))


def strip_html(value) -> str:
    return TAG_RE.sub("", str(value))


def passthrough(value) -> str:
    return f"<no-typo>{value}</no-typo>"


def json_dump(value) -> str:
    dumped = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return f"<no-typo><pre>{html.escape(dumped)}</pre></no-typo>"
