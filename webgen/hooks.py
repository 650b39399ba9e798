from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from types import ModuleType

from .errors import ConfigurationError

logger = logging.getLogger("webgen.hooks")

HOOK_NAMES = (
    "after_configuration_loading",
    "before_clean_build_dir",
    "after_clean_build_dir",
    "before_copy_assets",
    "before_images_processing",
    "after_images_processing",
    "before_demux_paths",
    "after_demux_paths",
    "before_apply_template",
    "after_apply_template",
    "before_html_render",
    "after_html_render",
    "before_i18n_processing",
    "after_i18n_processing",
    "before_typo_correction",
    "after_typo_correction",
    "before_content_paths_correction",
    "after_content_paths_correction",
    "before_css_paths_correction",
    "after_css_paths_correction",
    "before_xml_sitemap_generation",
    "after_xml_sitemap_generation",
    "before_styles_processing",
    "after_styles_processing",
    "before_scripts_processing",
    "after_scripts_processing",
)


def load_hook_module(path: Path, index: int) -> ModuleType:
    if not path.is_file():
        raise ConfigurationError(f"Hook module not found: {path}")
    spec = importlib.util.spec_from_file_location(f"webgen_hook_{index}_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot load hook module: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise ConfigurationError(f"Cannot load hook module {path}: {exc}") from exc
    return module


class HookRunner:
    """Calls the functions that user hook modules define at each build stage.

    A hook receives the list of records of its stage (pages, files or
    settings) and returns either a replacement list or ``None``.
    """

    def __init__(self, modules: list[ModuleType] | None = None):
        self.modules = list(modules or [])

    @classmethod
    def from_paths(cls, paths: list[Path]) -> HookRunner:
        return cls([load_hook_module(path, index) for index, path in enumerate(paths)])

    def functions(self, name: str):
        if name not in HOOK_NAMES:
            raise ConfigurationError(f"Unknown hook: {name}")
        for module in self.modules:
            func = getattr(module, name, None)
            if callable(func):
                yield module, func

    def run(self, name: str, records: list, *args) -> list:
        for module, func in self.functions(name):
            logger.debug("Running hook %s from %s", name, module.__name__)
            result = func(records, *args)
            if result is None:
                continue
            if not isinstance(result, list):
                raise ConfigurationError(
                    f"Hook {name} in {module.__name__} must return a list or None, got {type(result).__name__}."
                )
            records = result
        return records

    def notify(self, name: str, *args) -> None:
        for module, func in self.functions(name):
            logger.debug("Running hook %s from %s", name, module.__name__)
            func(*args)
