import types

import pytest

from webgen.errors import ConfigurationError
from webgen.hooks import HookRunner, load_hook_module


def make_module(name, **functions):
    module = types.ModuleType(name)
    for key, value in functions.items():
        setattr(module, key, value)
    return module


def test_hooks_are_chained():
    first = make_module("first", after_html_render=lambda records, *args: records + ["a"])
    second = make_module("second", after_html_render=lambda records, *args: records + ["b"])
    runner = HookRunner([first, second])
    assert runner.run("after_html_render", []) == ["a", "b"]


def test_hook_returning_none_keeps_records():
    module = make_module("noop", before_demux_paths=lambda records, *args: None)
    assert HookRunner([module]).run("before_demux_paths", [1, 2]) == [1, 2]


def test_hook_returning_other_type_is_rejected():
    module = make_module("bad", before_demux_paths=lambda records, *args: "oops")
    with pytest.raises(ConfigurationError):
        HookRunner([module]).run("before_demux_paths", [])


def test_unknown_hook_name():
    with pytest.raises(ConfigurationError):
        HookRunner([]).run("before_everything", [])


def test_notify_passes_arguments():
    calls = []
    module = make_module("notify", before_clean_build_dir=lambda settings: calls.append(settings))
    HookRunner([module]).notify("before_clean_build_dir", "settings")
    assert calls == ["settings"]


def test_load_hook_module_from_file(tmp_path):
    path = tmp_path / "shout.py"
    path.write_text("def after_html_render(pages, settings):\n    return [p.upper() for p in pages]\n")
    runner = HookRunner.from_paths([path])
    assert runner.run("after_html_render", ["a"], None) == ["A"]


def test_missing_hook_module(tmp_path):
    with pytest.raises(ConfigurationError):
        load_hook_module(tmp_path / "missing.py", 0)


def test_broken_hook_module(tmp_path):
    path = tmp_path / "broken.py"
    path.write_text("raise RuntimeError('boom')\n")
    with pytest.raises(ConfigurationError):
        load_hook_module(path, 0)
