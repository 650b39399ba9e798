import pytest

from webgen.content import parse_descriptor
from webgen.context import (
    SiteContextBuilder,
    gen_menus,
    is_path_in_children,
    strip_directory_index,
)
from webgen.errors import ConfigurationError

INDEX_PATTERN = r"index\.html$"

HOME = """{# start-content-config
path:
  en: /index.html
  fr: /fr/index.html
title: Home
end-content-config #}
"""


@pytest.fixture
def site():
    builder = SiteContextBuilder("http://x", INDEX_PATTERN)
    builder.add(parse_descriptor(HOME, "index.j2", "en"))
    builder.add(parse_descriptor("about", "about.md", "en"))
    builder.set_menus({"main": ["index.j2", {"about.md": ["index.j2"]}]})
    return builder.build()


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


def test_context_symmetry(site):
    reference = site["index.j2"]
    for lang, path in reference.translation_set.items():
        target = site[path]
        assert target.reference == "index.j2"
        assert target.target == path
        assert target.lang == lang
        assert site[target.reference].translation_set[lang] == path


def test_reference_entry_has_no_target(site):
    reference = site["index.j2"]
    assert reference.target is None
    assert reference.canonical_url is None
    assert reference.lang is None


def test_canonical_url_suppresses_directory_index(site):
    assert site["index.html"].canonical_url == "http://x/"
    assert site["fr/index.html"].canonical_url == "http://x/fr/"
    assert site["about.html"].canonical_url == "http://x/about.html"


def test_site_context_is_read_only(site):
    with pytest.raises(TypeError):
        site._contents["new.html"] = site["index.j2"]
    assert "new.html" not in site


def test_source_path(site):
    assert site.source_path("fr/index.html") == "index.j2"
    assert site.source_path("unknown.html") == "unknown.html"


def test_strip_directory_index():
    assert strip_directory_index("index.html", INDEX_PATTERN) == "./"
    assert strip_directory_index("../index.html", INDEX_PATTERN) == "../"
    assert strip_directory_index("a/b.html", INDEX_PATTERN) == "a/b.html"
    assert strip_directory_index("index.html", None) == "index.html"


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------


def test_menus_are_plain_copies(site):
    menus = site.menus_copy()
    assert menus == {
        "main": [
            {"id": "index.j2"},
            {"id": "about.md", "children": [{"id": "index.j2"}]},
        ]
    }
    menus["main"].append({"id": "changed"})
    assert len(site.menus_copy()["main"]) == 2


def test_self_descendant_is_rejected():
    with pytest.raises(ConfigurationError):
        gen_menus({"main": [{"a.md": [{"b.md": ["a.md"]}]}]})


def test_aliased_recursive_sitemap_is_rejected():
    children = []
    children.append({"b.md": children})
    with pytest.raises(ConfigurationError):
        gen_menus({"main": [{"a.md": children}]})


def test_multi_key_item_is_rejected():
    with pytest.raises(ConfigurationError):
        gen_menus({"main": [{"a.md": [], "b.md": []}]})


def test_is_path_in_children():
    children = [{"id": "a"}, {"id": "b", "children": [{"id": "c"}]}]
    assert is_path_in_children("c", children)
    assert is_path_in_children("a", children)
    assert not is_path_in_children("d", children)
    assert not is_path_in_children("a", None)
