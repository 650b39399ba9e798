import pytest

from webgen.content import parse_descriptor
from webgen.context import SiteContextBuilder
from webgen.errors import ContentRenderError
from webgen.paths import correct_content_paths, correct_css_paths, demux, rewrite_link

INDEX_PATTERN = r"index\.html$"


# ---------------------------------------------------------------------------
# Link rewriting
# ---------------------------------------------------------------------------


def test_link_depth_from_nested_file():
    assert rewrite_link("a/x.png", "a/b/c.html", None) == "../x.png"


def test_parent_prefix_is_stripped_once():
    assert rewrite_link("../css/main.css", "fr/index.html", None) == "../css/main.css"
    assert rewrite_link("../css/main.css", "index.html", None) == "css/main.css"


def test_top_level_links_are_unchanged():
    assert rewrite_link("about.html", "index.html", INDEX_PATTERN) == "about.html"


def test_directory_index_is_removed():
    assert rewrite_link("fr/index.html", "index.html", INDEX_PATTERN) == "fr/"
    assert rewrite_link("index.html", "fr/index.html", INDEX_PATTERN) == "../"
    assert rewrite_link("fr/index.html", "fr/about.html", INDEX_PATTERN) == "./"


@pytest.mark.parametrize(
    "link",
    [
        "http://example.com/a.html",
        "https://example.com/a.html",
        "//cdn.example.com/a.js",
        "/absolute/path.html",
        "#anchor",
        "mailto:someone@example.com",
        "tel:+123456",
        "data:image/png;base64,AAAA",
        "",
    ],
)
def test_passthrough_links(link):
    assert rewrite_link(link, "a/b/c.html", INDEX_PATTERN) == link


def test_correct_content_paths():
    html = '<a href="a/x.html">x</a><img src=\'a/y.png\'><a href="https://e.com/">e</a>'
    assert correct_content_paths(html, "a/b/c.html", None) == (
        '<a href="../x.html">x</a><img src=\'../y.png\'><a href="https://e.com/">e</a>'
    )


def test_correct_css_paths():
    css = 'a { background: url(a/img.png); } b { background: url("a/img.png"); } c { background: url(data:x); }'
    assert correct_css_paths(css, "a/b/main.css", None) == (
        'a { background: url(../img.png); } b { background: url("../img.png"); } c { background: url(data:x); }'
    )


# ---------------------------------------------------------------------------
# Demux
# ---------------------------------------------------------------------------


@pytest.fixture
def site():
    text = "<!-- start-content-config\npath:\n  en: /index.html\n  fr: /fr/index.html\nend-content-config -->"
    builder = SiteContextBuilder("http://x", INDEX_PATTERN)
    builder.add(parse_descriptor(text, "index.html", "en"))
    return builder.build()


def test_demux_creates_one_job_per_language(site):
    jobs = demux("index.html", site)
    assert [(job.lang, job.output_path) for job in jobs] == [("en", "index.html"), ("fr", "fr/index.html")]
    assert all(job.reference == "index.html" for job in jobs)


def test_demux_unknown_content(site):
    with pytest.raises(ContentRenderError) as excinfo:
        demux("missing.html", site)
    assert excinfo.value.subject == "missing.html"
