from webgen.config import XmlSitemapSettings
from webgen.content import parse_descriptor
from webgen.context import SiteContextBuilder
from webgen.sitemap import collect_sitemap_urls, generate_xml_sitemap

HOME = """{# start-content-config
path:
  en: /index.html
  fr: /fr/index.html
  de: /de/index.html
xmlsitemap:
  priority: "0.9"
  frequency: auto
end-content-config #}
"""

ABOUT = """<!-- start-content-config
path: /about.html
xmlsitemap:
  frequency: weekly
end-content-config -->
"""


def make_site():
    builder = SiteContextBuilder("http://example.com", r"index\.html$")
    builder.add(parse_descriptor(HOME, "index.j2", "en"))
    builder.add(parse_descriptor(ABOUT, "about.html", "en"))
    return builder.build()


def test_alternates_list_every_language():
    urls = collect_sitemap_urls(make_site(), XmlSitemapSettings("0.5", "monthly"))
    expected = {
        "en": "http://example.com/",
        "fr": "http://example.com/fr/",
        "de": "http://example.com/de/",
    }
    for url in expected.values():
        assert urls[url]["alternates"] == expected
        assert list(urls[url]["alternates"]) == ["en", "fr", "de"]


def test_reference_entries_are_not_emitted():
    urls = collect_sitemap_urls(make_site(), XmlSitemapSettings("0.5", "monthly"))
    assert list(urls) == [
        "http://example.com/",
        "http://example.com/fr/",
        "http://example.com/de/",
        "http://example.com/about.html",
    ]


def test_hints_and_defaults():
    urls = collect_sitemap_urls(make_site(), XmlSitemapSettings("0.5", "monthly"))
    home = urls["http://example.com/"]
    assert home["priority"] == "0.9"
    assert home["frequency"] == "monthly"
    about = urls["http://example.com/about.html"]
    assert about["priority"] == "0.5"
    assert about["frequency"] == "weekly"


def test_unknown_values_are_omitted():
    xml = generate_xml_sitemap(make_site(), XmlSitemapSettings(None, None))
    about = xml.split("<loc>http://example.com/about.html</loc>")[1].split("</url>")[0]
    assert "<priority>" not in about
    assert "<changefreq>weekly</changefreq>" in about


def test_generate_xml_sitemap_document():
    xml = generate_xml_sitemap(make_site(), XmlSitemapSettings("0.5", "monthly"))
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<urlset')
    assert xml.endswith("</urlset>")
    assert xml.count("<url>") == 4
    assert xml.count('rel="alternate"') == 10
    assert '<xhtml:link rel="alternate" hreflang="fr" href="http://example.com/fr/" />' in xml
    assert "<priority>0.9</priority>" in xml
