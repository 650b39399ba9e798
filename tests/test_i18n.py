import csv
import io

import pytest

from webgen.i18n import I18nCatalog, auto_detect_language, load_catalog, normalize

CSV = "en,fr,comment\nHello,Bonjour,greeting\nGood   bye,,\n"


@pytest.fixture
def catalog():
    return I18nCatalog.from_csv(CSV, "en", ["en", "fr"])


@pytest.fixture
def release_catalog():
    return I18nCatalog.from_csv(CSV, "en", ["en", "fr"], is_release=True)


# ---------------------------------------------------------------------------
# Lookup and fallback
# ---------------------------------------------------------------------------


def test_normalize():
    assert normalize("  a \n\t b  ") == "a b"


def test_translation_found(catalog):
    assert catalog.translate("Hello", "fr", "page") == "Bonjour"
    assert catalog.translate("  Hello\n", "fr", "page") == "Bonjour"


def test_fallback_language_marker(catalog, caplog):
    text = catalog.translate("Good bye", "fr", "page")
    assert text == (
        '<span class="webgen-debug webgen-error i18n-error i18n-missing-translation '
        'i18n-is-language-fallback">Good bye</span>'
    )
    assert "Cannot find translation for 'Good bye' in 'fr'" in caplog.text


def test_no_fallback_marker(catalog):
    text = catalog.translate("Unknown", "fr", "page")
    assert "i18n-no-language-fallback" in text
    assert ">Unknown</span>" in text


def test_release_mode_returns_bare_text(release_catalog):
    assert release_catalog.translate("Good bye", "fr", "page") == "Good bye"
    assert release_catalog.translate("Unknown", "fr", "page") == "Unknown"


def test_untranslated_file_keeps_source(catalog, caplog):
    assert catalog.translate("Hello", None, "page") == "Hello"
    assert "non-translated file" in caplog.text


# ---------------------------------------------------------------------------
# Text passes
# ---------------------------------------------------------------------------


def test_language_tags(catalog):
    content = "<en>E</en><fr>F</fr><not-fr>N</not-fr><entity>x</entity>"
    assert catalog.process_language_tags(content, "fr") == "F<entity>x</entity>"
    assert catalog.process_language_tags(content, "en") == "EN<entity>x</entity>"


def test_language_tags_with_attributes(catalog):
    assert catalog.process_language_tags('<fr class="x">F</fr>', "fr") == "F"


def test_process_translations(catalog):
    content = "<i18n>Hello</i18n> {i18n Hello}"
    assert catalog.process_translations(content, "fr", "page") == "Bonjour Bonjour"


def test_auto_detect_language():
    assert auto_detect_language('<html class="no-js" lang="de-CH">') == "de-CH"
    assert auto_detect_language("<p>no html tag</p>") is None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def test_extract_strings_keeps_existing_translations(catalog):
    files = [("src/contents/a.j2", '{{ i18n("Hello") }} <i18n>New   string</i18n> {i18n {{ var }}}')]
    extracted = catalog.extract_strings(files)
    assert list(extracted) == ["New string", "Hello"]
    assert extracted["Hello"]["fr"] == "Bonjour"
    assert extracted["Hello"]["comment"] == "greeting"
    assert extracted["New string"]["fr"] == ""
    assert extracted["New string"]["source file (first match)"] == "src/contents/a.j2"


def test_write_source_file(tmp_path, catalog):
    path = tmp_path / "i18n.csv"
    catalog.write_source_file(path, catalog.extract_strings([("a.j2", "<i18n>Hello</i18n>")]))
    raw = path.read_bytes()
    assert b"\r\n" in raw
    rows = list(csv.DictReader(io.StringIO(raw.decode("utf-8"))))
    assert rows == [{"source file (first match)": "a.j2", "comment": "greeting", "en": "Hello", "fr": "Bonjour"}]


def test_load_catalog_without_file(settings, caplog):
    settings.i18n.source.unlink()
    catalog = load_catalog(settings)
    assert catalog.data == {}
    assert "Cannot read i18n input file" in caplog.text
