from __future__ import annotations

import copy
from pathlib import Path

import pytest
import yaml

from webgen.config import load_settings

BASE_CONFIG = {
    "app_name": "demo",
    "app_version": "1.0.0",
    "root_url": "http://example.com",
    "content": {
        "sitemap": {
            "main": ["index.j2", {"about.md": ["team.html"]}],
        },
    },
    "i18n": {
        "fallback_language": "en",
        "labels": {
            "en": {"en": "English", "fr": "Anglais"},
            "fr": {"en": "French", "fr": "Français"},
        },
    },
    "styles": {"sets": {"main.css": {"input": ["css/*.css"]}}},
    "scripts": {"sets": {"app.js": {"input": ["js/*.js"]}}},
    "assets": {"input": ["images/*", "!images/*.psd"]},
}

MASTER = """<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
<title>{{ title }}</title>
<!-- build:main.css --><link href="css/a.css" rel="stylesheet"><!-- endbuild -->
</head>
<body>
{% include "content" %}
<!-- build:app.js --><script src="js/a.js"></script><!-- endbuild -->
</body>
</html>
"""

INDEX = """{# start-content-config
path:
  en: /index.html
  fr: /fr/index.html
title: Home
master: page
xmlsitemap:
  priority: "0.9"
  frequency: auto
end-content-config #}
<p>{{ i18n("Hello") }}</p>
<a href="{{ get_path('about.md') }}">{{ get_title('about.md', short=True) }}</a>
"""

ABOUT = """<!-- start-content-config
path: /about.html
title: About us
shortTitle: About
master: page
end-content-config -->

# About

Some text.
"""

TEAM = """<!-- start-content-config
title: Team
end-content-config -->
<h1>{{ title }}</h1>
"""

FILES = {
    "src/masters/page.j2": MASTER,
    "src/contents/index.j2": INDEX,
    "src/contents/about.md": ABOUT,
    "src/contents/team.html": TEAM,
    "src/css/a.css": "body {\n    color: red;\n}\n.logo { background: url(images/logo.png); }\n",
    "src/js/a.js": "function hello(name) {\n    return 'hello ' + name;\n}\n",
    "src/images/logo.png": "png",
    "src/images/logo.psd": "psd",
    "i18n.csv": "en,fr\nHello,Bonjour\nGoodbye,\n",
}


def merge(base: dict, override: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


@pytest.fixture
def make_project(tmp_path):
    """Write a small site below tmp_path and return the path of its config file."""

    def _make(config: dict | None = None, files: dict | None = None, root: Path | None = None) -> Path:
        root = root or tmp_path / "site"
        conf = merge(BASE_CONFIG, config or {})
        all_files = dict(FILES)
        all_files.update(files or {})
        for name, text in all_files.items():
            if text is None:
                continue
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        config_path = root / "webgen.yaml"
        config_path.write_text(yaml.safe_dump(conf, allow_unicode=True), encoding="utf-8")
        return config_path

    return _make


@pytest.fixture
def settings(make_project):
    return load_settings(make_project())


@pytest.fixture
def release_settings(make_project):
    return load_settings(make_project(), release=True)
