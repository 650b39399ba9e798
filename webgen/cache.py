from __future__ import annotations

import hashlib


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    return hash_bytes(text.encode("utf-8"))


def release_suffix(app_version: str) -> str:
    return "." + hash_text(app_version)[:8] + ".min"
