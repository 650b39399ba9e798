from __future__ import annotations

import fnmatch
import logging
import re
import shutil
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger("webgen")

PIPE_RE = re.compile(r"\|([^|]*?)\|")


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def warn(scope: str, subject: str, message: str) -> None:
    # |value| markers highlight the interesting part of a message
    message = PIPE_RE.sub(lambda m: f"'{m.group(1)}'", message)
    logger.warning("WARNING [%s] [%s] %s", scope, subject, message)


def match_files(base: Path, patterns: list[str]) -> list[Path]:
    """Expand glob patterns relative to ``base``; ``!pattern`` entries exclude."""
    included: dict[Path, None] = {}
    excluded = []
    for pattern in patterns:
        if pattern.startswith("!"):
            excluded.append(pattern[1:].lstrip("/"))
            continue
        for path in sorted(base.glob(pattern.lstrip("/")), key=lambda p: p.as_posix()):
            if path.is_file():
                included[path] = None
    result = []
    for path in included:
        rel = path.relative_to(base).as_posix()
        if any(fnmatch.fnmatch(rel, pattern) for pattern in excluded):
            continue
        result.append(path)
    return result


def clean_output_dir(output_dir: Path, project_root: Path, allow_outside: bool = False) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise ConfigurationError("Refusing to clean project root.")
    if not allow_outside and not output_resolved.is_relative_to(root_resolved):
        raise ConfigurationError(
            "Refusing to clean build directory outside of the configuration directory "
            "(set build_delete_outside_of_config_dir to allow it)."
        )
    shutil.rmtree(output_dir)
