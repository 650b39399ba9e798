from __future__ import annotations

import re

NO_TYPO_RE = re.compile(r"<no-typo>(.*?)</no-typo>", re.DOTALL)
NO_TYPO_PLACEHOLDER_RE = re.compile(r'<no-typo id="(\d+)" />')
NO_BREAK_RE = re.compile(r"<no-break>(.*?)</no-break>", re.DOTALL)
RAW_BLOCK_RE = re.compile(r"(<(script|style|pre|textarea)\b[^>]*>.*?</\2>)", re.DOTALL | re.IGNORECASE)
TEXT_NODE_RE = re.compile(r">(\s*)([^<]+?)(\s*)<")
DIGIT_SPACE_RE = re.compile(r"(\s+\d+)\s+")
SINGLE_LETTER_RE = re.compile(r"(\s+[^\W\d_])\s+")
NBSP_SINGLE_LETTER_RE = re.compile(r"(&nbsp;[^\W\d_])\s+")


def process_typo(content: str, lang: str | None) -> str:
    protected: list[str] = []

    def protect(match: re.Match) -> str:
        protected.append(match.group(1))
        return f'<no-typo id="{len(protected) - 1}" />'

    content = NO_TYPO_RE.sub(protect, content)
    content = RAW_BLOCK_RE.sub(protect, content)
    content = NO_BREAK_RE.sub(lambda m: re.sub(r"\s+", "&nbsp;", m.group(1).strip()), content)

    # only English rules exist so far; every language gets them
    content = process_english_typo(content)

    # protected blocks may nest
    for _ in range(len(protected)):
        if not NO_TYPO_PLACEHOLDER_RE.search(content):
            break
        content = NO_TYPO_PLACEHOLDER_RE.sub(lambda m: protected[int(m.group(1))], content)
    return content


def process_english_typo(content: str) -> str:
    def repl(match: re.Match) -> str:
        text = match.group(2)
        text = DIGIT_SPACE_RE.sub(r"\1&nbsp;", text)
        text = SINGLE_LETTER_RE.sub(r"\1&nbsp;", text)
        text = NBSP_SINGLE_LETTER_RE.sub(r"\1&nbsp;", text)
        return f">{match.group(1)}{text}{match.group(3)}<"

    return TEXT_NODE_RE.sub(repl, content)
