"""Placeholder extraction from plain document text.

Supported token shapes, in priority order:
- {{Name}}, [[Name]], <<Name>>, <Name>, [Name]
- __Name__ and **Name** emphasis markers

Every pattern scans the whole text before the next one is tried, so output is
grouped by token shape first and by position second. Tokens whose content is
not a usable label fall back to a label derived from the surrounding text.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from core.templates.labels import build_question, format_label, slug_from_label
from core.templates.models import Placeholder

_CONTEXT_WINDOW = 160
_MAX_VALUE_LENGTH = 120
_MAX_VALUE_WORDS = 18
_MAX_TRAILING_WORDS = 6


@dataclass(frozen=True)
class _TokenPattern:
    regex: re.Pattern[str]
    strip: Callable[[str], str]


def _strip_pair(raw: str) -> str:
    return raw[2:-2]


def _strip_single(raw: str) -> str:
    return raw[1:-1]


_TOKEN_PATTERNS: tuple[_TokenPattern, ...] = (
    _TokenPattern(re.compile(r"\{\{([^{}]+)\}\}"), _strip_pair),
    _TokenPattern(re.compile(r"\[\[([^\[\]]+)\]\]"), _strip_pair),
    _TokenPattern(re.compile(r"<<([^<>]+)>>"), _strip_pair),
    _TokenPattern(re.compile(r"<([^<>]+)>"), _strip_single),
    _TokenPattern(re.compile(r"\[([^\[\]]+)\]"), _strip_single),
    _TokenPattern(re.compile(r"__([^_]+?)__"), lambda raw: raw.strip("_")),
    _TokenPattern(re.compile(r"\*\*([^*]+?)\*\*"), lambda raw: raw.strip("*")),
)

_QUOTES = "\"'“”‘’"
_EDGE_QUOTES_RE = re.compile(rf"^[\s{_QUOTES}]+|[\s{_QUOTES}]+$")
_WHITESPACE_RE = re.compile(r"\s+")
_ALNUM_RE = re.compile(r"[a-z0-9]", re.IGNORECASE | re.ASCII)
_URL_RE = re.compile(r"https?://", re.IGNORECASE)

_ALIAS_AFTER_RE = re.compile(r'^\s*\(\s*the\s+["“]([^"”]+)["”]\s*\)', re.IGNORECASE)
_ALIAS_BEFORE_RE = re.compile(r'["“]([^"”]+)["”]\s*$')
_TITLED_BEFORE_RE = re.compile(
    r"(the|a|an)\s+([A-Za-z][A-Za-z0-9\s\-']{2,80})\s*$", re.IGNORECASE
)
_LINE_BREAKS_RE = re.compile(r"[\r\n]+")
# Letters and digits of any script survive, plus whitespace, hyphen, apostrophe.
_NON_WORDISH_RE = re.compile(r"[^\w\s\-']|_")


def extract_placeholders(text: str) -> list[Placeholder]:
    """Extract unique placeholders from document text.

    Args:
        text: Plain text of the whole document.

    Returns:
        Placeholders in discovery order, deduplicated by lowercase value.
        Sequence numbers used in ids count accepted placeholders only.
    """

    ordered: list[Placeholder] = []
    seen: set[str] = set()
    sequence = 1

    for pattern in _TOKEN_PATTERNS:
        for match in pattern.regex.finditer(text):
            raw = match.group(0)
            value = _sanitize_value(pattern.strip(raw))

            if not _is_reasonable_value(value):
                context_label = derive_context_label(text, match.start(), raw)
                if not context_label:
                    continue
                value = context_label

            if not value:
                continue

            normalized = value.lower()
            if normalized in seen:
                continue
            seen.add(normalized)

            label = format_label(value)
            ordered.append(
                Placeholder(
                    id=slug_from_label(label, sequence),
                    raw=raw,
                    label=label,
                    question=build_question(label),
                )
            )
            sequence += 1

    return ordered


def derive_context_label(text: str, start: int, raw: str) -> str | None:
    """Infer a label from the text around a token at ``start``.

    Tried in order: a trailing ``(the "Alias")``, a quoted phrase right before
    the token, ``the/a/an <phrase>`` right before the token, then the last few
    words before the token.
    """

    before = text[max(0, start - _CONTEXT_WINDOW) : start]
    end = start + len(raw)
    after = text[end : end + _CONTEXT_WINDOW]

    alias_after = _ALIAS_AFTER_RE.search(after)
    if alias_after and alias_after.group(1):
        return alias_after.group(1)

    alias_before = _ALIAS_BEFORE_RE.search(before)
    if alias_before and alias_before.group(1):
        return alias_before.group(1)

    titled_before = _TITLED_BEFORE_RE.search(before)
    if titled_before and titled_before.group(2):
        return titled_before.group(2)

    trailing_words = " ".join(
        _LINE_BREAKS_RE.sub(" ", before).split()[-_MAX_TRAILING_WORDS:]
    )
    cleaned = _WHITESPACE_RE.sub(" ", _NON_WORDISH_RE.sub(" ", trailing_words)).strip()
    if cleaned and _ALNUM_RE.search(cleaned):
        return cleaned

    return None


def _sanitize_value(value: str) -> str:
    collapsed = _WHITESPACE_RE.sub(" ", value)
    return _EDGE_QUOTES_RE.sub("", collapsed).strip()


def _is_reasonable_value(value: str) -> bool:
    if not _ALNUM_RE.search(value):
        return False
    if _URL_RE.search(value):
        return False
    if len(value) > _MAX_VALUE_LENGTH:
        return False

    words = [word for word in value.split(" ") if word]
    return 0 < len(words) <= _MAX_VALUE_WORDS
