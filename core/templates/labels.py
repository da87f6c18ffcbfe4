"""Label, question and id helpers shared by extraction and conversation."""

from __future__ import annotations

import re

DATE_LIKE_KEYWORDS: tuple[str, ...] = (
    "date",
    "effective date",
    "closing date",
    "execution date",
    "maturity date",
    "issuance date",
    "signature date",
)

DATE_QUESTION = "Please provide the date (YYYY-MM-DD)."
EMPTY_LABEL_QUESTION = "Please provide a value."

_SEPARATOR_RE = re.compile(r"[_-]+")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def is_date_label(label: str) -> bool:
    """Return True when the label names a date field."""

    lowered = label.lower()
    return any(keyword in lowered for keyword in DATE_LIKE_KEYWORDS)


def format_label(value: str) -> str:
    """Turn a raw placeholder value into a title-cased label.

    Underscores and hyphens become spaces and each word gets an upper-case
    first letter; the remaining letters keep their case.
    """

    cleaned = _WHITESPACE_RE.sub(" ", _SEPARATOR_RE.sub(" ", value)).strip()
    if not cleaned:
        return "Field"

    return " ".join(segment[:1].upper() + segment[1:] for segment in cleaned.split(" "))


def build_question(label: str) -> str:
    if not label:
        return EMPTY_LABEL_QUESTION
    if is_date_label(label):
        return DATE_QUESTION
    return f"Please provide the {label}."


def slug_from_label(label: str, sequence: int) -> str:
    base = _NON_SLUG_RE.sub("-", label.lower()).strip("-")
    return f"{base}-{sequence}" if base else f"field-{sequence}"
