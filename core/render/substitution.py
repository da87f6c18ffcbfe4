"""Answer substitution into document markup.

Placeholders are applied one at a time in sequence order, each pass working on
the output of the previous one. Every occurrence of a placeholder's raw token
is replaced, not only the first.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from core.templates.models import Placeholder

_HTML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)


def escape_html(value: str) -> str:
    escaped = value
    for char, entity in _HTML_ESCAPES:
        escaped = escaped.replace(char, entity)
    return escaped


def format_answer(value: str) -> str:
    """Escape an answer for markup and keep its line breaks."""

    return escape_html(value).replace("\n", "<br />")


def render_download_html(
    html: str,
    placeholders: Sequence[Placeholder],
    answers: Mapping[str, str],
) -> str:
    """Replace answered placeholders; unanswered tokens stay verbatim."""

    updated = html
    for placeholder in placeholders:
        answer = answers.get(placeholder.id)
        if not answer:
            continue
        updated = updated.replace(placeholder.raw, format_answer(answer))
    return updated


def render_preview_html(
    html: str,
    placeholders: Sequence[Placeholder],
    answers: Mapping[str, str],
    active_id: str | None = None,
) -> str:
    """Wrap every placeholder occurrence in a highlight marker.

    The markup is returned untouched until at least one answer exists.
    """

    if not answers:
        return html

    updated = html
    for placeholder in placeholders:
        updated = updated.replace(
            placeholder.raw,
            _preview_marker(placeholder, answers.get(placeholder.id), active_id),
        )
    return updated


def _preview_marker(placeholder: Placeholder, answer: str | None, active_id: str | None) -> str:
    is_active = placeholder.id == active_id
    classes = ["filled-value", "is-filled" if answer else "is-pending"]
    if is_active:
        classes.append("is-active")

    attributes = [
        f'class="{" ".join(classes)}"',
        f'data-placeholder-id="{placeholder.id}"',
        f'data-state="{"filled" if answer else "pending"}"',
    ]
    if is_active:
        attributes.append('title="Currently editing"')

    display = format_answer(answer) if answer else escape_html(placeholder.raw)
    return f"<mark {' '.join(attributes)}>{display}</mark>"
