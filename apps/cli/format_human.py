"""Human-readable placeholder and fill summaries for CLI output."""

from __future__ import annotations

from collections.abc import Sequence

from core.conversation.session import ConversationSession
from core.templates.labels import is_date_label
from core.templates.models import Placeholder

_MAX_ANSWER_PREVIEW = 40


def render_placeholder_summary(placeholders: Sequence[Placeholder]) -> str:
    """Render one line per placeholder with its index, label and raw token."""

    if not placeholders:
        return "placeholders: none"

    lines: list[str] = [f"placeholders: {len(placeholders)}"]
    for index, placeholder in enumerate(placeholders, start=1):
        kind = " [date]" if is_date_label(placeholder.label) else ""
        lines.append(
            f"{index:>3}. {placeholder.label}{kind}  id={placeholder.id}  raw={placeholder.raw}"
        )
    return "\n".join(lines)


def render_fill_summary(session: ConversationSession) -> str:
    """Render answered/pending counts followed by each placeholder's value."""

    total = len(session.placeholders)
    lines: list[str] = ["fill_summary:"]
    lines.append(f"answered={session.answered_count} pending={total - session.answered_count}")

    for index, placeholder in enumerate(session.placeholders, start=1):
        answer = session.answers.get(placeholder.id)
        shown = _truncate(answer) if answer else f"(pending, keeps {placeholder.raw})"
        lines.append(f"{index:>3}. {placeholder.label}: {shown}")
    return "\n".join(lines)


def _truncate(value: str) -> str:
    flattened = value.replace("\n", " ")
    if len(flattened) <= _MAX_ANSWER_PREVIEW:
        return flattened
    return flattened[: _MAX_ANSWER_PREVIEW - 3] + "..."
