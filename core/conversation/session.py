"""Conversation driver walking placeholders one question at a time."""

from __future__ import annotations

import itertools
import re
from collections.abc import Sequence

from core.conversation.models import ConversationState, Message, MessageRole
from core.render.substitution import render_download_html, render_preview_html
from core.templates.labels import is_date_label
from core.templates.models import Placeholder
from core.utils.errors import AnswerValidationError, ConversationError

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)

GREETING = "Upload a legal template (.docx) and I'll help you fill in the blanks."
NO_PLACEHOLDERS = (
    "I didn't detect any placeholders, but you can still review the document below."
)
ALL_SET = (
    "All set! You can review the completed document on the right. "
    "Feel free to adjust any field from the list below."
)
DATE_FORMAT_ERROR = "Dates must use the YYYY-MM-DD format (e.g., 2024-03-31)."
EMPTY_ANSWER_ERROR = "Please enter a value before continuing."


class ConversationSession:
    """Per-user conversation state: placeholders, answers and a cursor.

    The session moves ``idle -> chatting -> complete``. Selecting any
    placeholder re-enters ``chatting`` at that index so earlier answers can be
    revised.
    """

    def __init__(self) -> None:
        self._message_counter = itertools.count(1)
        self.state: ConversationState = "idle"
        self.placeholders: tuple[Placeholder, ...] = ()
        self.answers: dict[str, str] = {}
        self.current_index = 0
        self.messages: list[Message] = [self._message("assistant", GREETING)]

    @property
    def current_placeholder(self) -> Placeholder | None:
        if 0 <= self.current_index < len(self.placeholders):
            return self.placeholders[self.current_index]
        return None

    @property
    def answered_count(self) -> int:
        return sum(1 for placeholder in self.placeholders if self.answers.get(placeholder.id))

    def pending_placeholders(self) -> list[Placeholder]:
        return [
            placeholder for placeholder in self.placeholders if not self.answers.get(placeholder.id)
        ]

    def load(self, placeholders: Sequence[Placeholder]) -> None:
        """Start over with a freshly extracted placeholder list."""

        self.placeholders = tuple(placeholders)
        self.answers = {}
        self.current_index = 0

        count = len(self.placeholders)
        if count == 0:
            self.state = "complete"
            self.messages = [self._message("assistant", NO_PLACEHOLDERS)]
            return

        self.state = "chatting"
        plural = "" if count == 1 else "s"
        self.messages = [
            self._message(
                "assistant",
                f"I found {count} placeholder{plural}. Let's fill them in together.",
            ),
            self._message("assistant", self.placeholders[0].question),
        ]

    def submit(self, value: str) -> Placeholder:
        """Validate and store an answer for the current placeholder.

        Returns:
            The placeholder that was answered.

        Raises:
            ConversationError: No placeholder is awaiting an answer.
            AnswerValidationError: The answer is empty or not a YYYY-MM-DD date
                where one is required. Nothing is changed in that case.
        """

        placeholder = self.current_placeholder
        if placeholder is None:
            raise ConversationError("No placeholder is awaiting an answer")

        trimmed = value.strip()
        if not trimmed:
            raise AnswerValidationError(EMPTY_ANSWER_ERROR, placeholder_id=placeholder.id)
        if is_date_label(placeholder.label) and not _ISO_DATE_RE.match(trimmed):
            raise AnswerValidationError(DATE_FORMAT_ERROR, placeholder_id=placeholder.id)

        self.messages.append(self._message("user", trimmed))
        self.answers[placeholder.id] = trimmed

        next_index = self.current_index + 1
        if next_index < len(self.placeholders):
            self.current_index = next_index
            self.state = "chatting"
            self.messages.append(
                self._message("assistant", self.placeholders[next_index].question)
            )
        else:
            self.state = "complete"
            self.messages.append(self._message("assistant", ALL_SET))
        return placeholder

    def select(self, index: int) -> str | None:
        """Jump to a placeholder for revision and return its current answer."""

        if not 0 <= index < len(self.placeholders):
            raise ConversationError(f"No placeholder at index {index}")

        placeholder = self.placeholders[index]
        self.messages.append(
            self._message(
                "assistant",
                f"Let's update the {placeholder.label.lower()}. {placeholder.question}",
            )
        )
        self.current_index = index
        self.state = "chatting"
        return self.answers.get(placeholder.id)

    def preview_html(self, html: str) -> str:
        active = self.current_placeholder
        return render_preview_html(
            html,
            self.placeholders,
            self.answers,
            active.id if active is not None else None,
        )

    def download_html(self, html: str) -> str:
        return render_download_html(html, self.placeholders, self.answers)

    def _message(self, role: MessageRole, text: str) -> Message:
        return Message(id=f"{role}-{next(self._message_counter)}", role=role, text=text)
