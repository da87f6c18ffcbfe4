"""Custom exceptions for core logic."""

from __future__ import annotations


class DocumentConversionError(Exception):
    """Raised when a document cannot be read or generated."""


class ConversationError(Exception):
    """Raised when the conversation driver is used out of order."""


class AnswerValidationError(ConversationError):
    """Raised when an answer is rejected; conversation state is left unchanged."""

    def __init__(self, message: str, *, placeholder_id: str) -> None:
        super().__init__(message)
        self.placeholder_id = placeholder_id
