"""Conversation transcript models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ConversationState = Literal["idle", "chatting", "complete"]
MessageRole = Literal["assistant", "user"]


@dataclass(frozen=True)
class Message:
    """Single transcript line."""

    id: str
    role: MessageRole
    text: str
