"""Document conversion models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExtractedDocument:
    """Markup and plain text produced from one uploaded document."""

    html: str
    text: str
    messages: list[str] = field(default_factory=list)
