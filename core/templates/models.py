"""Data models for placeholder extraction."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Placeholder:
    """A detected template blank with its literal token and derived prompt."""

    id: str
    raw: str
    label: str
    question: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)
