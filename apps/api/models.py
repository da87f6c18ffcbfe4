"""Request/response models for the HTTP API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from core.templates.models import Placeholder


class PlaceholderPayload(BaseModel):
    """Wire form of one extracted placeholder."""

    model_config = ConfigDict(extra="forbid")

    id: StrictStr
    raw: StrictStr
    label: StrictStr
    question: StrictStr

    @classmethod
    def from_placeholder(cls, placeholder: Placeholder) -> PlaceholderPayload:
        return cls.model_validate(placeholder.to_dict())

    def to_placeholder(self) -> Placeholder:
        return Placeholder(id=self.id, raw=self.raw, label=self.label, question=self.question)


class UploadResponse(BaseModel):
    """Upload result: original name, markup and ordered placeholders."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    file_name: str = Field(alias="fileName")
    html: str
    placeholders: list[PlaceholderPayload] = Field(default_factory=list)


class RenderRequest(BaseModel):
    """Substitution request carrying the client's answers."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    html: StrictStr
    placeholders: list[PlaceholderPayload] = Field(default_factory=list)
    answers: dict[str, StrictStr] = Field(default_factory=dict)
    mode: Literal["preview", "download"] = "download"
    active_id: StrictStr | None = Field(default=None, alias="activeId")
