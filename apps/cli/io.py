"""CLI I/O helpers for answers loading and atomic output writing."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import yaml  # type: ignore[import-untyped]

from core.documents.docx_io import completed_file_name


def resolve_output_path(template: Path, out: Path | None) -> Path:
    """Use ``out`` when given, else ``<name>-completed.docx`` beside the template."""

    if out is not None:
        return out
    return template.with_name(completed_file_name(template.name))


def load_answers(path: Path) -> dict[str, str]:
    """Load an answers mapping from YAML (JSON is accepted as YAML).

    Null values are skipped; other scalars are stringified, so unquoted YAML
    dates come back as ``YYYY-MM-DD``.
    """

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Answers file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in answers file: {path}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Answers file must contain a mapping: {path}")

    answers: dict[str, str] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            raise ValueError(f"Answer for '{key}' must be a scalar value: {path}")
        answers[str(key)] = str(value)
    return answers


def write_docx_bytes_atomic(path: Path, payload: bytes) -> None:
    """Write generated .docx bytes using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(payload)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
