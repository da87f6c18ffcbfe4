from __future__ import annotations

from pathlib import Path

import pytest

from apps.cli.io import load_answers, resolve_output_path, write_docx_bytes_atomic


def test_resolve_output_path_defaults_next_to_template(tmp_path: Path) -> None:
    template = tmp_path / "Lease.DOCX"

    assert resolve_output_path(template, None) == tmp_path / "Lease-completed.docx"
    assert resolve_output_path(template, tmp_path / "x.docx") == tmp_path / "x.docx"


def test_load_answers_stringifies_scalars_and_skips_nulls(tmp_path: Path) -> None:
    answers = tmp_path / "answers.yaml"
    answers.write_text(
        "company-name-1: Acme Corp\n"
        "Effective Date: 2024-03-31\n"
        "Purchase Amount: 1000\n"
        "Notes:\n",
        encoding="utf-8",
    )

    assert load_answers(answers) == {
        "company-name-1": "Acme Corp",
        "Effective Date": "2024-03-31",
        "Purchase Amount": "1000",
    }


def test_load_answers_accepts_json(tmp_path: Path) -> None:
    answers = tmp_path / "answers.json"
    answers.write_text('{"tenant-1": "Beta LLC"}', encoding="utf-8")

    assert load_answers(answers) == {"tenant-1": "Beta LLC"}


def test_load_answers_empty_file_is_empty_mapping(tmp_path: Path) -> None:
    answers = tmp_path / "answers.yaml"
    answers.write_text("", encoding="utf-8")

    assert load_answers(answers) == {}


@pytest.mark.parametrize(
    ("content", "match"),
    [
        ("- a\n- b\n", "must contain a mapping"),
        ("key: [1, 2]\n", "must be a scalar value"),
        ("key: [unclosed\n", "Invalid YAML"),
    ],
)
def test_load_answers_rejects_bad_content(tmp_path: Path, content: str, match: str) -> None:
    answers = tmp_path / "answers.yaml"
    answers.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=match):
        load_answers(answers)


def test_load_answers_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="not found"):
        load_answers(tmp_path / "missing.yaml")


def test_write_docx_bytes_atomic_cleans_tmp_on_success(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.docx"

    write_docx_bytes_atomic(target, b"payload")

    assert target.read_bytes() == b"payload"
    assert list(target.parent.glob("out.docx.*.tmp")) == []


def test_write_docx_bytes_atomic_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "out.docx"

    def broken_replace(self: Path, _: Path) -> Path:
        raise OSError("replace failed")

    monkeypatch.setattr(Path, "replace", broken_replace)

    with pytest.raises(OSError, match="replace failed"):
        write_docx_bytes_atomic(target, b"payload")

    assert not target.exists()
    assert list(tmp_path.glob("out.docx.*.tmp")) == []
