"""Typer CLI entrypoint for chatfill."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated

import typer

from apps.cli.format_human import render_fill_summary, render_placeholder_summary
from apps.cli.io import load_answers, resolve_output_path, write_docx_bytes_atomic
from core.conversation.session import ConversationSession
from core.documents.docx_io import markup_to_docx, read_document
from core.documents.models import ExtractedDocument
from core.templates.models import Placeholder
from core.templates.placeholder_extractor import extract_placeholders
from core.utils.errors import AnswerValidationError, DocumentConversionError

app = typer.Typer(help="Legal template chat-fill CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_ANSWERS = 2
EXIT_CONVERSION_FAILED = 3

TemplateOption = Annotated[
    Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)
]
OutOption = Annotated[
    Path | None,
    typer.Option("--out", help="Output .docx path (default: <template>-completed.docx)."),
]
ForceOption = Annotated[
    bool, typer.Option("--force", help="Overwrite the output when it already exists.")
]
NoOverwriteOption = Annotated[
    bool, typer.Option("--no-overwrite", help="Fail when the output already exists.")
]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands as explicit command forms."""


@app.command("extract")
def extract_command(
    template: TemplateOption,
    output: Annotated[str, typer.Option(help="Output format: json or human.")] = "json",
) -> None:
    """Print the placeholders detected in a template."""

    normalized_output = output.lower().strip()
    if normalized_output not in {"json", "human"}:
        typer.echo("ERROR: --output must be one of: json, human.")
        raise typer.Exit(code=EXIT_ERROR)

    extracted = _read_template(template)
    placeholders = extract_placeholders(extracted.text)

    if normalized_output == "json":
        typer.echo(
            json.dumps([item.to_dict() for item in placeholders], ensure_ascii=False, indent=2)
        )
    else:
        typer.echo(render_placeholder_summary(placeholders))


@app.command("fill")
def fill_command(
    template: TemplateOption,
    answers: Annotated[
        Path,
        typer.Option(
            ...,
            exists=True,
            dir_okay=False,
            file_okay=True,
            help="YAML/JSON mapping keyed by placeholder id or label.",
        ),
    ],
    out: OutOption = None,
    force: ForceOption = False,
    no_overwrite: NoOverwriteOption = False,
) -> None:
    """Fill a template from an answers file without prompting."""

    out_path = _check_output_path(template, out, force=force, no_overwrite=no_overwrite)

    try:
        answer_map = load_answers(answers)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from exc

    extracted = _read_template(template)
    session = ConversationSession()
    session.load(extract_placeholders(extracted.text))

    used_keys, errors = _apply_answers(session, answer_map)
    for key in sorted(set(answer_map) - used_keys):
        typer.echo(f"WARNING: answer '{key}' does not match any placeholder.")

    if errors:
        for placeholder, message in errors:
            typer.echo(f"ERROR: {placeholder.label} ({placeholder.id}): {message}")
        raise typer.Exit(code=EXIT_INVALID_ANSWERS)

    _write_completed(session, extracted, out_path)


@app.command("chat")
def chat_command(
    template: TemplateOption,
    out: OutOption = None,
    force: ForceOption = False,
    no_overwrite: NoOverwriteOption = False,
) -> None:
    """Fill a template interactively, one question per placeholder."""

    out_path = _check_output_path(template, out, force=force, no_overwrite=no_overwrite)

    extracted = _read_template(template)
    session = ConversationSession()
    session.load(extract_placeholders(extracted.text))
    typer.echo(session.messages[0].text)

    while True:
        while session.state == "chatting":
            placeholder = session.current_placeholder
            if placeholder is None:
                break
            default = session.answers.get(placeholder.id)
            value = typer.prompt(placeholder.question, default=default, show_default=bool(default))
            try:
                session.submit(value)
            except AnswerValidationError as exc:
                typer.echo(f"WARNING: {exc}")

        if not session.placeholders:
            break

        typer.echo(session.messages[-1].text)
        typer.echo(render_fill_summary(session))
        choice = typer.prompt(
            "Field number to revise (blank to finish)", default="", show_default=False
        ).strip()
        if not choice:
            break
        if not choice.isdecimal() or not 1 <= int(choice) <= len(session.placeholders):
            typer.echo(f"WARNING: enter a number between 1 and {len(session.placeholders)}.")
            continue
        session.select(int(choice) - 1)

    _write_completed(session, extracted, out_path)


def _read_template(template: Path) -> ExtractedDocument:
    try:
        return read_document(template.read_bytes())
    except DocumentConversionError as exc:
        typer.echo(f"ERROR: unable to read template: {exc}")
        raise typer.Exit(code=EXIT_CONVERSION_FAILED) from exc


def _check_output_path(
    template: Path,
    out: Path | None,
    *,
    force: bool,
    no_overwrite: bool,
) -> Path:
    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        raise typer.Exit(code=EXIT_ERROR)

    out_path = resolve_output_path(template, out)
    if out_path.resolve() == template.resolve():
        typer.echo("ERROR: output path must differ from the template path.")
        raise typer.Exit(code=EXIT_ERROR)

    if out_path.exists():
        if no_overwrite:
            typer.echo("ERROR: output already exists and --no-overwrite is enabled.")
            raise typer.Exit(code=EXIT_ERROR)
        typer.echo(f"INFO: overwriting existing output: {out_path.name}")
    return out_path


def _apply_answers(
    session: ConversationSession,
    answer_map: Mapping[str, str],
) -> tuple[set[str], list[tuple[Placeholder, str]]]:
    """Feed file answers through the session so they get the same validation."""

    labels = {key.lower(): key for key in answer_map}
    used_keys: set[str] = set()
    errors: list[tuple[Placeholder, str]] = []

    for index, placeholder in enumerate(session.placeholders):
        if placeholder.id in answer_map:
            key = placeholder.id
        elif placeholder.label.lower() in labels:
            key = labels[placeholder.label.lower()]
        else:
            continue

        used_keys.add(key)
        session.select(index)
        try:
            session.submit(answer_map[key])
        except AnswerValidationError as exc:
            errors.append((placeholder, str(exc)))

    return used_keys, errors


def _write_completed(
    session: ConversationSession, extracted: ExtractedDocument, out_path: Path
) -> None:
    pending = session.pending_placeholders()
    if pending:
        names = ", ".join(placeholder.label for placeholder in pending)
        typer.echo(f"WARNING: {len(pending)} placeholder(s) left unfilled: {names}")

    try:
        payload = markup_to_docx(session.download_html(extracted.html))
    except DocumentConversionError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_CONVERSION_FAILED) from exc

    try:
        write_docx_bytes_atomic(out_path, payload)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=EXIT_ERROR) from exc

    typer.echo(render_fill_summary(session))
    typer.echo(f"INFO: wrote {out_path}")
    typer.echo("INFO: success")


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
