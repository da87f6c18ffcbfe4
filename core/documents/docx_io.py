"""Conversion between .docx bytes and HTML markup.

Reading goes through mammoth (markup for preview/substitution, raw text for
extraction). Writing parses the final markup with BeautifulSoup and rebuilds a
python-docx document from its block and inline elements.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass, replace

import mammoth
from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag
from docx import Document
from docx.document import Document as DocxDocument
from docx.text.paragraph import Paragraph

from core.documents.models import ExtractedDocument
from core.utils.errors import DocumentConversionError

logger = logging.getLogger("chatfill.documents")

DOCX_SUFFIX = ".docx"
DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_DOCX_SUFFIX_RE = re.compile(r"\.docx$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_HEADING_LEVELS = {f"h{level}": level for level in range(1, 7)}
_CONTAINER_TAGS = {"div", "section", "article", "main", "body", "blockquote", "html"}
_LIST_STYLES = {"ul": "List Bullet", "ol": "List Number"}
_TABLE_SECTIONS = {"thead", "tbody", "tfoot"}
_SKIPPED_TAGS = {"head", "script", "style", "title", "meta"}
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass(frozen=True)
class _RunFormat:
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def for_tag(self, name: str) -> _RunFormat:
        if name in {"strong", "b", "th"}:
            return replace(self, bold=True)
        if name in {"em", "i"}:
            return replace(self, italic=True)
        if name == "u":
            return replace(self, underline=True)
        return self


def completed_file_name(file_name: str) -> str:
    """Map ``contract.docx`` to ``contract-completed.docx``."""

    return _DOCX_SUFFIX_RE.sub("-completed.docx", file_name, count=1)


def read_document(data: bytes) -> ExtractedDocument:
    """Convert .docx bytes to markup and plain text."""

    html, html_messages = _convert_to_html(data)
    text, text_messages = _extract_raw_text(data)
    return ExtractedDocument(html=html, text=text, messages=html_messages + text_messages)


async def read_document_async(data: bytes) -> ExtractedDocument:
    """Run the markup and text conversions concurrently in worker threads."""

    (html, html_messages), (text, text_messages) = await asyncio.gather(
        asyncio.to_thread(_convert_to_html, data),
        asyncio.to_thread(_extract_raw_text, data),
    )
    return ExtractedDocument(html=html, text=text, messages=html_messages + text_messages)


def wrap_html_for_docx(content: str) -> str:
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8" /></head>'
        f"<body>{content}</body></html>"
    )


def markup_to_docx(html: str) -> bytes:
    """Generate .docx bytes from final document markup.

    Raises:
        DocumentConversionError: Generation failed or produced no bytes.
    """

    try:
        soup = BeautifulSoup(wrap_html_for_docx(html), "html.parser")
        document = Document()
        _write_blocks(document, soup.body or soup)
        buffer = io.BytesIO()
        document.save(buffer)
    except Exception as exc:  # noqa: BLE001
        raise DocumentConversionError(f"Failed to generate document: {exc}") from exc

    payload = buffer.getvalue()
    if not payload:
        raise DocumentConversionError("Generated buffer is empty")
    return payload


def _convert_to_html(data: bytes) -> tuple[str, list[str]]:
    try:
        result = mammoth.convert_to_html(io.BytesIO(data))
    except Exception as exc:  # noqa: BLE001
        raise DocumentConversionError(f"Unable to read document markup: {exc}") from exc
    return result.value, _collect_messages(result.messages, "html")


def _extract_raw_text(data: bytes) -> tuple[str, list[str]]:
    try:
        result = mammoth.extract_raw_text(io.BytesIO(data))
    except Exception as exc:  # noqa: BLE001
        raise DocumentConversionError(f"Unable to read document text: {exc}") from exc
    return result.value, _collect_messages(result.messages, "text")


def _collect_messages(messages, stage: str) -> list[str]:
    collected: list[str] = []
    for message in messages:
        text = f"{message.type}: {message.message}"
        logger.debug("mammoth %s conversion: %s", stage, text)
        collected.append(text)
    return collected


def _write_blocks(document: DocxDocument, container: Tag) -> None:
    loose: Paragraph | None = None

    for node in container.children:
        if isinstance(node, NavigableString):
            if isinstance(node, _NON_TEXT_STRINGS) or not str(node).strip():
                continue
            if loose is None:
                loose = document.add_paragraph()
            _add_text(loose, str(node), _RunFormat())
            continue

        if not isinstance(node, Tag) or node.name in _SKIPPED_TAGS:
            continue

        name = node.name
        if name in _HEADING_LEVELS:
            _write_inline(document.add_heading(level=_HEADING_LEVELS[name]), node, _RunFormat())
            loose = None
        elif name == "p":
            _write_inline(document.add_paragraph(), node, _RunFormat())
            loose = None
        elif name in _LIST_STYLES:
            for item in node.find_all("li", recursive=False):
                paragraph = document.add_paragraph(style=_LIST_STYLES[name])
                _write_inline(paragraph, item, _RunFormat())
            loose = None
        elif name == "table":
            _write_table(document, node)
            loose = None
        elif name in _CONTAINER_TAGS:
            _write_blocks(document, node)
            loose = None
        elif name == "br":
            loose = None
        else:
            if loose is None:
                loose = document.add_paragraph()
            _write_inline(loose, node, _RunFormat().for_tag(name))


def _write_table(document: DocxDocument, node: Tag) -> None:
    rows = [row.find_all(["td", "th"], recursive=False) for row in _table_rows(node)]
    width = max((len(cells) for cells in rows), default=0)
    if width == 0:
        return

    table = document.add_table(rows=len(rows), cols=width)
    table.style = "Table Grid"
    for row_index, cells in enumerate(rows):
        for cell_index, cell in enumerate(cells):
            paragraph = table.cell(row_index, cell_index).paragraphs[0]
            _write_inline(paragraph, cell, _RunFormat().for_tag(cell.name))


def _table_rows(node: Tag) -> list[Tag]:
    """Rows owned by this table, skipping rows of tables nested in its cells."""

    rows: list[Tag] = []
    for child in node.find_all(True, recursive=False):
        if child.name == "tr":
            rows.append(child)
        elif child.name in _TABLE_SECTIONS:
            rows.extend(child.find_all("tr", recursive=False))
    return rows


def _write_inline(paragraph: Paragraph, node: Tag, run_format: _RunFormat) -> None:
    for child in node.children:
        if isinstance(child, NavigableString):
            if not isinstance(child, _NON_TEXT_STRINGS):
                _add_text(paragraph, str(child), run_format)
        elif isinstance(child, Tag):
            if child.name == "br":
                paragraph.add_run().add_break()
            elif child.name not in _SKIPPED_TAGS:
                _write_inline(paragraph, child, run_format.for_tag(child.name))


def _add_text(paragraph: Paragraph, text: str, run_format: _RunFormat) -> None:
    collapsed = _WHITESPACE_RE.sub(" ", text)
    if not collapsed or (collapsed == " " and not paragraph.runs):
        return

    run = paragraph.add_run(collapsed)
    if run_format.bold:
        run.bold = True
    if run_format.italic:
        run.italic = True
    if run_format.underline:
        run.underline = True
