from __future__ import annotations

import io

import httpx
import pytest
from docx import Document

from apps.api.main import app

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _build_docx_bytes() -> bytes:
    document = Document()
    document.add_paragraph("This Agreement is made on {{Effective Date}} by {{Company Name}}.")
    document.add_paragraph("{{Company Name}} agrees to the terms.")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.mark.anyio
async def test_upload_render_download_flow() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        upload = await client.post(
            "/v1/upload",
            files={"file": ("Agreement.docx", _build_docx_bytes(), DOCX_CONTENT_TYPE)},
        )
        assert upload.status_code == 200
        uploaded = upload.json()
        answers = {
            "effective-date-1": "2024-03-31",
            "company-name-2": "Acme & Co",
        }

        rendered = await client.post(
            "/v1/render",
            json={
                "html": uploaded["html"],
                "placeholders": uploaded["placeholders"],
                "answers": answers,
            },
        )
        assert rendered.status_code == 200
        final_html = rendered.json()["html"]

        download = await client.post(
            "/v1/download",
            json={"html": final_html, "fileName": uploaded["fileName"]},
        )

    assert [item["id"] for item in uploaded["placeholders"]] == [
        "effective-date-1",
        "company-name-2",
    ]
    assert "{{" not in final_html
    assert download.status_code == 200
    assert 'filename="Agreement-completed.docx"' in download.headers["content-disposition"]

    document = Document(io.BytesIO(download.content))
    assert [paragraph.text for paragraph in document.paragraphs] == [
        "This Agreement is made on 2024-03-31 by Acme & Co.",
        "Acme & Co agrees to the terms.",
    ]
