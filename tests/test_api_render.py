from __future__ import annotations

from typing import Any

import httpx
import pytest

from apps.api.main import app

_HTML = "<p>Between {{Landlord}} and {{Tenant}}.</p>"
_PLACEHOLDERS = [
    {
        "id": "landlord-1",
        "raw": "{{Landlord}}",
        "label": "Landlord",
        "question": "Please provide the Landlord.",
    },
    {
        "id": "tenant-2",
        "raw": "{{Tenant}}",
        "label": "Tenant",
        "question": "Please provide the Tenant.",
    },
]


async def _render(body: dict[str, Any]) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        return await client.post("/v1/render", json=body)


@pytest.mark.anyio
async def test_render_download_mode_substitutes_answers() -> None:
    response = await _render(
        {
            "html": _HTML,
            "placeholders": _PLACEHOLDERS,
            "answers": {"landlord-1": "Smith & Sons"},
        }
    )

    assert response.status_code == 200
    assert response.headers["X-Chatfill-Request-Id"]
    assert response.json() == {"html": "<p>Between Smith &amp; Sons and {{Tenant}}.</p>"}


@pytest.mark.anyio
async def test_render_preview_mode_marks_active_placeholder() -> None:
    response = await _render(
        {
            "html": _HTML,
            "placeholders": _PLACEHOLDERS,
            "answers": {"landlord-1": "Acme"},
            "mode": "preview",
            "activeId": "tenant-2",
        }
    )

    assert response.status_code == 200
    html = response.json()["html"]
    assert (
        '<mark class="filled-value is-filled" data-placeholder-id="landlord-1" '
        'data-state="filled">Acme</mark>'
    ) in html
    assert (
        '<mark class="filled-value is-pending is-active" data-placeholder-id="tenant-2" '
        'data-state="pending" title="Currently editing">{{Tenant}}</mark>'
    ) in html


@pytest.mark.anyio
async def test_render_preview_without_answers_returns_markup_unchanged() -> None:
    response = await _render(
        {"html": _HTML, "placeholders": _PLACEHOLDERS, "answers": {}, "mode": "preview"}
    )

    assert response.json() == {"html": _HTML}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "body",
    [
        {"placeholders": _PLACEHOLDERS},
        {"html": _HTML, "answers": {"landlord-1": 42}},
        {"html": _HTML, "mode": "print"},
        {"html": _HTML, "unexpected": True},
    ],
)
async def test_render_rejects_invalid_requests(body: dict[str, Any]) -> None:
    response = await _render(body)

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_ARGUMENT"


@pytest.mark.anyio
async def test_render_rejects_invalid_json() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(
            "/v1/render",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_JSON"
