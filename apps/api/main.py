"""FastAPI wrapper for the template fill pipeline."""

from __future__ import annotations

import asyncio
import importlib.metadata
import io
import json
import logging
import os
import time
import uuid
from collections.abc import AsyncIterator
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from apps.api.models import PlaceholderPayload, RenderRequest, UploadResponse
from core.documents.docx_io import (
    DOCX_CONTENT_TYPE,
    DOCX_SUFFIX,
    completed_file_name,
    markup_to_docx,
    read_document_async,
)
from core.render.substitution import render_download_html, render_preview_html
from core.templates.labels import DATE_LIKE_KEYWORDS
from core.templates.placeholder_extractor import extract_placeholders
from core.utils.errors import DocumentConversionError

app = FastAPI(title="chatfill API", version="0.1.0")
logger = logging.getLogger("chatfill.api")

REQUEST_ID_HEADER = "X-Chatfill-Request-Id"

_DEFAULT_MAX_UPLOAD_BYTES = 8 * 1024 * 1024
_ZIP_MAGIC = b"PK\x03\x04"
_READ_CHUNK_BYTES = 1024 * 1024

_UPLOAD_FAILED_MESSAGE = (
    "We were unable to process that document. Please ensure it's a valid .docx template."
)
_DOWNLOAD_FAILED_MESSAGE = "We couldn't generate the download. Please try again."


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for web/bootstrap clients."""

    request_id = _request_id_from_request(request)
    if not _meta_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="meta endpoint is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    payload = {
        "accepted_suffix": DOCX_SUFFIX,
        "max_upload_bytes": _max_upload_bytes(),
        "date_keywords": list(DATE_LIKE_KEYWORDS),
        "version": app.version,
        "build": {
            "version": _package_version(),
            "commit": os.getenv("CHATFILL_COMMIT_SHA", "unknown"),
        },
    }
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/upload", response_model=None)
async def upload_v1(
    request: Request,
    file: Annotated[UploadFile | str | None, File()] = None,
) -> JSONResponse:
    """Convert an uploaded template and detect its placeholders."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"

    try:
        # A plain form string in the file field is treated like a missing file.
        if file is None or isinstance(file, str):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="A valid .docx file is required.",
                detail={"field": "file"},
            )
        _validate_upload_name(file.filename, field_name="file")

        failure_stage = "upload"
        max_upload_bytes = _max_upload_bytes()
        data = _read_upload_with_limit(upload=file, max_bytes=max_upload_bytes, field_name="file")
        if not data.startswith(_ZIP_MAGIC):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_MEDIA_TYPE",
                message="file must be a valid .docx file",
                detail={"field": "file"},
            )

        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="upload",
            filename=file.filename,
            size_bytes=len(data),
            max_upload_bytes=max_upload_bytes,
        )

        failure_stage = "convert"
        conversion_started = time.perf_counter()
        extracted = await read_document_async(data)
        conversion_ms = _elapsed_ms(conversion_started)

        failure_stage = "extract_placeholders"
        placeholders = extract_placeholders(extracted.text)

        failure_stage = "respond"
        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="upload",
            placeholder_count=len(placeholders),
            conversion_messages=len(extracted.messages),
            timing={"conversion_ms": conversion_ms, "total_ms": _elapsed_ms(request_started)},
        )
        response = UploadResponse(
            file_name=file.filename or "",
            html=extracted.html,
            placeholders=[PlaceholderPayload.from_placeholder(item) for item in placeholders],
        )
        return JSONResponse(
            status_code=200,
            headers={REQUEST_ID_HEADER: request_id},
            content=response.model_dump(mode="json", by_alias=True),
        )
    except ApiRequestError as exc:
        return _api_error_response(exc, request_id, failure_stage)
    except DocumentConversionError as exc:
        return _failure_response(
            request_id=request_id,
            failure_stage=failure_stage,
            error_code="CONVERSION_FAILED",
            message=_UPLOAD_FAILED_MESSAGE,
            exc=exc,
            request_started=request_started,
        )
    except Exception as exc:  # noqa: BLE001
        return _failure_response(
            request_id=request_id,
            failure_stage=failure_stage,
            error_code="INTERNAL_ERROR",
            message=_UPLOAD_FAILED_MESSAGE,
            exc=exc,
            request_started=request_started,
        )
    finally:
        if file is not None and not isinstance(file, str):
            await file.close()


@app.post("/v1/render", response_model=None)
async def render_v1(request: Request) -> JSONResponse:
    """Apply collected answers to markup for preview or download."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"

    try:
        body = await _read_json_body(request)
        try:
            render_request = RenderRequest.model_validate(body)
        except ValidationError as exc:
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="render request schema validation failed",
                detail={"error": str(exc)},
            ) from exc

        failure_stage = "substitute"
        placeholders = [item.to_placeholder() for item in render_request.placeholders]
        if render_request.mode == "preview":
            html = render_preview_html(
                render_request.html,
                placeholders,
                render_request.answers,
                render_request.active_id,
            )
        else:
            html = render_download_html(render_request.html, placeholders, render_request.answers)

        return JSONResponse(
            status_code=200,
            headers={REQUEST_ID_HEADER: request_id},
            content={"html": html},
        )
    except ApiRequestError as exc:
        return _api_error_response(exc, request_id, failure_stage)
    except Exception as exc:  # noqa: BLE001
        return _failure_response(
            request_id=request_id,
            failure_stage=failure_stage,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            exc=exc,
            request_started=request_started,
        )


@app.post("/v1/download", response_model=None)
async def download_v1(request: Request) -> StreamingResponse | JSONResponse:
    """Generate the completed .docx from final markup."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"

    try:
        body = await _read_json_body(request)
        html = body.get("html")
        if not html or not isinstance(html, str):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="HTML content is required.",
                detail={"field": "html"},
            )
        file_name = body.get("fileName")
        if not file_name or not isinstance(file_name, str):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="File name is required.",
                detail={"field": "fileName"},
            )

        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="download",
            filename=file_name,
            html_chars=len(html),
        )

        failure_stage = "generate"
        generation_started = time.perf_counter()
        payload = await asyncio.to_thread(markup_to_docx, html)
        generation_ms = _elapsed_ms(generation_started)

        failure_stage = "respond"
        friendly_name = completed_file_name(file_name)
        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="download",
            size_bytes=len(payload),
            timing={"generation_ms": generation_ms, "total_ms": _elapsed_ms(request_started)},
        )
        headers = {
            REQUEST_ID_HEADER: request_id,
            "Content-Disposition": f'attachment; filename="{_encode_file_name(friendly_name)}"',
        }
        return StreamingResponse(
            _iter_bytes_chunks(payload),
            media_type=DOCX_CONTENT_TYPE,
            headers=headers,
        )
    except ApiRequestError as exc:
        return _api_error_response(exc, request_id, failure_stage)
    except DocumentConversionError as exc:
        return _failure_response(
            request_id=request_id,
            failure_stage=failure_stage,
            error_code="GENERATION_FAILED",
            message=_DOWNLOAD_FAILED_MESSAGE,
            exc=exc,
            request_started=request_started,
        )
    except Exception as exc:  # noqa: BLE001
        return _failure_response(
            request_id=request_id,
            failure_stage=failure_stage,
            error_code="INTERNAL_ERROR",
            message=_DOWNLOAD_FAILED_MESSAGE,
            exc=exc,
            request_started=request_started,
        )


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _meta_enabled() -> bool:
    raw = os.getenv("CHATFILL_ENABLE_META", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _max_upload_bytes() -> int:
    raw = os.getenv("CHATFILL_MAX_UPLOAD_BYTES")
    if raw is None:
        return _DEFAULT_MAX_UPLOAD_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_UPLOAD_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_UPLOAD_BYTES


def _validate_upload_name(filename: str | None, *, field_name: str) -> None:
    if filename is None or not filename.lower().endswith(DOCX_SUFFIX):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_MEDIA_TYPE",
            message="Only .docx files are supported right now.",
            detail={"field": field_name, "filename": filename},
        )


def _read_upload_with_limit(*, upload: UploadFile, max_bytes: int, field_name: str) -> bytes:
    total_size = 0
    buffer = io.BytesIO()

    source = upload.file
    source.seek(0)

    while True:
        chunk = source.read(_READ_CHUNK_BYTES)
        if not chunk:
            break

        total_size += len(chunk)
        if total_size > max_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message="File is too large. Please upload a document smaller than "
                f"{_format_megabytes(max_bytes)}.",
                detail={
                    "field": field_name,
                    "max_bytes": max_bytes,
                    "received_bytes": total_size,
                },
            )
        buffer.write(chunk)

    return buffer.getvalue()


async def _read_json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be valid JSON",
            detail={"error": str(exc)},
        ) from exc

    if not isinstance(body, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request JSON must be an object",
        )
    return body


def _format_megabytes(value: int) -> str:
    megabytes = value / (1024 * 1024)
    if megabytes >= 1:
        return f"{megabytes:g} MB"
    return f"{value} bytes"


def _encode_file_name(file_name: str) -> str:
    # Same reserved set as JavaScript's encodeURIComponent.
    return quote(file_name, safe="!*'()")


def _package_version() -> str:
    try:
        return importlib.metadata.version("chatfill")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _api_error_response(exc: ApiRequestError, request_id: str, failure_stage: str) -> JSONResponse:
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=exc.error_code,
        status_code=exc.status_code,
        failure_stage=failure_stage,
    )
    return _error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        detail=exc.detail,
    )


def _failure_response(
    *,
    request_id: str,
    failure_stage: str,
    error_code: str,
    message: str,
    exc: Exception,
    request_started: float,
) -> JSONResponse:
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=error_code,
        status_code=500,
        failure_stage=failure_stage,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return _error_response(
        status_code=500,
        error_code=error_code,
        message=message,
        request_id=request_id,
        detail={"error": str(exc), "total_ms": _elapsed_ms(request_started)},
    )


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


async def _iter_bytes_chunks(payload: bytes, chunk_size: int = 1024 * 1024) -> AsyncIterator[bytes]:
    with io.BytesIO(payload) as handle:
        while True:
            data = handle.read(chunk_size)
            if not data:
                break
            yield data
            await asyncio.sleep(0)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
