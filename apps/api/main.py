"""FastAPI wrapper for the mqreplace single-pass replace pipeline."""

from __future__ import annotations

import importlib.metadata
import json
import logging
import os
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from mqreplace.orchestrator.pipeline import run_replace
from mqreplace.render.models import ReplaceOutput
from mqreplace.render.template import NEXT_STOP
from mqreplace.rules.callbacks import list_supported_callbacks
from mqreplace.rules.loader import build_pairs
from mqreplace.rules.models import PairSpec, ReplaceOptions
from mqreplace.utils.errors import PatternSyntaxError, TemplateSyntaxError
from mqreplace.utils.logs import log_event

app = FastAPI(title="mqreplace API", version="0.1.0")
logger = logging.getLogger("mqreplace.api")

_REQUEST_ID_HEADER = "X-Mqr-Request-Id"
_DEFAULT_MAX_TEXT_BYTES = 5 * 1024 * 1024


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


class ReplaceRequest(BaseModel):
    """JSON body of ``POST /v1/replace``."""

    model_config = ConfigDict(extra="forbid")

    text: str
    pairs: list[PairSpec] = Field(min_length=1)
    regex: bool = False
    ignore_case: bool = False
    preserve_case: bool = False
    multiline: bool = True
    delimited: bool = False
    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)
    backward: bool = False
    include_entries: bool = True

    def options(self) -> ReplaceOptions:
        return ReplaceOptions.model_validate(
            self.model_dump(exclude={"text", "pairs", "include_entries"})
        )


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
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for clients building requests."""

    request_id = _request_id_from_request(request)
    payload = {
        "supported_callbacks": list_supported_callbacks(),
        "option_fields": sorted(ReplaceOptions.model_fields),
        "pair_fields": sorted(field.alias or name for name, field in PairSpec.model_fields.items()),
        "next_stop_marker": NEXT_STOP,
        "max_text_bytes": _max_text_bytes(),
        "version": _package_version(),
    }
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/replace", response_model=None)
async def replace_v1(request: Request) -> JSONResponse:
    """Run one single-pass replace over the posted text."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "init"

    try:
        failure_stage = "read_body"
        max_text_bytes = _max_text_bytes()
        body = await request.body()
        if len(body) > max_text_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="TEXT_TOO_LARGE",
                message="request body too large",
                detail={"max_text_bytes": max_text_bytes},
            )

        failure_stage = "validate_inputs"
        payload = _parse_request(body)
        options = _options_with_api_error(payload)
        pairs = _build_pairs_with_api_error(payload, options)

        _log_event(
            logging.INFO,
            "start",
            request_id,
            pair_count=len(pairs),
            text_length=len(payload.text),
            options=options.model_dump(mode="json"),
        )

        failure_stage = "replace"
        output: ReplaceOutput = await run_in_threadpool(run_replace, payload.text, pairs, options)

        failure_stage = "respond"
        summary = output.report.summary
        _log_event(
            logging.INFO,
            "done",
            request_id,
            total_matches=summary.total_matches,
            replaced_count=summary.replaced_count,
            total_ms=_elapsed_ms(request_started),
        )
        report_payload = output.report.model_dump(mode="json")
        if not payload.include_entries:
            report_payload["entries"] = []
        return JSONResponse(
            status_code=200,
            headers={_REQUEST_ID_HEADER: request_id},
            content={
                "text": output.text,
                "report": report_payload,
                "request_id": request_id,
            },
        )
    except ApiRequestError as exc:
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
    except (PatternSyntaxError, TemplateSyntaxError) as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INVALID_PATTERN",
            status_code=400,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=400,
            error_code="INVALID_PATTERN",
            message=str(exc),
            request_id=request_id,
            detail=_syntax_error_detail(exc),
        )
    except ValueError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INVALID_ARGUMENT",
            status_code=400,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message=str(exc),
            request_id=request_id,
        )
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"error": str(exc), "total_ms": _elapsed_ms(request_started)},
        )


def _parse_request(body: bytes) -> ReplaceRequest:
    try:
        raw = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="request body must be valid JSON",
            detail={"error": str(exc)},
        ) from exc
    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="request body must be a JSON object",
        )
    try:
        return ReplaceRequest.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="request schema validation failed",
            detail={"errors": _validation_errors(exc)},
        ) from exc


def _options_with_api_error(payload: ReplaceRequest) -> ReplaceOptions:
    try:
        return payload.options()
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="invalid replace options",
            detail={"errors": _validation_errors(exc)},
        ) from exc


def _build_pairs_with_api_error(payload: ReplaceRequest, options: ReplaceOptions):
    try:
        return build_pairs(payload.pairs, regex=options.regex)
    except ValueError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message=str(exc),
            detail={"field": "pairs", "supported_callbacks": list_supported_callbacks()},
        ) from exc


def _syntax_error_detail(exc: PatternSyntaxError | TemplateSyntaxError) -> dict[str, Any]:
    if isinstance(exc, PatternSyntaxError):
        return {"field": "from", "pair_index": exc.pair_index, "position": exc.position}
    return {"field": "to", "pair_index": exc.pair_index}


def _validation_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
        for error in exc.errors()
    ]


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _max_text_bytes() -> int:
    raw = os.getenv("MQR_MAX_TEXT_BYTES")
    if raw is None:
        return _DEFAULT_MAX_TEXT_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_TEXT_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_TEXT_BYTES


def _package_version() -> str:
    try:
        return importlib.metadata.version("mqreplace")
    except importlib.metadata.PackageNotFoundError:
        return app.version


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
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    log_event(logger, level, event, request_id=request_id, **fields)
