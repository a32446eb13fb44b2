"""FastAPI app receiving action webhooks on /wh."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from airdrop import __version__
from airdrop.actions import ActionDispatcher, InboundMessage

WEBHOOK_PATH = "/wh"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    if request.client is None:
        return ""
    return request.client.host


def decode_body(raw: bytes) -> Any:
    """Decode the first JSON value of the body; anything after it is ignored."""
    text = raw.decode("utf-8").lstrip()
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


def create_app(dispatcher: ActionDispatcher, log: structlog.stdlib.BoundLogger) -> FastAPI:
    app = FastAPI(
        title="Webhook Receiver",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # starlette raises this for every method the route does not accept
    @app.exception_handler(405)
    async def method_not_allowed(request: Request, exc: StarletteHTTPException) -> Response:
        return PlainTextResponse("Method Not Allowed", status_code=405, headers=exc.headers)

    @app.post(WEBHOOK_PATH)
    async def webhook(request: Request) -> Response:
        ip = client_ip(request)
        log.info(
            "Received request",
            ip=ip,
            user_agent=request.headers.get("user-agent", ""),
            path=request.url.path,
        )

        raw = await request.body()
        try:
            body = decode_body(raw)
            if body is None:
                body = {}
            if not isinstance(body, dict):
                raise ValueError(f"expected a JSON object, got {type(body).__name__}")
            msg = InboundMessage.model_validate(body)
        except (ValueError, ValidationError) as e:
            log.error("Error decoding JSON", error=str(e))
            return PlainTextResponse("Error decoding JSON", status_code=400)

        log.info("Received action", action=msg.action, ip=ip)

        # handlers block on child processes
        resp = await run_in_threadpool(dispatcher.dispatch, msg)

        log.info("Sent response", success=resp.success, message=resp.message)
        return JSONResponse(resp.model_dump())

    return app
