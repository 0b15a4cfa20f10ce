"""MOTD Pulse FastAPI server — legacy MOTD rendering and status lookups."""

from __future__ import annotations

import os
import socket
import time
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, model_validator

from motd_parser import HARD_MAX_DEPTH, Document, parse
from motd_render import render, render_plain, render_runs
from status_client import StatusAddressError, StatusError, query_status, resolve_address

app = FastAPI(title="MOTD Pulse", version="1.0.0")
_security = HTTPBearer()

TOKEN = os.environ.get("MOTD_TOKEN", "changeme")
MAX_DEPTH = int(os.environ.get("MOTD_MAX_DEPTH", "128"))
STATUS_TIMEOUT = float(os.environ.get("MOTD_STATUS_TIMEOUT", "5.0"))
STATUS_RATE_LIMIT = int(os.environ.get("MOTD_RATE_LIMIT", "5"))
MAX_TEXT_LEN = 32768

if TOKEN == "changeme":
    import sys

    print(
        "\n\033[1;31mFATAL: MOTD_TOKEN is set to 'changeme'.\033[0m\n"
        "Generate a secure token:  python3 -c \"import secrets; print(secrets.token_urlsafe(32))\"\n"
        "Then set it:  export MOTD_TOKEN=<your-token>\n",
        file=sys.stderr,
    )
    sys.exit(1)

if not 0 <= MAX_DEPTH <= HARD_MAX_DEPTH:
    import sys

    print(f"FATAL: MOTD_MAX_DEPTH must be between 0 and {HARD_MAX_DEPTH}, got {MAX_DEPTH}", file=sys.stderr)
    sys.exit(1)


def _verify(creds: HTTPAuthorizationCredentials = Depends(_security)) -> str:
    if creds.credentials != TOKEN:
        raise HTTPException(status_code=401, detail="Invalid token")
    return creds.credentials


def _parse(text: str) -> Document:
    try:
        return parse(text, max_depth=MAX_DEPTH)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _warnings(document: Document) -> list[dict]:
    return [{"position": w.position, "code": w.code} for w in document.warnings]


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "hostname": socket.gethostname(),
    }


class RenderRequest(BaseModel):
    text: str
    format: Literal["html", "runs", "plain"] = "html"

    @model_validator(mode="after")
    def bounded_text(self):
        if len(self.text) > MAX_TEXT_LEN:
            raise ValueError(f"text longer than {MAX_TEXT_LEN} characters")
        return self


@app.post("/render")
async def post_render(
    body: RenderRequest,
    _: str = Depends(_verify),
):
    document = _parse(body.text)
    if body.format == "runs":
        output = render_runs(document)
    elif body.format == "plain":
        output = render_plain(document)
    else:
        output = render(document)
    return {body.format: output, "warnings": _warnings(document)}


class _RateLimiter:
    """Simple in-memory sliding-window rate limiter."""

    def __init__(self, max_per_sec: int = 20):
        self._max = max_per_sec
        self._timestamps: list[float] = []

    def check(self) -> None:
        now = time.monotonic()
        self._timestamps = [t for t in self._timestamps if now - t < 1.0]
        if len(self._timestamps) >= self._max:
            raise HTTPException(status_code=429, detail="Rate limit exceeded")
        self._timestamps.append(now)


_status_limiter = _RateLimiter(max_per_sec=STATUS_RATE_LIMIT)


@app.get("/status")
async def status(
    _: str = Depends(_verify),
    address: str = Query(min_length=1, max_length=300),
):
    _status_limiter.check()
    try:
        host, port = await resolve_address(address, timeout=STATUS_TIMEOUT)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        result = await query_status(host, port, timeout=STATUS_TIMEOUT)
    except StatusAddressError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StatusError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    document = _parse(result.description)
    return {
        "host": host,
        "port": port,
        "version": {"name": result.version_name, "protocol": result.protocol},
        "players": {"online": result.players_online, "max": result.players_max},
        "description": result.description,
        "html": render(document),
        "runs": render_runs(document),
        "warnings": _warnings(document),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8787)
