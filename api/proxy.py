# api/proxy.py
# Long-lived relay server using FastAPI + httpx
import logging
from typing import AsyncIterator, Mapping

import httpx
from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from podproxy import itunes
from podproxy.codec import decode
from podproxy.config import (
    CORS_HEADERS,
    DEFAULT_COUNTRY,
    FEED_CACHE_CONTROL,
    MEDIA_HEADER_KEYS,
    REQUEST_TIMEOUT,
)
from podproxy.errors import MissingTarget, ProxyError
from podproxy.relay import fetch_feed, fetch_media, media_headers, to_base64_text

logger = logging.getLogger(__name__)

app = FastAPI(title="Podcast Proxy")

BASE64_HEADERS = {"X-Content-Encoding": "base64"}


async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        yield client


@app.middleware("http")
async def add_cors_headers(req: Request, call_next):
    response = await call_next(req)
    response.headers.update(CORS_HEADERS)
    return response


def _first(params: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = params.get(name)
        if value:
            # an unescaped "+" arrives as a space after form decoding
            return value.replace(" ", "+")
    return ""


def _media_header(req: Request) -> str:
    for name in MEDIA_HEADER_KEYS:
        value = req.headers.get(name)
        if value:
            return value
    return ""


def resolve_media_url(req: Request) -> str:
    params = req.query_params
    token = _media_header(req)
    if token:
        return decode(token)
    if params.get("d"):
        return decode(_first(params, "d"))
    return _first(params, "url")


def resolve_feed_url(req: Request) -> str:
    params = req.query_params
    token = _first(params, "d", "urlenc")
    if token:
        return decode(token)
    return _first(params, "url")


async def handle_search(req: Request, client: httpx.AsyncClient) -> Response:
    params = req.query_params
    query = params.get("q") or params.get("query") or ""
    limit = itunes.parse_limit(params.get("limit"))
    data = await itunes.search_podcasts(query, limit, client=client)
    return JSONResponse(data)


async def handle_top(req: Request, client: httpx.AsyncClient) -> Response:
    params = req.query_params
    country = params.get("country") or params.get("cc") or DEFAULT_COUNTRY
    limit = itunes.parse_limit(params.get("limit"))
    upstream = await itunes.fetch_top(country, limit, client=client)
    return PlainTextResponse(to_base64_text(upstream), headers=BASE64_HEADERS)


async def handle_stream(req: Request, client: httpx.AsyncClient) -> Response:
    media_url = resolve_media_url(req)
    if not media_url:
        raise MissingTarget("Missing media URL")

    upstream = await fetch_media(media_url, req.headers.get("range"), client=client)
    # status passes through untouched so 206 works for seeking
    return Response(content=upstream.body, status_code=upstream.status_code, headers=media_headers(upstream))


async def handle_feed(req: Request, client: httpx.AsyncClient) -> Response:
    feed_url = resolve_feed_url(req)
    if not feed_url:
        raise MissingTarget("Missing feed URL")

    upstream = await fetch_feed(feed_url, client=client)
    headers = dict(BASE64_HEADERS)
    headers["Cache-Control"] = FEED_CACHE_CONTROL
    return PlainTextResponse(to_base64_text(upstream), headers=headers)


def select_action(req: Request) -> str:
    params = req.query_params
    action = params.get("action") or params.get("t") or params.get("m") or "feed"
    if action in ("search", "top"):
        return action
    if action in ("stream", "s") or _media_header(req):
        return "stream"
    return "feed"


HANDLERS = {
    "search": handle_search,
    "top": handle_top,
    "stream": handle_stream,
    "feed": handle_feed,
}


@app.api_route("/", methods=["GET", "POST", "OPTIONS"])
@app.api_route("/api/proxy", methods=["GET", "POST", "OPTIONS"])
async def proxy(req: Request, client: httpx.AsyncClient = Depends(http_client)):
    # CORS preflight
    if req.method == "OPTIONS":
        return Response(status_code=200)

    action = select_action(req)
    try:
        return await HANDLERS[action](req, client)
    except ProxyError as e:
        if e.status_code >= 500:
            logger.error("%s failed: %s", action, e)
        else:
            logger.info("%s rejected: %s", action, e)
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        logger.exception("Unhandled error during %s", action)
        return JSONResponse({"error": str(e)}, status_code=500)
