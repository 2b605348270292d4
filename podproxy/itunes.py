"""iTunes podcast search and top charts."""
import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

from podproxy.config import DEFAULT_COUNTRY, DEFAULT_LIMIT, ITUNES_BASE
from podproxy.errors import FetchFailed
from podproxy.relay import RelayResponse, fetch

logger = logging.getLogger(__name__)


def parse_limit(value: Optional[str], default: int = DEFAULT_LIMIT) -> int:
    if value is None or value == "":
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid limit %r", value)
        return default
    return limit if limit > 0 else default


def search_url(query: str, limit: int = DEFAULT_LIMIT) -> str:
    params = urlencode({"term": query, "media": "podcast", "entity": "podcast", "limit": limit})
    return f"{ITUNES_BASE}/search?{params}"


def top_url(country: str = DEFAULT_COUNTRY, limit: int = DEFAULT_LIMIT) -> str:
    return f"{ITUNES_BASE}/{quote(country, safe='')}/rss/toppodcasts/limit={limit}/explicit=true/json"


def normalize_result(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Project one search hit onto the client record; None when it has no feed."""
    feed_url = item.get("feedUrl")
    if not feed_url:
        return None
    return {
        "title": item.get("collectionName") or item.get("trackName") or "",
        "author": item.get("artistName") or "",
        "feedUrl": feed_url,
        "imageUrl": item.get("artworkUrl600") or item.get("artworkUrl100") or "",
        "description": item.get("description") or "",
        "genre": item.get("primaryGenreName") or "",
        "trackCount": item.get("trackCount") or 0,
    }


def _json(response: RelayResponse) -> Any:
    try:
        return json.loads(response.body)
    except ValueError as e:
        raise FetchFailed(f"Invalid JSON from {response.url}: {e}", url=response.url) from e


async def search_podcasts(
    query: str,
    limit: int = DEFAULT_LIMIT,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    response = await fetch(search_url(query, limit), client=client)
    data = _json(response)
    if not isinstance(data, dict):
        raise FetchFailed(f"Invalid JSON from {response.url}: expected an object", url=response.url)

    results = []
    for item in data.get("results") or []:
        record = normalize_result(item)
        if record is not None:
            results.append(record)

    return {"success": True, "query": query, "resultCount": len(results), "results": results}


async def fetch_top(
    country: str = DEFAULT_COUNTRY,
    limit: int = DEFAULT_LIMIT,
    client: Optional[httpx.AsyncClient] = None,
) -> RelayResponse:
    return await fetch(top_url(country, limit), client=client)


async def top_podcasts(
    country: str = DEFAULT_COUNTRY,
    limit: int = DEFAULT_LIMIT,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    return _json(await fetch_top(country, limit, client=client))
