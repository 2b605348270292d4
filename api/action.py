# api/action.py
# Batch runner for scheduled jobs: reads its job from environment variables
# and writes the result as JSON files into OUTPUT_DIR.
import asyncio
import base64
import json
import logging
import os
import re
import sys
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import httpx

from podproxy import itunes
from podproxy.codec import decode
from podproxy.config import DEFAULT_COUNTRY, LOG_LEVEL, REQUEST_TIMEOUT
from podproxy.errors import MissingTarget, UnknownAction
from podproxy.relay import fetch_feed, fetch_media, to_base64_text

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "audio/mpeg"


def _millis() -> int:
    return int(time.time() * 1000)


def search_filename(query: str) -> str:
    encoded = base64.b64encode(query.encode("utf-8")).decode("ascii")
    return f"search_{re.sub(r'[^a-zA-Z0-9]', '', encoded)}.json"


def _target(env: Mapping[str, str]) -> str:
    raw = env.get("URL", "")
    url = decode(raw) if raw else ""
    if not url:
        raise MissingTarget("Missing URL")
    return url


async def run_action(action: str, env: Mapping[str, str], client: httpx.AsyncClient) -> Tuple[str, Any]:
    """Run one job and return ``(filename, result)``."""
    if action == "search":
        query = env.get("QUERY", "")
        limit = itunes.parse_limit(env.get("LIMIT"))
        return search_filename(query), await itunes.search_podcasts(query, limit, client=client)

    if action == "top":
        country = env.get("COUNTRY") or DEFAULT_COUNTRY
        limit = itunes.parse_limit(env.get("LIMIT"))
        return f"top_{country}.json", await itunes.top_podcasts(country, limit, client=client)

    if action == "feed":
        upstream = await fetch_feed(_target(env), client=client)
        result = {"encoding": "base64", "content": to_base64_text(upstream)}
        return f"feed_{_millis()}.json", result

    if action == "stream":
        upstream = await fetch_media(_target(env), client=client, accept="*/*")
        result = {
            "data": base64.b64encode(upstream.body).decode("ascii"),
            "contentType": upstream.headers.get("content-type") or DEFAULT_MEDIA_TYPE,
            "contentLength": len(upstream.body),
        }
        return f"media_{_millis()}.json", result

    raise UnknownAction(f"Unknown action: {action}")


def write_result(output_dir: Path, filename: str, action: str, result: Any) -> None:
    payload = json.dumps(result, indent=2)

    output_path = output_dir / filename
    output_path.write_text(payload, encoding="utf-8")
    print(f"Output written to: {output_path}")

    # predictable location for the most recent run
    latest_path = output_dir / f"latest_{action}.json"
    latest_path.write_text(payload, encoding="utf-8")
    print(f"Latest written to: {latest_path}")


async def _run(env: Mapping[str, str], transport: Optional[httpx.AsyncBaseTransport]) -> None:
    action = env.get("ACTION") or "top"
    output_dir = Path(env.get("OUTPUT_DIR") or "./output")
    output_dir.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=transport) as client:
        filename, result = await run_action(action, env, client)
    write_result(output_dir, filename, action, result)


def main(env: Optional[Mapping[str, str]] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if env is None:
        env = os.environ

    try:
        asyncio.run(_run(env, transport))
    except Exception as e:
        logger.debug("Action failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
