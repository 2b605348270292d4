import base64
import gzip
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api.proxy import app, http_client
from podproxy.codec import encode
from podproxy.config import FEED_ACCEPT

FEED_URL = "https://feeds.example.com/show.xml"
MEDIA_URL = "https://cdn.example.com/episode.mp3"
RSS = "<rss><channel><title>Show</title></channel></rss>"


@pytest.fixture
def client(origin):
    async def fake_http_client():
        async with origin.client() as c:
            yield c

    app.dependency_overrides[http_client] = fake_http_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert "x-media-data" in response.headers["access-control-allow-headers"]
    assert "Content-Range" in response.headers["access-control-expose-headers"]


def test_options_preflight(client):
    response = client.options("/")
    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)


@pytest.mark.parametrize("params", [{"action": "feed"}, {}])
def test_feed_without_target_is_400(client, params):
    response = client.get("/", params=params)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing feed URL"}
    assert_cors(response)


@pytest.mark.parametrize("param", ["d", "urlenc"])
def test_feed_from_token(client, origin, param):
    origin.add(FEED_URL, content=RSS.encode(), headers={"Content-Type": "application/rss+xml"})

    response = client.get("/", params={"action": "feed", param: encode(FEED_URL)})

    assert response.status_code == 200
    assert response.text == b64(RSS)
    assert response.headers["x-content-encoding"] == "base64"
    assert response.headers["cache-control"] == "public, max-age=300"
    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert origin.requests[0].headers["accept"] == FEED_ACCEPT
    assert_cors(response)


def test_feed_from_plain_url_on_api_path(client, origin):
    origin.add(FEED_URL, content=RSS.encode())

    response = client.get("/api/proxy", params={"url": FEED_URL})

    assert response.status_code == 200
    assert base64.b64decode(response.text).decode() == RSS


def test_feed_token_without_prefix(client, origin):
    origin.add(FEED_URL, content=RSS.encode())

    response = client.get("/", params={"d": encode(FEED_URL)[2:]})

    assert response.status_code == 200
    assert response.text == b64(RSS)


def test_feed_follows_redirect(client, origin):
    origin.add(FEED_URL, 301, headers={"Location": "/moved.xml"})
    origin.add("https://feeds.example.com/moved.xml", content=RSS.encode())

    response = client.get("/", params={"url": FEED_URL})

    assert response.text == b64(RSS)


def test_stream_range_passthrough(client, origin):
    origin.add(
        MEDIA_URL,
        206,
        content=b"ID3\x00",
        headers={
            "Content-Type": "audio/mpeg",
            "Content-Length": "4",
            "Content-Range": "bytes 0-3/5000",
            "Set-Cookie": "tracking=1",
        },
    )

    response = client.get(
        "/",
        params={"action": "stream", "d": encode(MEDIA_URL)},
        headers={"Range": "bytes=0-3"},
    )

    assert origin.requests[0].headers["range"] == "bytes=0-3"
    assert response.status_code == 206
    assert response.content == b"ID3\x00"
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["content-length"] == "4"
    assert response.headers["content-range"] == "bytes 0-3/5000"
    assert response.headers["accept-ranges"] == "bytes"
    assert "set-cookie" not in response.headers
    assert_cors(response)


def test_stream_compressed_origin_length_matches_body(client, origin):
    audio = b"\xff\xfb" * 2500
    compressed = gzip.compress(audio)
    origin.add(
        MEDIA_URL,
        content=compressed,
        headers={
            "Content-Type": "audio/mpeg",
            "Content-Encoding": "gzip",
            "Content-Length": str(len(compressed)),
        },
    )

    response = client.get("/", params={"action": "stream", "d": encode(MEDIA_URL)})

    assert response.status_code == 200
    assert response.content == audio
    assert int(response.headers["content-length"]) == len(audio)
    assert response.headers["content-type"] == "audio/mpeg"


@pytest.mark.parametrize("header", ["X-Media-Data", "X-Cache-Tag"])
def test_stream_selected_by_media_header(client, origin, header):
    origin.add(MEDIA_URL, content=b"audio", headers={"Content-Type": "audio/mpeg"})

    response = client.get("/", headers={header: encode(MEDIA_URL)})

    assert response.status_code == 200
    assert response.content == b"audio"
    assert "range" not in origin.requests[0].headers


def test_stream_alias_with_plain_url(client, origin):
    origin.add(MEDIA_URL, content=b"audio")

    response = client.get("/", params={"t": "s", "url": MEDIA_URL})

    assert response.status_code == 200
    assert response.content == b"audio"


def test_stream_preserves_origin_error_status(client, origin):
    response = client.get("/", params={"action": "stream", "url": MEDIA_URL})
    assert response.status_code == 404


def test_stream_without_target_is_400(client):
    response = client.get("/", params={"action": "stream"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing media URL"}


def test_stream_with_unsupported_url_is_400(client, origin):
    response = client.get("/", params={"action": "stream", "url": "ftp://example.com/a.mp3"})
    assert response.status_code == 400
    assert "error" in response.json()
    assert origin.requests == []


def test_search(client, origin):
    payload = {
        "results": [
            {"collectionName": "Tech", "feedUrl": "https://f.example.com/tech.xml"},
            {"collectionName": "Missing feed"},
        ]
    }
    origin.add(
        "https://itunes.apple.com/search?term=tech&media=podcast&entity=podcast&limit=5",
        content=json.dumps(payload).encode(),
    )

    response = client.get("/", params={"action": "search", "q": "tech", "limit": "5"})

    assert response.status_code == 200
    data = response.json()
    assert data["resultCount"] == 1
    assert data["results"][0]["feedUrl"] == "https://f.example.com/tech.xml"
    assert data["results"][0]["trackCount"] == 0
    assert_cors(response)


def test_top(client, origin):
    chart = json.dumps({"feed": {"entry": []}})
    origin.add("https://itunes.apple.com/GB/rss/toppodcasts/limit=10/explicit=true/json", content=chart.encode())

    response = client.get("/", params={"m": "top", "cc": "GB", "limit": "10"})

    assert response.status_code == 200
    assert response.headers["x-content-encoding"] == "base64"
    assert json.loads(base64.b64decode(response.text)) == {"feed": {"entry": []}}


def test_top_defaults(client, origin):
    origin.add("https://itunes.apple.com/US/rss/toppodcasts/limit=25/explicit=true/json", content=b"{}")

    response = client.get("/", params={"action": "top"})

    assert response.status_code == 200
    assert response.text == b64("{}")


def test_fetch_failure_is_500(client, origin):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    origin.add_handler(FEED_URL, refuse)

    response = client.get("/", params={"url": FEED_URL})

    assert response.status_code == 500
    assert "connection refused" in response.json()["error"]
    assert_cors(response)
