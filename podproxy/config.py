# podproxy/config.py
# Settings are read once at import; nothing here is mutated at runtime.
import os

# --- CONFIGURATION ---
PORT = int(os.environ.get("PORT", 3000))
REQUEST_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", 30))
MAX_REDIRECTS = int(os.environ.get("PROXY_MAX_REDIRECTS", 10))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Token obfuscation. Existing clients produce tokens with these exact values,
# so they are not read from the environment.
XOR_KEY = "AntennaPodProxy2024"
ENCODED_PREFIX = "px"

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
FEED_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"
FEED_CACHE_CONTROL = "public, max-age=300"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-cache-tag, x-media-data, range",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Expose-Headers": "Content-Range, Accept-Ranges, X-Content-Encoding",
}

MEDIA_HEADER_WHITELIST = ("Content-Type", "Content-Length", "Content-Range")
MEDIA_HEADER_KEYS = ("X-Cache-Tag", "X-Media-Data")

ITUNES_BASE = "https://itunes.apple.com"
DEFAULT_LIMIT = 25
DEFAULT_COUNTRY = "US"
