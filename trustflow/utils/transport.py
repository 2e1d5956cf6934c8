import gzip
import json
import logging
import unicodedata
import zlib
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
SNIPPET_LIMIT = 400
BINARY_SAMPLE_SIZE = 200
BINARY_THRESHOLD = 0.05
REPLACEMENT_CHAR = "\ufffd"

_NO_DATA = object()

class TransportError(RuntimeError):
    """A request that did not produce usable JSON."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

def is_gzip(body: bytes) -> bool:
    return body[:2] == GZIP_MAGIC

def decompress(body: bytes) -> Optional[bytes]:
    try:
        return gzip.decompress(body)
    except (OSError, EOFError, zlib.error) as e:
        logger.debug(f"Body has gzip magic but does not decompress: {e}")
        return None

def decode_text(body: bytes) -> str:
    # Invalid sequences become U+FFFD, which looks_binary() counts
    try:
        return body.decode("utf-8", errors="replace")
    except (UnicodeError, AttributeError):
        return ""

def parse_json(text: str) -> Any:
    if not text:
        return _NO_DATA
    try:
        return json.loads(text)
    except ValueError:
        return _NO_DATA

def looks_binary(text: str) -> bool:
    """Heuristic: more than 5% of the first 200 characters are garbage."""
    sample = text[:BINARY_SAMPLE_SIZE]
    if not sample:
        return False
    suspicious = sum(
        1 for ch in sample
        if ch == REPLACEMENT_CHAR
        or (unicodedata.category(ch) == "Cc" and ch not in "\t\n\r")
    )
    return suspicious / len(sample) > BINARY_THRESHOLD

def snippet(text: str) -> str:
    return " ".join(text.split())[:SNIPPET_LIMIT]

def error_from_payload(data: Any) -> Optional[str]:
    """Read the backend's error envelope.

    Both {"error": "..."} and {"errors": ["...", ...]} are accepted, a string
    `error` wins over the list.
    """
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, str) and error:
        return error
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        return " | ".join(str(e) for e in errors)
    return None

def _diagnose(raw: bytes, text: str, status: int, ok: bool) -> str:
    if is_gzip(raw):
        if ok:
            return ("Expected JSON but received gzip-compressed data. "
                    "A proxy may be stripping the Content-Encoding header.")
        return (f"Request failed ({status}): response is gzip-compressed but was not decoded. "
                "A proxy may be stripping the Content-Encoding header.")
    if looks_binary(text):
        if ok:
            return f"Expected JSON but received binary data (HTTP {status})."
        return f"Request failed ({status}): response looks like binary data."
    excerpt = snippet(text)
    if ok:
        if excerpt:
            return f"Expected JSON but received: {excerpt}"
        return f"Expected JSON but received an empty response (HTTP {status})."
    return excerpt or f"Request failed: {status}"

def decode_response(status: int, raw: bytes) -> Any:
    """Turn a raw HTTP response into parsed JSON or raise TransportError."""
    ok = 200 <= status < 300
    text = None
    if is_gzip(raw):
        inflated = decompress(raw)
        if inflated is not None:
            text = decode_text(inflated)
    if text is None:
        text = decode_text(raw)
    data = parse_json(text)

    if not ok:
        message = None if data is _NO_DATA else error_from_payload(data)
        raise TransportError(message or _diagnose(raw, text, status, ok=False), status=status)
    if data is _NO_DATA:
        raise TransportError(_diagnose(raw, text, status, ok=True), status=status)
    return data

async def fetch_json(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """GET a URL and return its JSON body, tolerating a mangled transport."""
    if client is None:
        async with httpx.AsyncClient(timeout=None) as own_client:
            return await fetch_json(url, headers, own_client)

    logger.debug(f"GET {url}")
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise TransportError(f"Request failed: {str(e) or e.__class__.__name__}") from e
    return decode_response(response.status_code, response.content)

def open_client(config) -> httpx.AsyncClient:
    """Client shared by all requests of one round.

    A relative base URL (the default proxy-extension path) is resolved against
    config.server.
    """
    return httpx.AsyncClient(
        base_url=config.server or "",
        timeout=config.timeout,
        cookies=config.cookies(),
    )
