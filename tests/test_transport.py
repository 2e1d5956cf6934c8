import unittest
import gzip
import json
from unittest.mock import patch

import httpx

from trustflow.utils.transport import (
    TransportError,
    decode_response,
    error_from_payload,
    fetch_json,
    looks_binary,
)

class TestDecodeResponse(unittest.TestCase):
    def test_valid_json_returned_unchanged(self):
        payload = {"signed": True, "sbom": False, "errors": []}
        self.assertEqual(decode_response(200, json.dumps(payload).encode()), payload)

    def test_gzip_body_without_content_encoding(self):
        body = gzip.compress(json.dumps({"reportCount": 2}).encode())
        self.assertEqual(decode_response(200, body), {"reportCount": 2})

    def test_gzip_failure_when_decompression_unavailable(self):
        body = gzip.compress(b'{"error": "hidden"}')
        with patch("trustflow.utils.transport.gzip.decompress", side_effect=OSError("unsupported")):
            with self.assertRaises(TransportError) as ctx:
                decode_response(502, body)
        self.assertIn("gzip", ctx.exception.message)
        self.assertIn("Content-Encoding", ctx.exception.message)
        self.assertEqual(ctx.exception.status, 502)

    def test_truncated_gzip_on_success(self):
        body = gzip.compress(b'{"a": 1}')[:8]
        with self.assertRaises(TransportError) as ctx:
            decode_response(200, body)
        self.assertIn("Expected JSON", ctx.exception.message)
        self.assertIn("gzip", ctx.exception.message)

    def test_error_field(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(403, b'{"error": "permission denied"}')
        self.assertEqual(ctx.exception.message, "permission denied")

    def test_errors_list(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(400, b'{"errors": ["bad image", "no digest"]}')
        self.assertEqual(ctx.exception.message, "bad image | no digest")

    def test_binary_failure(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(500, bytes(range(0, 32)) * 4)
        self.assertIn("binary", ctx.exception.message)
        self.assertIn("500", ctx.exception.message)

    def test_text_snippet_is_collapsed_and_truncated(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(502, b"  Bad \n\n gateway  ")
        self.assertEqual(ctx.exception.message, "Bad gateway")

        with self.assertRaises(TransportError) as ctx:
            decode_response(500, b"x" * 1000)
        self.assertEqual(len(ctx.exception.message), 400)

    def test_empty_failure_body(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(503, b"")
        self.assertEqual(ctx.exception.message, "Request failed: 503")

    def test_success_without_json(self):
        with self.assertRaises(TransportError) as ctx:
            decode_response(200, b"<html>login</html>")
        self.assertEqual(ctx.exception.message, "Expected JSON but received: <html>login</html>")

    def test_success_with_json_null(self):
        self.assertIsNone(decode_response(200, b"null"))

class TestHelpers(unittest.TestCase):
    def test_looks_binary(self):
        self.assertFalse(looks_binary("plain text\twith\nnewlines\r\n"))
        self.assertTrue(looks_binary("abc" + "\ufffd" * 5))
        self.assertFalse(looks_binary(""))

    def test_error_envelope_prefers_error_string(self):
        self.assertEqual(error_from_payload({"error": "a", "errors": ["b"]}), "a")
        self.assertIsNone(error_from_payload({"errors": []}))
        self.assertIsNone(error_from_payload(["not", "a", "dict"]))

class TestFetchJson(unittest.IsolatedAsyncioTestCase):
    async def test_sends_headers_and_parses(self):
        seen = {}

        async def handler(request):
            seen["accept"] = request.headers.get("accept")
            return httpx.Response(200, content=b'{"ok": true}')

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            data = await fetch_json("http://backend/verify", {"Accept": "application/json"}, client)
        self.assertEqual(data, {"ok": True})
        self.assertEqual(seen["accept"], "application/json")

    async def test_network_error_is_classified(self):
        async def handler(request):
            raise httpx.ConnectError("connection refused")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(TransportError) as ctx:
                await fetch_json("http://backend/verify", {}, client)
        self.assertEqual(ctx.exception.message, "Request failed: connection refused")
        self.assertIsNone(ctx.exception.status)

if __name__ == '__main__':
    unittest.main()
