import asyncio
import sys
from pathlib import Path
from typing import Iterator, Tuple
from urllib.parse import urlencode, urlparse

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from notes.main import create_app  # noqa: E402


class InlineClient(requests.Session):
    """
    Drives the ASGI app in-process and hands back plain ``requests`` responses.

    Redirects are never followed so tests can assert on them directly.
    """

    def __init__(self, app) -> None:
        super().__init__()
        self.app = app
        self.base_url = "http://testserver"

    def request(self, method, url, **kwargs):  # type: ignore[override]
        parsed = urlparse(url)
        path = parsed.path or "/"
        query = parsed.query.encode("utf-8")
        headers = [
            (b"host", b"testserver"),
            (b"accept", b"*/*"),
        ]
        body = kwargs.get("data") or kwargs.get("content") or b""
        if isinstance(body, dict):
            body = urlencode(body)
            headers.append((b"content-type", b"application/x-www-form-urlencoded"))
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.4"},
            "http_version": "1.1",
            "method": method.upper(),
            "scheme": parsed.scheme or "http",
            "path": path,
            "raw_path": path.encode("utf-8"),
            "root_path": "",
            "query_string": query,
            "headers": headers,
            "server": (parsed.hostname or "testserver", parsed.port or 80),
            "client": ("testclient", 50000),
        }
        request_messages = [
            {
                "type": "http.request",
                "body": body,
                "more_body": False,
            }
        ]

        async def receive() -> dict:
            if request_messages:
                return request_messages.pop(0)
            # The client stays connected until the response is complete.
            await asyncio.Event().wait()
            return {"type": "http.disconnect"}

        collected: list[dict] = []

        async def send(message: dict) -> None:
            collected.append(message)

        asyncio.run(self.app(scope, receive, send))

        status = 500
        response_headers = requests.structures.CaseInsensitiveDict()
        chunks: list[bytes] = []
        for message in collected:
            if message["type"] == "http.response.start":
                status = message["status"]
                for header_key, header_value in message.get("headers", []):
                    response_headers[header_key.decode("latin-1")] = header_value.decode("latin-1")
            elif message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))
        response = requests.Response()
        response.status_code = status
        response._content = b"".join(chunks)
        response.url = url
        response.headers = response_headers
        if "content-type" in response_headers:
            response.encoding = requests.utils.get_encoding_from_headers(response_headers)
        return response


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def app(data_dir: Path):
    return create_app(data_dir)


@pytest.fixture
def http_session(app) -> Iterator[Tuple[InlineClient, str]]:
    client = InlineClient(app)
    try:
        yield client, client.base_url
    finally:
        client.close()
