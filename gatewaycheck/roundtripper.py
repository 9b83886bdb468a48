"""Making HTTP requests and capturing what an echo server saw."""

from __future__ import annotations

import json
import re
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

_START_OF_LINE = re.compile(r"(?m)^")

_JSON_FIELDS = {
    "path": "path",
    "host": "host",
    "method": "method",
    "proto": "protocol",
    "namespace": "namespace",
    "pod": "pod",
}

_REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})


@dataclass
class Request:
    """The primary input for making a request."""

    url: str
    host: str = ""
    protocol: str = ""
    method: str = ""
    headers: dict[str, list[str]] | None = None


@dataclass
class CapturedRequest:
    """Request metadata captured from an echo server response."""

    path: str = ""
    host: str = ""
    method: str = ""
    protocol: str = ""
    headers: dict[str, list[str]] | None = None
    namespace: str = ""
    pod: str = ""

    @classmethod
    def from_json(cls, body: bytes | str) -> CapturedRequest:
        """Build a captured request from an echo server's JSON body."""
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ValueError(f"unexpected error reading response: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(
                "unexpected error reading response: expected a JSON object"
            )
        values: dict[str, Any] = {}
        for key, attribute in _JSON_FIELDS.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(
                    f"unexpected error reading response: field {key!r} is not a string"
                )
            values[attribute] = value
        headers = data.get("headers")
        if headers is not None:
            values["headers"] = _parse_header_map(headers)
        return cls(**values)


def _parse_header_map(raw: Any) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        raise ValueError("unexpected error reading response: headers is not an object")
    parsed: dict[str, list[str]] = {}
    for name, values in raw.items():
        if values is None:
            parsed[name] = []
            continue
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(
                f"unexpected error reading response: header {name!r} is not a list of strings"
            )
        parsed[name] = list(values)
    return parsed


@dataclass
class CapturedResponse:
    """Response metadata."""

    status_code: int
    content_length: int = -1
    protocol: str = ""
    headers: dict[str, list[str]] = field(default_factory=dict)


class RoundTripper(ABC):
    """Makes requests within conformance tests."""

    @abstractmethod
    def capture_round_trip(
        self, request: Request
    ) -> tuple[CapturedRequest, CapturedResponse]:
        """Make the request and return what was captured."""


class _KeepErrorResponses(urllib.request.HTTPErrorProcessor):
    """Hands non-2xx responses back unchanged, still following redirects."""

    def http_response(self, request, response):
        if response.status in _REDIRECT_CODES:
            return super().http_response(request, response)
        return response

    https_response = http_response


def _canonical_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _protocol_name(version: int) -> str:
    return f"HTTP/{version // 10}.{version % 10}"


def _dump_request(req: urllib.request.Request) -> str:
    lines = [f"{req.get_method()} {req.selector or '/'} HTTP/1.1"]
    if not req.has_header("Host"):
        lines.append(f"Host: {req.host}")
    lines.extend(f"{name}: {value}" for name, value in req.header_items())
    return "\r\n".join(lines) + "\r\n\r\n"


def _dump_response(protocol: str, status: int, reason: str, headers, body: bytes) -> str:
    lines = [f"{protocol} {status} {reason}"]
    lines.extend(f"{name}: {value}" for name, value in headers.items())
    return "\r\n".join(lines) + "\r\n\r\n" + body.decode("utf-8", errors="replace")


@dataclass
class DefaultRoundTripper(RoundTripper):
    """Round tripper used when no custom implementation is given."""

    debug: bool = False
    timeout: float = 10.0

    def capture_round_trip(
        self, request: Request
    ) -> tuple[CapturedRequest, CapturedResponse]:
        """Make the request and capture the echoed request and the response.

        Network failures raise OSError; an HTTP error status does not raise.
        """
        method = request.method or "GET"
        req = urllib.request.Request(request.url, method=method)
        if request.host:
            req.add_header("Host", request.host)
        for name, values in (request.headers or {}).items():
            if values:
                req.add_header(name, values[0])

        if self.debug:
            print(f"Sending Request:\n{format_dump(_dump_request(req), '< ')}\n\n")

        opener = urllib.request.build_opener(_KeepErrorResponses)
        with opener.open(req, timeout=self.timeout) as resp:
            body = resp.read()
            status = resp.status
            protocol = _protocol_name(resp.version)
            message = resp.headers

        if self.debug:
            dump = _dump_response(protocol, status, resp.reason, message, body)
            print(f"Received Response:\n{format_dump(dump, '< ')}\n\n")

        captured_request = CapturedRequest()
        if message.get("Content-Type") == "application/json":
            captured_request = CapturedRequest.from_json(body)

        headers: dict[str, list[str]] = {}
        for name, value in message.items():
            headers.setdefault(_canonical_header_name(name), []).append(value)

        length_header = message.get("Content-Length")
        try:
            content_length = int(length_header) if length_header is not None else -1
        except ValueError:
            content_length = -1

        captured_response = CapturedResponse(
            status_code=status,
            content_length=content_length,
            protocol=protocol,
            headers=headers,
        )
        return captured_request, captured_response


def format_dump(data: bytes | str, prefix: str) -> str:
    """Put the prefix at the start of every line of a dump."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    return _START_OF_LINE.sub(lambda _match: prefix, data)