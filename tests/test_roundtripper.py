import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from gatewaycheck.roundtripper import (
    CapturedRequest,
    DefaultRoundTripper,
    Request,
    RoundTripper,
    format_dump,
)


class _EchoHandler(BaseHTTPRequestHandler):
    def _handle(self):
        if self.path == "/status/404":
            body = b"missing"
            self.send_response(404)
            self.send_header("Content-Type", "text/plain")
        elif self.path == "/bad-json":
            body = b"{not json"
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
        else:
            headers = {}
            for name, value in self.headers.items():
                headers.setdefault(name, []).append(value)
            body = json.dumps(
                {
                    "path": self.path,
                    "host": self.headers.get("Host", ""),
                    "method": self.command,
                    "proto": self.request_version,
                    "headers": headers,
                    "namespace": "echo-ns",
                    "pod": "echo-pod",
                }
            ).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    do_GET = _handle
    do_POST = _handle
    do_DELETE = _handle

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server_address():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address
    yield f"{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join()


def test_default_get_is_echoed(server_address):
    rt = DefaultRoundTripper()
    cap_req, cap_res = rt.capture_round_trip(Request(url=f"http://{server_address}/echo"))
    assert cap_req.method == "GET"
    assert cap_req.path == "/echo"
    assert cap_req.namespace == "echo-ns"
    assert cap_req.pod == "echo-pod"
    assert cap_res.status_code == 200
    assert cap_res.headers["Content-Type"] == ["application/json"]


def test_host_method_and_headers_are_sent(server_address):
    rt = DefaultRoundTripper()
    request = Request(
        url=f"http://{server_address}/echo",
        host="example.com",
        method="DELETE",
        headers={"Version": ["one"]},
    )
    cap_req, _ = rt.capture_round_trip(request)
    assert cap_req.host == "example.com"
    assert cap_req.method == "DELETE"
    assert cap_req.headers["Version"] == ["one"]


def test_content_length_matches_header(server_address):
    rt = DefaultRoundTripper()
    _, cap_res = rt.capture_round_trip(Request(url=f"http://{server_address}/echo"))
    assert cap_res.content_length == int(cap_res.headers["Content-Length"][0])
    assert cap_res.protocol.startswith("HTTP/")


def test_error_status_is_returned_not_raised(server_address):
    rt = DefaultRoundTripper()
    cap_req, cap_res = rt.capture_round_trip(
        Request(url=f"http://{server_address}/status/404")
    )
    assert cap_res.status_code == 404
    assert cap_req == CapturedRequest()


def test_bad_json_raises(server_address):
    rt = DefaultRoundTripper()
    with pytest.raises(ValueError, match="unexpected error reading response"):
        rt.capture_round_trip(Request(url=f"http://{server_address}/bad-json"))


def test_unreachable_server_raises_os_error():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    rt = DefaultRoundTripper(timeout=2.0)
    with pytest.raises(OSError):
        rt.capture_round_trip(Request(url=f"http://127.0.0.1:{port}/"))


def test_debug_prints_dumps(server_address, capsys):
    rt = DefaultRoundTripper(debug=True)
    rt.capture_round_trip(Request(url=f"http://{server_address}/echo"))
    out = capsys.readouterr().out
    assert "Sending Request:\n< GET /echo" in out
    assert "Received Response:\n< " in out


def test_default_round_tripper_is_a_round_tripper():
    assert isinstance(DefaultRoundTripper(), RoundTripper)
    with pytest.raises(TypeError):
        RoundTripper()


def test_format_dump_prefixes_every_line():
    assert format_dump("a\nb", "< ") == "< a\n< b"
    assert format_dump(b"x\ny", "> ") == "> x\n> y"


def test_captured_request_from_json_maps_proto():
    body = json.dumps({"path": "/", "proto": "HTTP/1.1", "headers": {"A": ["b"]}})
    captured = CapturedRequest.from_json(body)
    assert captured.protocol == "HTTP/1.1"
    assert captured.path == "/"
    assert captured.headers == {"A": ["b"]}


def test_captured_request_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        CapturedRequest.from_json("[1, 2]")