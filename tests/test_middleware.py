from __future__ import annotations

from starlette.requests import Request

from bazaar.middleware import client_ip_identity


def make_request(client) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/test",
        "headers": [],
        "query_string": b"",
        "client": client,
    }
    return Request(scope)


def test_identity_is_peer_host():
    assert client_ip_identity(make_request(("10.0.0.1", 50000))) == "10.0.0.1"


def test_identity_without_peer_address_is_unknown():
    assert client_ip_identity(make_request(None)) == "unknown"
