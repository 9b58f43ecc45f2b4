"""Tests for credential resolution and client identification."""

import hashlib
from types import SimpleNamespace

from starlette.requests import Request

from pixelvault.app.core.config import Settings
from pixelvault.app.middleware.auth import PASSWORD_HEADER, resolve_credential
from pixelvault.app.middleware.client import get_client_id, get_client_ip


def _request(headers=None, query: str = "", client_host: str = "10.0.0.1", trust: bool = False) -> Request:
    app = SimpleNamespace(
        state=SimpleNamespace(settings=Settings(_env_file=None, trust_forwarded_for=trust))
    )
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/images",
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (client_host, 12345),
        "app": app,
    }
    return Request(scope)


class TestResolveCredential:

    def test_header_wins(self):
        request = _request(headers={PASSWORD_HEADER: "from-header"}, query="password=from-query")

        assert resolve_credential(request, form_value="from-form") == "from-header"

    def test_form_before_query(self):
        request = _request(query="password=from-query")

        assert resolve_credential(request, form_value="from-form") == "from-form"

    def test_query_fallback(self):
        assert resolve_credential(_request(query="password=from-query")) == "from-query"

    def test_nothing_supplied(self):
        assert resolve_credential(_request()) is None

    def test_empty_header_still_counts(self):
        request = _request(headers={PASSWORD_HEADER: ""}, query="password=from-query")

        assert resolve_credential(request) == ""


class TestClientId:

    def test_hashes_peer_address(self):
        request = _request(client_host="192.0.2.7")

        assert get_client_id(request) == hashlib.sha256(b"192.0.2.7").hexdigest()[:32]

    def test_forwarded_for_ignored_by_default(self):
        request = _request(headers={"X-Forwarded-For": "203.0.113.9"}, client_host="192.0.2.7")

        assert get_client_ip(request) == "192.0.2.7"
        assert get_client_id(request) == hashlib.sha256(b"192.0.2.7").hexdigest()[:32]

    def test_forwarded_for_when_trusted(self):
        request = _request(
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.2"},
            client_host="192.0.2.7",
            trust=True,
        )

        assert get_client_id(request) == hashlib.sha256(b"203.0.113.9").hexdigest()[:32]

    def test_cached_on_request_state(self):
        request = _request()
        first = get_client_id(request)

        assert request.state.client_id == first
        assert get_client_id(request) == first
