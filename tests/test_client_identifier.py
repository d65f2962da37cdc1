"""Tests for caller identification."""

from starlette.requests import Request

from app.utils.client_identifier import (
    hash_client_key,
    resolve_client_id,
    resolve_client_id_from_request,
)


def _request(headers: dict[str, str] | None = None, state: dict | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "state": state or {},
    }
    return Request(scope)


class TestResolveClientId:
    def test_explicit_identity_wins_over_headers(self) -> None:
        assert resolve_client_id("user-42", "203.0.113.7", "10.0.0.2") == "user-42"

    def test_first_forwarded_for_entry(self) -> None:
        assert resolve_client_id(None, "203.0.113.7, 10.0.0.1, 10.0.0.2", "10.0.0.9") == "203.0.113.7"

    def test_real_ip_when_no_forwarded_for(self) -> None:
        assert resolve_client_id(None, None, "10.0.0.9") == "10.0.0.9"

    def test_unknown_when_nothing_identifies_caller(self) -> None:
        assert resolve_client_id() == "unknown"
        assert resolve_client_id("", "", "") == "unknown"

    def test_empty_first_hop_falls_through_to_real_ip(self) -> None:
        assert resolve_client_id(None, " , 10.0.0.1", "10.0.0.9") == "10.0.0.9"


class TestResolveFromRequest:
    def test_uses_user_id_from_auth_layer(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7"}, state={"user_id": "user-42"})

        assert resolve_client_id_from_request(request) == "user-42"

    def test_explicit_id_overrides_state(self) -> None:
        request = _request(state={"user_id": "user-42"})

        assert resolve_client_id_from_request(request, "guest@example.com") == "guest@example.com"

    def test_uses_headers_without_identity(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.9"})

        assert resolve_client_id_from_request(request) == "203.0.113.7"

    def test_real_ip_header(self) -> None:
        assert resolve_client_id_from_request(_request({"X-Real-IP": "10.0.0.9"})) == "10.0.0.9"

    def test_unknown_without_headers(self) -> None:
        assert resolve_client_id_from_request(_request()) == "unknown"


def test_hash_client_key_is_stable_and_opaque() -> None:
    digest = hash_client_key("user-42")

    assert digest == hash_client_key("user-42")
    assert len(digest) == 16
    assert "user" not in digest
