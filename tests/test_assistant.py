"""Tests for the assistant relay client and its local fallback."""

import json
from datetime import date

import httpx
import pytest

from payoff_agent.assistant import SOURCE_LOCAL, SOURCE_REMOTE, ask_assistant
from payoff_agent.calculator import MortgageSnapshot
from payoff_agent.interpreter import HELP_MESSAGE, interpret

BASE_URL = "http://assistant.test"
QUERY = "How much sooner if I add $300 per month?"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestRemoteAnswer:
    """Successful relay calls."""

    def test_returns_remote_text(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"response": "About 5 years sooner.", "tokens": 87, "model": "gpt-test"})

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_REMOTE
        assert reply.text == "About 5 years sooner."
        assert reply.tokens == 87
        assert reply.model == "gpt-test"
        assert reply.failure is None

    def test_request_payload(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "ok", "tokens": 1, "model": "m"})

        ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL + "/", client=_client(handler))

        assert captured["url"] == f"{BASE_URL}/api/chat"
        assert captured["body"]["userQuery"] == QUERY
        assert captured["body"]["mortgageData"] == {
            "principal": 300_000,
            "rate": 6.5,
            "term": 30,
            "additionalPayment": 0.0,
            "startDate": as_of.isoformat(),
        }

    def test_null_mortgage_data(self, as_of: date) -> None:
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "Hello!", "tokens": 3, "model": "m"})

        reply = ask_assistant("hi", None, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert captured["body"]["mortgageData"] is None
        assert reply.source == SOURCE_REMOTE


class TestLocalFallback:
    """Any failure falls back to the local interpreter."""

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_non_success_status(self, status: int, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "boom", "message": "failed"})

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_LOCAL
        assert reply.text == interpret(QUERY, snapshot, as_of=as_of)
        assert reply.tokens == 0
        assert reply.model is None
        assert str(status) in reply.failure

    def test_network_error(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_LOCAL
        assert "$300" in reply.text
        assert "sooner" in reply.text
        assert reply.failure.startswith("network error")

    def test_non_json_body(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy page</html>")

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_LOCAL
        assert reply.failure == "malformed response body"

    def test_missing_response_field(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"tokens": 3})

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_LOCAL

    def test_fallback_without_mortgage_data(self, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        reply = ask_assistant(QUERY, None, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.text == HELP_MESSAGE

    def test_invalid_url(self, snapshot: MortgageSnapshot, as_of: date) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, base_url=BASE_URL, client=_client(handler))

        assert reply.source == SOURCE_LOCAL
        assert reply.text == interpret(QUERY, snapshot, as_of=as_of)
        assert reply.failure.startswith("network error")


class TestDefaultBaseUrl:
    """The relay address comes from ASSISTANT_API_URL when not given."""

    def test_reads_environment(self, monkeypatch, snapshot: MortgageSnapshot, as_of: date) -> None:
        monkeypatch.setenv("ASSISTANT_API_URL", "https://payoff.example.com/")
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            return httpx.Response(200, json={"response": "ok", "tokens": 1, "model": "m"})

        reply = ask_assistant(QUERY, snapshot, as_of=as_of, client=_client(handler))

        assert reply.source == SOURCE_REMOTE
        assert captured["url"] == "https://payoff.example.com/api/chat"

    def test_built_in_default(self, monkeypatch, as_of: date) -> None:
        monkeypatch.delenv("ASSISTANT_API_URL", raising=False)
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            return httpx.Response(200, json={"response": "ok", "tokens": 1, "model": "m"})

        ask_assistant("hi", None, as_of=as_of, client=_client(handler))

        assert captured["url"] == "http://localhost:3001/api/chat"
