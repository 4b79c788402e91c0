import asyncio
import json

import httpx
import pytest

from case_assist.config import EndpointConfig
from case_assist.endpoint.client import ClassificationClient, build_request_payload
from case_assist.errors import (
    InvalidRequestError,
    InvalidResponseError,
    RemoteError,
    RemoteUnavailableError,
)

_CONFIG = EndpointConfig(base_url="https://caseassist.test", api_key="secret")


def _client(handler) -> ClassificationClient:
    return ClassificationClient(_CONFIG, transport=httpx.MockTransport(handler))


def test_payload_omits_empty_fields() -> None:
    seen: list[dict] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"responseId": "r-1", "fields": {}})

    asyncio.run(_client(_handler).fetch_suggestions("x", "", "visitor-1"))

    assert seen == [{"fields": {"subject": {"value": "x"}}, "visitorId": "visitor-1"}]


def test_payload_omits_null_description() -> None:
    payload = build_request_payload(None, "Screen flickers", "v")

    assert payload["fields"] == {"description": {"value": "Screen flickers"}}


def test_empty_request_fails_without_network_call() -> None:
    calls: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(InvalidRequestError):
        asyncio.run(_client(_handler).fetch_suggestions(None, "", "v"))
    assert calls == []


def test_parses_predictions_and_response_id() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/classify"
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(
            200,
            json={
                "responseId": "resp-42",
                "fields": {
                    "sfreason": {
                        "predictions": [
                            {"id": "cls-1", "value": "Billing", "confidence": 0.82},
                            {"id": "cls-2", "value": "Shipping", "confidence": 0.11},
                        ]
                    }
                },
            },
        )

    result = asyncio.run(_client(_handler).fetch_suggestions("Invoice", "Charged twice", "v"))

    assert result.response_id == "resp-42"
    assert [p.value for p in result.get("sfreason")] == ["Billing", "Shipping"]
    assert result.get("sfreason")[0].classification_id == "cls-1"
    assert result.get("sfreason")[0].confidence == pytest.approx(0.82)


def test_non_success_status_raises_remote_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "maintenance"})

    with pytest.raises(RemoteError) as info:
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))
    assert info.value.status_code == 503
    assert "maintenance" in str(info.value)


def test_transport_failure_raises_remote_unavailable() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteUnavailableError):
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))


def test_timeout_raises_remote_unavailable() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(RemoteUnavailableError):
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json={"fields": {"sfreason": {"predictions": [{"value": "x"}]}}}),
        httpx.Response(200, json=["unexpected"]),
    ],
)
def test_malformed_payload_raises_invalid_response(response: httpx.Response) -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(InvalidResponseError):
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))


def test_document_suggestions() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/documents/suggest"
        return httpx.Response(
            200,
            json={
                "responseId": "doc-resp",
                "documents": [
                    {
                        "uniqueId": "kb-1",
                        "title": "Reset your password",
                        "clickUri": "https://kb.test/kb-1",
                        "excerpt": "Use the reset link",
                    }
                ],
            },
        )

    result = asyncio.run(
        _client(_handler).fetch_document_suggestions("Login", "Forgot password", "v")
    )

    assert result.response_id == "doc-resp"
    assert result.documents[0].unique_id == "kb-1"
    assert result.documents[0].click_uri == "https://kb.test/kb-1"


def test_undecodable_body_raises_invalid_response() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("corrupt gzip stream", request=request)

    with pytest.raises(InvalidResponseError):
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))


def test_redirect_loop_raises_remote_unavailable() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.TooManyRedirects("redirect loop", request=request)

    with pytest.raises(RemoteUnavailableError):
        asyncio.run(_client(_handler).fetch_suggestions("a", "b", "v"))
