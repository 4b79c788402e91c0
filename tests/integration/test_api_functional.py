import time

import httpx
from fastapi.testclient import TestClient

from case_assist.api.main import create_app
from case_assist.config import EndpointConfig, SuggestionConfig
from case_assist.endpoint.client import ClassificationClient


def _endpoint_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/classify":
        return httpx.Response(
            200,
            json={
                "responseId": "resp-api",
                "fields": {
                    "sfreason": {
                        "predictions": [
                            {"id": "cls-1", "value": "Billing", "confidence": 0.9}
                        ]
                    }
                },
            },
        )
    if request.url.path == "/documents/suggest":
        return httpx.Response(
            200,
            json={
                "responseId": "docs-api",
                "documents": [
                    {"uniqueId": "kb-1", "title": "Refunds", "clickUri": "https://kb.test/1"}
                ],
            },
        )
    return httpx.Response(404, json={"message": "unknown route"})


def _endpoint(seen: list[str] | None = None) -> ClassificationClient:
    def _handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request.url.path)
        return _endpoint_handler(request)

    return ClassificationClient(
        EndpointConfig(base_url="https://caseassist.test"),
        transport=httpx.MockTransport(_handler),
    )


def _app(endpoint: ClassificationClient | None = None, debounce_seconds: float = 0.02):
    return create_app(
        client=endpoint or _endpoint(),
        suggestion_config=SuggestionConfig(debounce_seconds=debounce_seconds),
    )


def test_api_session_flow() -> None:
    with TestClient(_app()) as client:
        created = client.post("/sessions", json={"available_actions": ["NEXT"]})
        assert created.status_code == 200
        session_id = created.json()["session_id"]
        assert created.json()["heading"] == "How can we help you today?"

        resp = client.post(
            f"/sessions/{session_id}/fields",
            json={"field_name": "Subject", "value": "Invoice"},
        )
        assert resp.json()["should_show_suggestions"] is False

        resp = client.post(
            f"/sessions/{session_id}/fields",
            json={"field_name": "Description", "value": "I was charged twice"},
        )
        assert resp.json()["should_show_suggestions"] is True

        settled = client.post(f"/sessions/{session_id}/settle").json()
        assert settled["phase"] == "idle"
        assert settled["last_response_id"] == "resp-api"
        suggestion = settled["reason_suggestions"][0]
        assert suggestion["value"] == "Billing"

        selected = client.post(
            f"/sessions/{session_id}/suggestions/select",
            json={
                "field_name": "Reason",
                "value": suggestion["value"],
                "classification_id": suggestion["classification_id"],
                "confidence": suggestion["confidence"],
            },
        )
        assert '"Reason":"Billing"' in selected.json()["case_data"]

        docs = client.post(f"/sessions/{session_id}/documents")
        assert docs.status_code == 200
        assert docs.json()["items"][0]["unique_id"] == "kb-1"

        advanced = client.post(f"/sessions/{session_id}/next")
        assert advanced.json() == {"advanced": True, "step": 1}


def test_api_advance_not_available_and_unknown_session() -> None:
    with TestClient(_app()) as client:
        session_id = client.post("/sessions", json={}).json()["session_id"]

        assert client.post(f"/sessions/{session_id}/next").json() == {
            "advanced": False,
            "step": 0,
        }
        assert client.post(f"/sessions/{session_id}/documents").status_code == 400
        assert client.get("/sessions/missing").status_code == 404
        assert client.get("/health").json()["sessions"] == 1


def test_closing_session_releases_it_and_disarms_debounce() -> None:
    seen: list[str] = []
    endpoint = _endpoint(seen)

    with TestClient(_app(endpoint, debounce_seconds=0.3)) as client:
        session_id = client.post("/sessions", json={}).json()["session_id"]
        client.post(
            f"/sessions/{session_id}/fields",
            json={"field_name": "Subject", "value": "Invoice"},
        )
        armed = client.post(
            f"/sessions/{session_id}/fields",
            json={"field_name": "Description", "value": "I was charged twice"},
        )
        assert armed.json()["phase"] == "pending"

        closed = client.delete(f"/sessions/{session_id}")
        assert closed.status_code == 200
        assert closed.json()["closed"] is True

        time.sleep(0.5)

        assert seen == []
        assert client.get("/health").json()["sessions"] == 0
        assert client.get(f"/sessions/{session_id}").status_code == 404
        assert client.delete(f"/sessions/{session_id}").status_code == 404


def test_injected_client_survives_app_shutdown() -> None:
    endpoint = _endpoint()

    with TestClient(_app(endpoint)) as client:
        assert client.get("/health").status_code == 200

    assert endpoint._http.is_closed is False
