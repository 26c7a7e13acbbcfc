"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from motifgen.config import MotifConfig
from motifgen.engine import MotifEngine
from motifgen.service import create_app
from tests._fixtures.sources import PYTHON_RESERVOIR, RUST_RESERVOIR, RUST_RESERVOIR_WITHOUT_LEARN


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    engine = MotifEngine(MotifConfig(root=tmp_path, state_dir=tmp_path / "state"))
    return TestClient(create_app(lambda: engine))


def _define(client: TestClient) -> dict:
    signature = client.post("/extract", json={"language": "python", "text": PYTHON_RESERVOIR}).json()
    response = client.post("/define", json={"signature": signature})
    assert response.status_code == 200
    return response.json()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "definitions": 0, "ledger_events": 0}


def test_extract_and_discover(client: TestClient) -> None:
    extracted = client.post("/extract", json={"language": "python", "text": PYTHON_RESERVOIR})
    assert extracted.status_code == 200
    signature = extracted.json()
    assert signature["entity"] == "Reservoir"

    discovered = client.post("/discover", json={"signature": signature})
    assert discovered.status_code == 200
    assert discovered.json()[0]["patterns"][0] == "reservoir_computing"


def test_define_then_fetch_definition(client: TestClient) -> None:
    definition = _define(client)

    fetched = client.get(f"/definitions/{definition['content_hash']}")
    assert fetched.status_code == 200
    assert fetched.json() == definition
    assert client.get("/health").json()["definitions"] == 1


def test_validate_endpoint_returns_record(client: TestClient) -> None:
    definition = _define(client)

    approved = client.post(
        "/validate",
        json={
            "definition_hash": definition["content_hash"],
            "sources": {
                "python": {"language": "python", "text": PYTHON_RESERVOIR},
                "rust": {"language": "rust", "text": RUST_RESERVOIR},
            },
        },
    )
    rejected = client.post(
        "/validate",
        json={
            "definition_hash": definition["content_hash"],
            "sources": {
                "python": {"language": "python", "text": PYTHON_RESERVOIR},
                "rust": {"language": "rust", "text": RUST_RESERVOIR_WITHOUT_LEARN},
            },
        },
    )

    assert approved.status_code == 200
    assert approved.json()["verdict"] == "approved"
    assert approved.json()["record_hash"]
    assert rejected.json()["verdict"] == "rejected"


def test_error_statuses(client: TestClient) -> None:
    assert client.get("/definitions/unknown").status_code == 404

    unparsable = client.post("/extract", json={"language": "python", "text": "not ( python"})
    assert unparsable.status_code == 422
    assert unparsable.json()["error"]["code"] == "unparsable_source"

    signature = client.post("/extract", json={"language": "python", "text": PYTHON_RESERVOIR}).json()
    below = client.post("/define", json={"signature": signature, "acceptance_bar": 0.99})
    assert below.status_code == 422
    assert below.json()["error"]["code"] == "below_acceptance_bar"

    _define(client)
    collision = client.post("/define", json={"signature": signature, "canonical_name": "EchoState"})
    assert collision.status_code == 409

    malformed = client.post("/discover", json={"signature": {"kind": "behavior"}})
    assert malformed.status_code == 400


def test_ledger_verify_endpoint(client: TestClient) -> None:
    _define(client)

    response = client.get("/ledger/verify")

    assert response.status_code == 200
    assert response.json() == {"ledger_events": 3, "definitions": 1}
