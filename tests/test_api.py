"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from twc.api.router import CompileOptions, VerifyRequest, create_app
from twc.main import WorkflowCompiler
from twc.version import __version__

VALID_GRAPH = {
    "id": "wf-api",
    "name": "Api Flow",
    "nodes": [
        {"id": "t", "type": "trigger", "data": {"label": "Start"}},
        {"id": "a", "type": "activity", "data": {"label": "Do", "activityName": "doSomething"}},
        {"id": "e", "type": "end", "data": {"label": "End"}},
    ],
    "edges": [
        {"id": "e1", "source": "t", "target": "a"},
        {"id": "e2", "source": "a", "target": "e"},
    ],
}

INVALID_GRAPH = {
    "id": "wf-bad",
    "nodes": [{"id": "a", "type": "activity", "data": {"activityName": "x"}}],
}


@pytest.fixture
def client():
    return TestClient(create_app(WorkflowCompiler()))


class TestMetaEndpoints:
    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_version(self, client):
        assert client.get("/api/v1/version").json()["version"] == __version__

    def test_schema_uses_wire_names(self, client):
        schema = client.get("/api/v1/schema").json()

        assert "nodes" in schema["properties"]


class TestCompilerEndpoints:
    def test_validate_reports_errors(self, client):
        response = client.post("/api/v1/validate", json=INVALID_GRAPH)

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert "no_start_node" in {error["kind"] for error in body["errors"]}

    def test_validate_rejects_malformed_payload(self, client):
        response = client.post("/api/v1/validate", json={"nodes": "nope"})

        assert response.status_code == 422

    def test_generate_returns_artifacts(self, client):
        response = client.post(
            "/api/v1/generate",
            json={"workflow": VALID_GRAPH, "options": {"generatedAt": "2024-01-01T00:00:00+00:00"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert "await acts.doSomething(input);" in body["workflowSource"]
        assert set(body) == {
            "workflowSource",
            "activitiesSource",
            "workerSource",
            "manifestSource",
            "compilerConfigSource",
        }

    def test_generate_invalid_graph_is_400(self, client):
        response = client.post("/api/v1/generate", json={"workflow": INVALID_GRAPH})

        assert response.status_code == 400
        assert response.json()["detail"]["valid"] is False

    def test_compile_invalid_graph_returns_validation_only(self, client):
        response = client.post("/api/v1/compile", json={"workflow": INVALID_GRAPH})

        assert response.status_code == 200
        body = response.json()
        assert body["validation"]["valid"] is False
        assert "artifacts" not in body

    def test_compile_valid_graph(self, client):
        response = client.post(
            "/api/v1/compile",
            json={"workflow": VALID_GRAPH, "options": {"workflowName": "Renamed", "includeComments": False}},
        )

        body = response.json()
        assert body["workflowName"] == "Renamed"
        assert "export async function renamedWorkflow(" in body["artifacts"]["workflowSource"]

    def test_compile_ignores_output_dir(self, client, tmp_path):
        target = tmp_path / "out"

        response = client.post(
            "/api/v1/compile",
            json={"workflow": VALID_GRAPH, "options": {"outputDir": str(target)}},
        )

        assert response.status_code == 200
        assert response.json().get("writtenFiles", []) == []
        assert not target.exists()

    def test_request_models_carry_no_output_dir(self):
        assert "output_dir" not in CompileOptions.model_fields
        assert "output_dir" not in VerifyRequest.model_fields
