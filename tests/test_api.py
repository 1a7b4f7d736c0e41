"""
Tests for the FastAPI application: production runs, status, state and the
progress WebSocket.
"""
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from production_studio.agents.orchestrator import ProductionOrchestrator
from production_studio.api.main import create_app

from conftest import SESSION, ScriptedLLM, call

PIPELINE = [
    [call("plan_video", topic="The deep ocean", targetDuration=30)],
    [call("narrate_scenes", contentPlanId=SESSION)],
    [call("generate_visuals", contentPlanId=SESSION)],
    [call("export_final_video", contentPlanId=SESSION)],
    [call("mark_complete", contentPlanId=SESSION)],
    "Video ready.",
]


class FactoryRecorder:
    """Orchestrator factory returning real orchestrators driven by a scripted LLM"""

    def __init__(self, steps=None):
        self.steps = steps if steps is not None else PIPELINE
        self.modes = []

    def __call__(self, context, mode):
        self.modes.append(mode)
        return ProductionOrchestrator(context, llm=ScriptedLLM(list(self.steps)), sleep=lambda seconds: None)


@pytest.fixture
def factory():
    return FactoryRecorder()


@pytest.fixture
def client(context, factory):
    app = create_app(context, orchestrator_factory=factory, redis_url="")
    with TestClient(app) as test_client:
        yield test_client


def _start(client, **body):
    response = client.post("/productions", json={"query": "Make a video about the deep ocean", **body})
    assert response.status_code == 200
    return response.json()["run_id"]


class TestService:
    """Tests for root and health."""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"

    def test_health_without_redis(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["redis"] == "disabled"
        assert body["activeRuns"] == 0


class TestProductions:
    """Tests for starting and inspecting runs."""

    def test_run_completes(self, client, factory):
        run_id = _start(client)
        status = client.get(f"/productions/{run_id}").json()
        assert status["status"] == "completed"
        assert status["mode"] == "monolithic"
        assert status["session_id"].startswith("prod_")
        assert status["final_message"] == "Video ready."
        assert status["report"]["is_usable"] is True
        assert status["asset_summary"]["hasExport"] is True
        assert status["event_count"] > 0
        assert factory.modes == ["monolithic"]

    def test_supervisor_mode_passed_to_factory(self, client, factory):
        response = client.post("/productions", json={"query": "A video", "mode": "Supervisor"})
        assert response.json()["mode"] == "supervisor"
        assert factory.modes == ["supervisor"]

    def test_invalid_mode(self, client):
        response = client.post("/productions", json={"query": "A video", "mode": "swarm"})
        assert response.status_code == 400

    def test_empty_query_rejected(self, client):
        assert client.post("/productions", json={"query": ""}).status_code == 422

    def test_unknown_run(self, client):
        assert client.get("/productions/nope").status_code == 404

    def test_failed_run_reports_error(self, context):
        factory = FactoryRecorder(steps=[RuntimeError("model down")])
        app = create_app(context, orchestrator_factory=factory, redis_url="")
        with TestClient(app) as client:
            run_id = _start(client)
            status = client.get(f"/productions/{run_id}").json()
        assert status["status"] == "failed"
        assert status["error"] == "model down"


class TestSessionState:
    """Tests for the state and delete endpoints."""

    def test_state_is_json_safe(self, client):
        run_id = _start(client)
        body = client.get(f"/productions/{run_id}/state").json()
        assert body["source"] == "memory"
        state = body["state"]
        assert state["content_plan"]["topic"] == "The deep ocean"
        assert state["export_result"]["video"] == {"bytes": 4096}

    def test_state_missing_for_sessionless_run(self, context):
        factory = FactoryRecorder(steps=["Nothing to do."])
        app = create_app(context, orchestrator_factory=factory, redis_url="")
        with TestClient(app) as client:
            run_id = _start(client)
            assert client.get(f"/productions/{run_id}/state").status_code == 404

    def test_delete(self, client, context):
        run_id = _start(client)
        session_id = client.get(f"/productions/{run_id}").json()["session_id"]

        response = client.delete(f"/productions/{run_id}")
        assert response.json() == {"status": "deleted", "run_id": run_id, "deleted_from": ["memory"]}
        assert not context.store.has(session_id)
        assert client.get(f"/productions/{run_id}").status_code == 404

    def test_running_run_not_deleted(self, client):
        client.app.state.runs["busy"] = {"run_id": "busy", "status": "running", "mode": "monolithic",
                                         "query": "x", "events": []}
        assert client.delete("/productions/busy").status_code == 409


class TestProgressWebSocket:
    """Tests for /ws/{run_id}."""

    def test_replays_events_then_closes(self, client):
        run_id = _start(client)
        events = []
        with client.websocket_connect(f"/ws/{run_id}") as websocket:
            while True:
                event = websocket.receive_json()
                events.append(event)
                if event["type"] == "closed":
                    break

        assert events[0]["type"] == "starting"
        assert events[-2]["type"] == "complete"
        assert events[-1]["status"] == "completed"
        assert events[-1]["sessionId"].startswith("prod_")
        status = client.get(f"/productions/{run_id}").json()
        assert len(events) == status["event_count"] + 1

    def test_unknown_run_closed_with_policy_violation(self, client):
        with client.websocket_connect("/ws/nope") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_json()
        assert exc_info.value.code == 1008
