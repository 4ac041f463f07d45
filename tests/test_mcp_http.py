"""HTTP transport tests (Flask test client)."""

import json

import pytest

from infrastructure.file_repository import FileTaskRepository
from infrastructure.ownership import OwnershipPolicy
from interface.mcp_http import SESSION_HEADER, create_app
from interface.sessions import SessionStore


@pytest.fixture
def repo(tmp_path):
    return FileTaskRepository(tmp_path / "tasks", ownership=OwnershipPolicy())


@pytest.fixture
def client(repo):
    app = create_app(repository=repo, stateless=False, sessions=SessionStore(ttl_seconds=0))
    return app.test_client()


def _rpc(method, request_id=1, **params):
    msg = {"jsonrpc": "2.0", "method": method, "params": params}
    if request_id is not None:
        msg["id"] = request_id
    return msg


def _open_session(client):
    resp = client.post("/mcp", json=_rpc("initialize", clientInfo={"name": "pytest"}))
    assert resp.status_code == 200
    return resp.headers[SESSION_HEADER]


class TestStatefulHttp:
    def test_initialize_sets_session_header(self, client):
        resp = client.post("/mcp", json=_rpc("initialize"))
        assert resp.status_code == 200
        assert resp.headers.get(SESSION_HEADER)
        assert resp.get_json()["result"]["serverInfo"]["name"] == "tasks-md-mcp"

    def test_missing_session_header_is_401(self, client):
        resp = client.post("/mcp", json=_rpc("tools/list"))
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == -32001

    def test_unknown_session_is_404(self, client):
        resp = client.post("/mcp", json=_rpc("tools/list"), headers={SESSION_HEADER: "stale"})
        assert resp.status_code == 404

    def test_notification_is_accepted(self, client):
        session = _open_session(client)
        resp = client.post("/mcp", json=_rpc("notifications/initialized", request_id=None), headers={SESSION_HEADER: session})
        assert resp.status_code == 202
        assert resp.data == b""

    def test_tool_call_round_trip(self, client):
        session = _open_session(client)
        headers = {SESSION_HEADER: session}
        resp = client.post(
            "/mcp",
            json=_rpc("tools/call", name="add_task", arguments={"title": "From HTTP", "lane": "inbox"}),
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.headers[SESSION_HEADER] == session
        created = json.loads(resp.get_json()["result"]["content"][0]["text"])
        assert created["task"]["lane"] == "inbox"

        resp = client.post("/mcp", json=_rpc("tools/call", request_id=2, name="list_lanes", arguments={}), headers=headers)
        assert json.loads(resp.get_json()["result"]["content"][0]["text"])["lanes"] == ["inbox"]

    def test_tool_errors_stay_http_200(self, client):
        session = _open_session(client)
        resp = client.post(
            "/mcp",
            json=_rpc("tools/call", request_id=5, name="get_task", arguments={"task_id": "missing"}),
            headers={SESSION_HEADER: session},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["id"] == 5
        assert body["result"]["isError"] is True

    def test_malformed_json_is_parse_error(self, client):
        resp = client.post("/mcp", data="{oops", content_type="application/json")
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == -32700

    def test_delete_terminates_session(self, client):
        session = _open_session(client)
        assert client.delete("/mcp", headers={SESSION_HEADER: session}).status_code == 204
        assert client.post("/mcp", json=_rpc("tools/list"), headers={SESSION_HEADER: session}).status_code == 404
        resp = client.delete("/mcp", headers={SESSION_HEADER: session})
        assert resp.status_code == 404
        assert resp.get_json()["error"]["message"] == "Session not found"

    def test_health_counts_sessions(self, client):
        _open_session(client)
        _open_session(client)
        body = client.get("/health").get_json()
        assert body["status"] == "healthy"
        assert body["mode"] == "stateful"
        assert body["mcp_endpoint"] == "/mcp"
        assert body["active_mcp_sessions"] == 2


class TestStatelessHttp:
    def test_tools_without_session(self, repo):
        client = create_app(repository=repo, stateless=True).test_client()
        resp = client.post("/mcp", json=_rpc("tools/call", name="list_all_tasks", arguments={}))
        assert resp.status_code == 200
        assert SESSION_HEADER not in resp.headers
        assert json.loads(resp.get_json()["result"]["content"][0]["text"]) == {"tasks": [], "total": 0}

    def test_health_reports_mode(self, repo):
        body = create_app(repository=repo, stateless=True).test_client().get("/health").get_json()
        assert body["mode"] == "stateless"
        assert body["active_mcp_sessions"] == 0

    def test_mode_from_environment(self, repo, monkeypatch, tmp_path):
        monkeypatch.setenv("TASKS_MD_CONFIG", str(tmp_path / "cfg.yaml"))
        monkeypatch.setenv("TASKS_MD_MCP_MODE", "stateless")
        app = create_app(repository=repo)
        assert app.config["MCP_STATELESS"] is True
