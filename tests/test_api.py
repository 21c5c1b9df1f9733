import pytest
from fastapi.testclient import TestClient

from needlepoint.core.result import Result
from needlepoint.session import ProjectSession
from needlepoint.settings import Settings
from needlepoint.web import create_app


@pytest.fixture
def client():
    return TestClient(create_app(settings=Settings()))


@pytest.fixture
def project(client, tmp_path):
    resp = client.post("/api/project/new", json={"path": str(tmp_path), "name": "Demo"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _node(client, name, path):
    resp = client.post("/api/nodes", json={"name": name, "filePath": path})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_status_without_project(client):
    body = client.get("/api/status").json()
    assert body["status"] == "ok"
    assert body["projectLoaded"] is False
    assert client.get("/api/nodes").status_code == 404


def test_project_lifecycle(client, project, tmp_path):
    assert project["manifest"]["name"] == "Demo"
    assert client.get("/api/status").json()["projectName"] == "Demo"

    _node(client, "types", "src/types.ts")
    assert (tmp_path / "src" / "types.ts").exists()
    assert client.post("/api/project/save").json()["saved"] is True

    reopened = TestClient(create_app(settings=Settings()))
    resp = reopened.post("/api/project/load", json={"path": str(tmp_path)})
    assert resp.status_code == 200
    assert [n["filePath"] for n in resp.json()["nodes"]] == ["src/types.ts"]

    bad = reopened.post("/api/project/load", json={"path": str(tmp_path / "missing")})
    assert bad.status_code == 400


def test_node_crud(client, project):
    a = _node(client, "types", "src/types.ts")
    b = _node(client, "api", "src/api.ts")

    assert client.get(f"/api/nodes/{a['id']}").json()["name"] == "types"
    assert len(client.get("/api/nodes").json()) == 2

    resp = client.put(f"/api/nodes/{a['id']}", json={"description": "Shared types"})
    assert resp.status_code == 200
    assert resp.json()["description"] == "Shared types"

    clash = client.put(f"/api/nodes/{b['id']}", json={"filePath": "src/types.ts"})
    assert clash.status_code == 409
    assert client.put(f"/api/nodes/{a['id']}", json={"status": "complete"}).status_code == 400

    assert client.delete(f"/api/nodes/{a['id']}").json() == {"deleted": True}
    assert client.get(f"/api/nodes/{a['id']}").status_code == 404
    assert client.delete(f"/api/nodes/{a['id']}").status_code == 404

    assert client.post("/api/undo").json() == {"restored": [a["id"]]}
    assert client.get(f"/api/nodes/{a['id']}").status_code == 200


def test_edges_reject_cycles(client, project):
    a = _node(client, "a", "a.ts")
    b = _node(client, "b", "b.ts")

    resp = client.post("/api/edges", json={"source": a["id"], "target": b["id"], "label": "imports"})
    assert resp.status_code == 201
    edge = resp.json()

    back = client.post("/api/edges", json={"source": b["id"], "target": a["id"]})
    assert back.status_code == 400
    assert "circular dependency" in back.json()["detail"]
    assert client.post("/api/edges", json={"source": a["id"], "target": "nope"}).status_code == 404

    assert [e["id"] for e in client.get("/api/edges").json()] == [edge["id"]]
    assert client.delete(f"/api/edges/{edge['id']}").json() == {"deleted": True}
    assert client.delete(f"/api/edges/{edge['id']}").status_code == 404


def test_plan_and_prompt(client, project):
    a = _node(client, "types", "src/types.ts")
    b = _node(client, "api", "src/api.ts")
    client.post("/api/edges", json={"source": a["id"], "target": b["id"]})

    plan = client.get("/api/execution-plan").json()
    assert plan["totalNodes"] == 2
    assert [w["nodeIds"] for w in plan["waves"]] == [[a["id"]], [b["id"]]]

    prompt = client.get(f"/api/prompt/{b['id']}").json()["prompt"]
    assert "src/types.ts" in prompt
    assert client.get("/api/prompt/nope").status_code == 404


def test_generate_through_open_session(monkeypatch, tmp_path):
    session = ProjectSession.create(tmp_path, "Demo", settings=Settings())
    a = session.add_node(name="a", file_path="src/a.ts")
    client = TestClient(create_app(session=session))

    async def fake_generate(node_id):
        return Result.success("export const a = 1;")

    monkeypatch.setattr("needlepoint.llm.generation.make_generator", lambda graph, settings, **kw: fake_generate)

    resp = client.post(f"/api/generate/{a.id}", json={})
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"code": "export const a = 1;", "nodeId": a.id}
    assert (tmp_path / "src" / "a.ts").read_text() == "export const a = 1;"

    body = client.post("/api/generate-all").json()
    assert body["status"] == "completed"
    assert body["totalSuccessful"] == 1
    assert body["project"]["nodes"][0]["status"] == "complete"


def test_generate_without_key_reports_node_error(client, project):
    a = _node(client, "a", "src/a.ts")
    resp = client.post(f"/api/generate/{a['id']}", json={})
    assert resp.status_code == 502
    assert "not configured" in resp.json()["detail"]
    assert client.get(f"/api/nodes/{a['id']}").json()["status"] == "error"


def test_set_api_keys(client, project):
    assert client.post("/api/api-keys", json={"anthropic": "sk-test", "ollamaBaseUrl": "http://ollama:11434"}).json() == {
        "updated": True
    }
    state = client.app.state.needlepoint
    assert state.settings.api_keys.anthropic == "sk-test"
    assert state.session.settings.api_keys.ollama_base_url == "http://ollama:11434"
