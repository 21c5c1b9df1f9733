import json

from typer.testing import CliRunner

from needlepoint.cli import app
from needlepoint.session import ProjectSession

runner = CliRunner()


def test_new_add_and_plan(tmp_path):
    assert runner.invoke(app, ["new", str(tmp_path), "--name", "Demo"]).exit_code == 0
    for name in ("types", "api"):
        result = runner.invoke(app, ["add-node", str(tmp_path), "--name", name, "--path", f"src/{name}.ts"])
        assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["add-edge", "src/types.ts", "src/api.ts", "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["plan", str(tmp_path), "--json"])
    assert result.exit_code == 0
    plan = json.loads(result.output)
    assert plan["totalNodes"] == 2
    assert len(plan["waves"]) == 2

    assert (tmp_path / "src" / "api.ts").exists()


def test_cycle_is_rejected(tmp_path):
    session = ProjectSession.create(tmp_path, "Demo")
    a = session.add_node(name="a", file_path="a.ts")
    b = session.add_node(name="b", file_path="b.ts")
    session.add_edge(a.id, b.id).unwrap()
    session.save()

    result = runner.invoke(app, ["add-edge", "b.ts", "a.ts", "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "circular dependency" in result.output


def test_delete_and_validate(tmp_path):
    session = ProjectSession.create(tmp_path, "Demo")
    session.add_node(name="a", file_path="a.ts")
    session.save()

    assert runner.invoke(app, ["validate", str(tmp_path)]).exit_code == 0
    assert runner.invoke(app, ["delete-node", "a.ts", "--project", str(tmp_path)]).exit_code == 0
    assert len(ProjectSession.load(tmp_path).graph) == 0


def test_unknown_project(tmp_path):
    result = runner.invoke(app, ["nodes", str(tmp_path / "missing")])
    assert result.exit_code == 1


def _two_nodes(tmp_path):
    session = ProjectSession.create(tmp_path, "Demo")
    a = session.add_node(name="types", file_path="src/types.ts", description="Shared types")
    b = session.add_node(name="api", file_path="src/api.ts")
    edge = session.add_edge(a.id, b.id, "imports").unwrap()
    session.save()
    return a, b, edge


def test_node_shows_details(tmp_path):
    a, _, _ = _two_nodes(tmp_path)
    result = runner.invoke(app, ["node", "src/types.ts", "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert a.id in result.output
    assert "Shared types" in result.output


def test_update_node_renames_file(tmp_path):
    _two_nodes(tmp_path)
    result = runner.invoke(
        app, ["update-node", "src/api.ts", "--path", "src/client.ts", "--purpose", "HTTP client", "--project", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    node = ProjectSession.load(tmp_path).graph.find_by_path("src/client.ts")
    assert node.purpose == "HTTP client"
    assert (tmp_path / "src" / "client.ts").exists()
    assert not (tmp_path / "src" / "api.ts").exists()


def test_update_node_rejects_taken_path(tmp_path):
    _two_nodes(tmp_path)
    result = runner.invoke(app, ["update-node", "src/api.ts", "--path", "src/types.ts", "--project", str(tmp_path)])
    assert result.exit_code == 1
    assert "src/types.ts" in result.output
    assert ProjectSession.load(tmp_path).graph.find_by_path("src/api.ts") is not None


def test_edges_and_delete_edge(tmp_path):
    _, _, edge = _two_nodes(tmp_path)
    result = runner.invoke(app, ["edges", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "imports" in result.output

    assert runner.invoke(app, ["delete-edge", edge.id, "--project", str(tmp_path)]).exit_code == 0
    assert ProjectSession.load(tmp_path).graph.edges() == []
    assert runner.invoke(app, ["delete-edge", edge.id, "--project", str(tmp_path)]).exit_code == 1


def test_prompt_includes_dependency(tmp_path):
    _two_nodes(tmp_path)
    result = runner.invoke(app, ["prompt", "src/api.ts", "--project", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "src/types.ts" in result.output
