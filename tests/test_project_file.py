import pytest
import yaml

from needlepoint.core.errors import ProjectFileError
from needlepoint.core.model import CodeEdge, CodeNode, ExportSignature, NodeStatus, Project
from needlepoint.io.project_file import (
    PROJECT_FILE_NAME,
    create_project,
    is_project_directory,
    load_project,
    save_project,
)


def test_create_and_detect(tmp_path):
    project = create_project(tmp_path, "Demo")
    assert project.manifest.name == "Demo"
    assert is_project_directory(tmp_path)
    assert not is_project_directory(tmp_path / "elsewhere")


def test_saved_file_is_camel_case_without_path(tmp_path):
    node = CodeNode(
        name="api",
        file_path="src/api.ts",
        exports=[ExportSignature(name="fetchUser", type_signature="(id: string) => Promise<User>")],
    )
    project = Project(project_path=str(tmp_path), nodes=[node])
    data = yaml.safe_load(save_project(project).read_text())
    assert "projectPath" not in data
    assert data["nodes"][0]["filePath"] == "src/api.ts"
    assert data["nodes"][0]["exports"][0]["type"] == "(id: string) => Promise<User>"
    assert "llmConfig" in data["nodes"][0]


def test_load_roundtrip_and_interrupted_status(tmp_path):
    a = CodeNode(name="a", file_path="a.ts", status=NodeStatus.GENERATING)
    b = CodeNode(name="b", file_path="b.ts", status=NodeStatus.COMPLETE, generated_code="x")
    edge = CodeEdge(source=a.id, target=b.id, label="uses")
    save_project(Project(project_path=str(tmp_path), nodes=[a, b], edges=[edge]))

    loaded = load_project(tmp_path / PROJECT_FILE_NAME)
    assert loaded.project_path == str(tmp_path)
    by_id = {n.id: n for n in loaded.nodes}
    assert by_id[a.id].status is NodeStatus.PENDING
    assert by_id[b.id].generated_code == "x"
    assert loaded.edges[0].label == "uses"


def test_missing_file(tmp_path):
    with pytest.raises(ProjectFileError):
        load_project(tmp_path)


def test_schema_violation(tmp_path):
    (tmp_path / PROJECT_FILE_NAME).write_text("nodes:\n  - name: nopath\n")
    with pytest.raises(ProjectFileError):
        load_project(tmp_path)


def test_bad_yaml(tmp_path):
    (tmp_path / PROJECT_FILE_NAME).write_text("nodes: [unclosed\n")
    with pytest.raises(ProjectFileError):
        load_project(tmp_path)


def test_save_requires_path():
    with pytest.raises(ProjectFileError):
        save_project(Project())
