import pytest

from needlepoint.core.graph import GraphModel


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def chain_graph():
    """A → B → C."""
    g = GraphModel()
    a = g.add_node(name="A", file_path="src/a.ts")
    b = g.add_node(name="B", file_path="src/b.ts")
    c = g.add_node(name="C", file_path="src/c.ts")
    g.add_edge(a.id, b.id).unwrap()
    g.add_edge(b.id, c.id).unwrap()
    return g, a, b, c
