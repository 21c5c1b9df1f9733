from __future__ import annotations
"""Cycle detection over plain adjacency lists (no side-effects).

Both helpers run an iterative DFS that tracks the nodes currently on the
recursion stack; revisiting one of them means a back edge, i.e. a cycle.
Iterative so that long dependency chains cannot hit the recursion limit.
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple

__all__ = ["build_adjacency", "would_create_cycle", "find_cycle"]

Pair = Tuple[str, str]


def build_adjacency(node_ids: Iterable[str], edges: Iterable[Pair]) -> Dict[str, List[str]]:
    """Return ``{node: [successors]}``; edges with an unknown endpoint are ignored."""
    adjacency: Dict[str, List[str]] = {nid: [] for nid in node_ids}
    for src, dst in edges:
        if src in adjacency and dst in adjacency:
            adjacency[src].append(dst)
    return adjacency


def _dfs_cycle(adjacency: Dict[str, List[str]]) -> Optional[List[str]]:
    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for root in adjacency:
        if root in visited:
            continue
        # Each frame is (node, iterator over its successors).
        path: List[str] = [root]
        frames = [(root, iter(adjacency[root]))]
        visited.add(root)
        on_stack.add(root)
        while frames:
            node, children = frames[-1]
            advanced = False
            for child in children:
                if child in on_stack:
                    return path[path.index(child):] + [child]
                if child not in visited:
                    visited.add(child)
                    on_stack.add(child)
                    path.append(child)
                    frames.append((child, iter(adjacency[child])))
                    advanced = True
                    break
            if not advanced:
                frames.pop()
                on_stack.discard(node)
                path.pop()
    return None


def would_create_cycle(
    node_ids: Iterable[str],
    edges: Iterable[Pair],
    source: str,
    target: str,
) -> bool:
    """Return True if adding ``source → target`` to *edges* closes a cycle.

    Runs in O(V+E). Endpoints that are not in *node_ids* cannot form a cycle.
    """
    adjacency = build_adjacency(node_ids, edges)
    if source not in adjacency or target not in adjacency:
        return False
    adjacency[source].append(target)
    return _dfs_cycle(adjacency) is not None


def find_cycle(node_ids: Iterable[str], edges: Iterable[Pair]) -> Optional[List[str]]:
    """Return one cycle as a closed node path (first == last), or None."""
    return _dfs_cycle(build_adjacency(node_ids, edges))
