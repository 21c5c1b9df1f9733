from __future__ import annotations
"""Prompt construction for a single node.

The prompt lists the node's file, purpose, description and exports, then
every upstream dependency: its generated code when available, otherwise its
declared export signatures.
"""
import re
from typing import List, Optional, Tuple

from needlepoint.core.graph import GraphModel
from needlepoint.core.model import CodeNode
from needlepoint.utils.templates import render

__all__ = ["build_prompt", "build_system_prompt", "dependency_context", "strip_code_blocks"]

_PROMPT = """\
You are implementing a {{ language }} module.

## File: {{ node.file_path }}
{% if node.purpose %}
## Purpose: {{ node.purpose }}
{% endif %}
{% if node.description %}

## Description
{{ node.description }}
{% endif %}
{% if node.exports %}

## You must export:
{% for ex in node.exports %}
- {{ ex.name }}{% if ex.type_signature %}: {{ ex.type_signature }}{% endif %}

{% if ex.description %}
  {{ ex.description }}
{% endif %}
{% endfor %}
{% endif %}
{% if deps %}

## Dependencies (you can import from these files):
{% for dep, label in deps %}

### {{ label }} `{{ dep.file_path }}`
{% if dep.generated_code %}
```
{{ dep.generated_code.rstrip("\\n") }}
```
{% else %}
Exports:
{% for ex in dep.exports %}
- {{ ex.name }}: {{ ex.type_signature }}
{% if ex.description %}
  {{ ex.description }}
{% endif %}
{% endfor %}
{% endif %}
{% endfor %}
{% endif %}
{% if node.llm_config.constraints %}

## Constraints:
{% for c in node.llm_config.constraints %}
- {{ c }}
{% endfor %}
{% endif %}

Generate the complete implementation.

IMPORTANT: Output ONLY the raw code. Do NOT wrap the code in markdown code blocks \
(``` or ```typescript). Do NOT include any explanations, comments about the code, \
or surrounding text. The output should be directly usable as a source file.
"""


def dependency_context(graph: GraphModel, node_id: str) -> List[Tuple[CodeNode, str]]:
    """Return ``(upstream_node, edge_label)`` for every incoming edge."""
    deps: List[Tuple[CodeNode, str]] = []
    for edge in graph.dependencies(node_id):
        src = graph.node(edge.source)
        if src is not None:
            deps.append((src, edge.label or "dependency"))
    return deps


def build_prompt(graph: GraphModel, node_id: str) -> Optional[str]:
    """Full user prompt for *node_id*, or None if the node does not exist."""
    node = graph.node(node_id)
    if node is None:
        return None
    return render(_PROMPT, {
        "node": node,
        "language": node.language.display_name,
        "deps": dependency_context(graph, node_id),
    })


def build_system_prompt(node: CodeNode) -> str:
    base = (
        f"You are an expert {node.language.display_name} programmer. "
        "Generate clean, well-documented, production-ready code."
    )
    if node.llm_config.system_prompt:
        return f"{base}\n\n{node.llm_config.system_prompt}"
    return base


_FENCE = re.compile(r"^```(?:[\w+-]+)?\s*\n?([\s\S]*?)\n?```$")


def strip_code_blocks(content: str) -> str:
    """Remove a single surrounding markdown fence (```lang … ```), if any."""
    content = content.strip()
    m = _FENCE.match(content)
    if m:
        return m.group(1).strip()
    return content
