from __future__ import annotations

"""needlepoint.utils.templates
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Jinja2 rendering used to assemble generation prompts.

Usage
-----
>>> from needlepoint.utils.templates import render
>>> render("Hello {{name}}", {"name": "Alice"})
'Hello Alice'
"""

from typing import Any, Mapping

from jinja2 import BaseLoader, Environment, StrictUndefined

__all__ = ["render"]

# StrictUndefined: a missing variable is a bug in the caller, not an empty string.
env = Environment(
    loader=BaseLoader(),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render(template_string: str, data: Mapping[str, Any]) -> str:  # noqa: D401
    """Render the *template_string* with *data* using Jinja2.

    Raises:
        RuntimeError: wrapping the Jinja2 error with template/data context.
    """
    try:
        template = env.from_string(template_string)
        return template.render(data)
    except Exception as exc:
        raise RuntimeError(
            f"Error rendering template: {exc}\n"
            f"Template: \"{template_string[:100]}{'...' if len(template_string) > 100 else ''}\"\n"
            f"Data keys: {list(data.keys())}"
        ) from exc
