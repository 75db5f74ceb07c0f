"""Template rendering for every file a provisioner writes.

Templates live in the ``stack_provisioner/templates`` package directory,
one sub-directory per component. StrictUndefined turns a missing setting
into an error instead of an empty string in a config file.
"""

from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError as JinjaTemplateError

from stack_provisioner.errors import TemplateError


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    return Environment(
        loader=PackageLoader("stack_provisioner", "templates"),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False,
    )


def render(name: str, **context: Any) -> str:
    """Render a template by its path relative to the templates directory."""
    try:
        return get_environment().get_template(name).render(**context)
    except JinjaTemplateError as e:
        raise TemplateError(f"Cannot render {name}: {e}") from e
