"""
Template engine for custom providers.

Custom providers describe their wire format with Jinja2 templates that
render JSON. Templates are compiled once and rendered per request.
"""

import json
import logging
from typing import Any, Dict

from jinja2 import TemplateSyntaxError, Undefined
from jinja2.sandbox import SandboxedEnvironment

from ..core.errors import TemplateCompileError, TemplateRenderError

logger = logging.getLogger(__name__)


def to_json(value: Any) -> str:
    """Compact JSON; undefined values render as null."""
    if isinstance(value, Undefined):
        return "null"
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def join_values(value: Any, separator: str = "") -> str:
    """Join a list with separator; anything that is not a list renders empty."""
    if not isinstance(value, (list, tuple)):
        return ""
    return separator.join(str(v) for v in value)


def default_value(value: Any, fallback: Any = "") -> Any:
    """value unless it is undefined or None."""
    if value is None or isinstance(value, Undefined):
        return fallback
    return value


def is_equal(value: Any, other: Any) -> bool:
    return value == other


def create_environment() -> SandboxedEnvironment:
    """Sandboxed Jinja2 environment with the custom-provider filters."""
    env = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)
    env.filters["json"] = to_json
    env.filters["join"] = join_values
    env.filters["default"] = default_value
    env.tests["equals"] = is_equal
    return env


class TemplateEngine:
    """
    Registry of compiled templates.

    Example:
        engine = TemplateEngine()
        engine.compile("acme-request", '{"prompt": {{ messages | json }}}')
        payload = engine.render_json("acme-request", request_dict)
    """

    def __init__(self):
        self._env = create_environment()
        self._templates: Dict[str, Any] = {}

    def compile(self, template_id: str, source: str) -> None:
        """
        Compile and store a template.

        Args:
            template_id: Key used to render the template later
            source: Jinja2 template source

        Raises:
            TemplateCompileError: If the source has a syntax error
        """
        try:
            self._templates[template_id] = self._env.from_string(source)
        except TemplateSyntaxError as e:
            raise TemplateCompileError(
                f"Template {template_id} failed to compile: {e.message} (line {e.lineno})"
            ) from e

    def has_template(self, template_id: str) -> bool:
        return template_id in self._templates

    def render(self, template_id: str, data: Dict[str, Any]) -> str:
        """
        Render a compiled template.

        Raises:
            TemplateRenderError: If the template is unknown or rendering fails
        """
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateRenderError(f"Template not found: {template_id}")

        try:
            return template.render(**data)
        except Exception as e:
            raise TemplateRenderError(f"Template {template_id} failed to render: {e}") from e

    def render_json(self, template_id: str, data: Dict[str, Any]) -> Any:
        """
        Render a template and parse the output as JSON.

        Raises:
            TemplateRenderError: If rendering fails or the output is not JSON
        """
        rendered = self.render(template_id, data)
        try:
            return json.loads(rendered)
        except ValueError as e:
            logger.debug(f"Template {template_id} rendered invalid JSON: {rendered[:200]!r}")
            raise TemplateRenderError(f"Template {template_id} did not render valid JSON: {e}") from e
