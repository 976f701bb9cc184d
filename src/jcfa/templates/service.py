"""Issue templates: YAML field layouts rendered with Jinja2.

A template names an issue type and a tree of field values::

    type: Story
    fields:
      project:
        key: "{{ Project }}"
      summary: "{{ Summary }}"
      labels: "{{ Labels | default([]) | tojson }}"

Every string in the tree is rendered against the caller's data. Rendered
strings that look like JSON objects or arrays are decoded, a value written
as a single ``{{ ... | tojson }}`` expression is decoded back to its native
type, and ``null`` becomes None. Keys whose value renders to None are
dropped, so optional fields simply disappear when no data is supplied.
Top-level field names are translated through the configured field mappings
(``story_points`` -> ``customfield_10016``).
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2
import yaml

from .resolver import (
    BUILTIN_SOURCE,
    TemplateError,
    TemplateInfo,
    TemplateResolver,
    builtin_template_names,
    read_builtin_template,
)

logger = logging.getLogger("jcfa.templates")

__all__ = ["Template", "TemplateService", "init_templates", "parse_template"]

_TOJSON_EXPRESSION = re.compile(r"^\{\{.*\|\s*tojson\s*\}\}$", re.DOTALL)


@dataclass
class Template:
    """A parsed template.

    Attributes:
        name: Template name (file name without extension)
        type: Jira issue type name (e.g., "Story")
        fields: Field tree with Jinja2 placeholders
        source: Where it was found (explicit, local, config, user, builtin)
    """

    name: str
    type: str
    fields: dict[str, Any] = field(default_factory=dict)
    source: str = BUILTIN_SOURCE


def parse_template(name: str, text: str, source: str = BUILTIN_SOURCE) -> Template:
    """Parse template YAML.

    Raises:
        TemplateError: On malformed YAML or a missing ``type``.
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise TemplateError(f"failed to parse template '{name}': {e}") from e

    if not isinstance(raw, dict):
        raise TemplateError(f"template '{name}' must be a mapping")
    if not raw.get("type"):
        raise TemplateError(f"template '{name}' missing required 'type' field")

    fields = raw.get("fields") or {}
    if not isinstance(fields, dict):
        raise TemplateError(f"template '{name}': 'fields' must be a mapping")

    return Template(name=name, type=str(raw["type"]), fields=fields, source=source)


class TemplateService:
    """Loads templates through a TemplateResolver and renders them."""

    def __init__(
        self,
        resolver: TemplateResolver | None = None,
        field_mappings: dict[str, str] | None = None,
    ):
        self.resolver = resolver or TemplateResolver()
        self.field_mappings = field_mappings or {}
        self.env = jinja2.Environment(autoescape=False, keep_trailing_newline=False)

    def load_template(self, name: str) -> Template:
        info = self.resolver.resolve(name)
        if info.source == BUILTIN_SOURCE:
            text = read_builtin_template(name)
        else:
            try:
                text = Path(info.path).read_text(encoding="utf-8")
            except OSError as e:
                raise TemplateError(f"failed to read template '{name}' from {info.path}: {e}") from e
        return parse_template(name, text, info.source)

    def list_templates(self) -> list[TemplateInfo]:
        return self.resolver.list()

    def render_template(self, template: Template, data: dict[str, Any]) -> dict[str, Any]:
        """Render a template's field tree against ``data``.

        Raises:
            TemplateError: If a placeholder is malformed or fails to evaluate.
        """
        rendered: dict[str, Any] = {}
        for key, value in template.fields.items():
            try:
                result = self._render_value(value, data)
            except (jinja2.TemplateError, TypeError, ValueError) as e:
                raise TemplateError(
                    f"template '{template.name}': failed to render field '{key}': {e}"
                ) from e
            if result is None:
                continue
            rendered[self.field_mappings.get(key, key)] = result
        return rendered

    def render(self, name: str, data: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Load and render ``name``; returns (issue type name, fields)."""
        template = self.load_template(name)
        return template.type, self.render_template(template, data)

    def _render_value(self, value: Any, data: dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self._render_string(value, data)
        if isinstance(value, dict):
            rendered = {}
            for key, child in value.items():
                result = self._render_value(child, data)
                if result is not None:
                    rendered[key] = result
            # A mapping whose every value was dropped is dropped too
            if value and not rendered:
                return None
            return rendered
        if isinstance(value, list):
            return [self._render_value(child, data) for child in value]
        return value

    def _render_string(self, source: str, data: dict[str, Any]) -> Any:
        result = self.env.from_string(source).render(data)
        stripped = result.strip()

        if stripped == "null":
            return None

        if stripped.startswith(("[", "{")) or _TOJSON_EXPRESSION.match(source.strip()):
            try:
                return json.loads(stripped)
            except ValueError:
                pass

        return result


def init_templates(target_dir: str | Path) -> list[Path]:
    """Copy the built-in templates into ``target_dir``.

    Existing files are left untouched.

    Returns:
        Paths of the files written.
    """
    target = Path(target_dir)
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise TemplateError(f"failed to create template directory {target}: {e}") from e

    written: list[Path] = []
    for name in builtin_template_names():
        path = target / f"{name}.yaml"
        if path.exists():
            continue
        path.write_text(read_builtin_template(name), encoding="utf-8")
        written.append(path)

    logger.info("templates_initialized", extra={"path": str(target), "written": len(written)})
    return written
