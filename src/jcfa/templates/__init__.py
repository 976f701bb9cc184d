"""Issue templates and their lookup chain."""

from .resolver import (
    LOCAL_TEMPLATES_DIR,
    TemplateError,
    TemplateInfo,
    TemplateResolver,
    builtin_template_names,
)
from .service import Template, TemplateService, init_templates, parse_template

__all__ = [
    "LOCAL_TEMPLATES_DIR",
    "Template",
    "TemplateError",
    "TemplateInfo",
    "TemplateResolver",
    "TemplateService",
    "builtin_template_names",
    "init_templates",
    "parse_template",
]
