"""Render contract specifications into chain source code."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound, TemplateSyntaxError

from contracts import ChainTarget, ErrorKind, Result

from .chain_templates import CHAIN_TEMPLATES, ChainTemplate
from .helpers import FILTERS, TESTS

logger = logging.getLogger(__name__)


def clean_model(node: Any) -> Any:
    """Recursively drop nulls and empty containers.

    Returns None when the node itself ends up empty, so callers can drop it.
    """
    if isinstance(node, dict):
        cleaned = {}
        for key, value in node.items():
            value = clean_model(value)
            if value is not None:
                cleaned[str(key)] = value
        return cleaned or None
    if isinstance(node, (list, tuple)):
        items = [clean_model(item) for item in node]
        items = [item for item in items if item is not None]
        return items or None
    return node


class TemplateRenderer:
    """Holds one jinja2 environment with the contract filters registered.

    Construct once per process (or per test) and share; rendering does not
    mutate the renderer.
    """

    def __init__(
        self,
        templates_dir: Path,
        chain_templates: Optional[Dict[ChainTarget, ChainTemplate]] = None,
    ):
        self.templates_dir = Path(templates_dir)
        self.chain_templates = chain_templates if chain_templates is not None else CHAIN_TEMPLATES
        self.environment = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.environment.filters.update(FILTERS)
        self.environment.tests.update(TESTS)

    def render(self, chain: ChainTarget, specification: Dict[str, Any]) -> Result[str]:
        """Render the chain's template with a cleaned, chain-shaped model."""
        chain_template = self.chain_templates.get(chain)
        if chain_template is None:
            return Result.fail(ErrorKind.INFRASTRUCTURE, f"No template registered for chain '{chain.value}'")

        model = chain_template.build_model(clean_model(specification) or {})
        return self.render_template(chain_template.template_name, model)

    def render_template(self, template_name: str, model: Dict[str, Any]) -> Result[str]:
        try:
            template = self.environment.get_template(template_name)
        except TemplateNotFound:
            logger.error("Template %s not found under %s", template_name, self.templates_dir)
            return Result.fail(ErrorKind.INFRASTRUCTURE, "Contract template not found")
        except TemplateSyntaxError as exc:
            logger.error("Template %s failed to compile: %s (line %s)", template_name, exc.message, exc.lineno)
            return Result.fail(ErrorKind.INFRASTRUCTURE, "Contract template failed to compile")

        try:
            output = template.render(model)
        except (TemplateError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Rendering %s failed: %s", template_name, exc)
            return Result.fail(ErrorKind.INFRASTRUCTURE, "Contract template rendering failed")

        if not output.strip():
            logger.error("Template %s rendered empty output", template_name)
            return Result.fail(ErrorKind.INFRASTRUCTURE, "Contract template produced empty output")
        return Result.ok(output)
