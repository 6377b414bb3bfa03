"""Contract source templating."""

from .renderer import TemplateRenderer, clean_model
from .chain_templates import (
    ChainTemplate,
    CHAIN_TEMPLATES,
    DEFAULT_PROGRAM_ID,
    add_default_derive,
    merge_template_data,
)

__all__ = [
    "TemplateRenderer",
    "clean_model",
    "ChainTemplate",
    "CHAIN_TEMPLATES",
    "DEFAULT_PROGRAM_ID",
    "add_default_derive",
    "merge_template_data",
]
