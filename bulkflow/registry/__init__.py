"""Workflow template registry."""

from __future__ import annotations

from .catalog import TemplateRegistry
from .defaults import DEFAULT_TEMPLATES

# Templates available to every engine that is not given its own registry.
REGISTRY = TemplateRegistry(DEFAULT_TEMPLATES)


def get_template(template_id: str):
    """Look up ``template_id`` in the default registry."""
    return REGISTRY.get(template_id)


__all__ = [
    "TemplateRegistry",
    "DEFAULT_TEMPLATES",
    "REGISTRY",
    "get_template",
]
