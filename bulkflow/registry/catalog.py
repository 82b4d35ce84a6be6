"""Read-only catalog of workflow templates."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from ..contracts import Category, WorkflowTemplate
from ..errors import TemplateNotFound


class TemplateRegistry:
    """Templates keyed by id, fixed at construction.

    Templates are immutable and shared by every execution that references
    them; the registry offers no way to add or replace one afterwards.
    """

    def __init__(self, templates: Iterable[WorkflowTemplate] = ()) -> None:
        self._templates: Dict[str, WorkflowTemplate] = {}
        for template in templates:
            if template.id in self._templates:
                raise ValueError(f"Duplicate workflow template id: {template.id}")
            self._templates[template.id] = template

    def get(self, template_id: str) -> WorkflowTemplate:
        """Return the template with ``template_id`` or raise ``TemplateNotFound``."""
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFound(template_id) from None

    def list(self, category: Optional[Category] = None) -> List[WorkflowTemplate]:
        return [
            t
            for t in self._templates.values()
            if category is None or t.category == category
        ]

    def categories(self) -> Dict[str, List[WorkflowTemplate]]:
        grouped: Dict[str, List[WorkflowTemplate]] = {}
        for template in self._templates.values():
            grouped.setdefault(template.category, []).append(template)
        return grouped

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __iter__(self) -> Iterator[WorkflowTemplate]:
        return iter(list(self._templates.values()))

    def __len__(self) -> int:
        return len(self._templates)
