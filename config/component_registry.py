"""Component Registry — the streamed UI components the consumer knows how to draw.

``component_start`` events name one of these components.  Each entry lists
the props the renderer dereferences unconditionally; when a start event
omits them the consumer fills in ``defaults`` so a half-streamed component
never renders from a missing field.

Adding a new component requires:
  1. Renderer: add a view function in ``renderer/views.py``
  2. Here: add an entry with its required defaults and primary collection
"""

from __future__ import annotations

import copy
from typing import Any

COMPONENT_REGISTRY: dict[str, dict] = {
    "Card": {
        "description": "Generic card with optional title, description, content and footer",
        "defaults": {},
        "collection": None,
    },
    "KPIGrid": {
        "description": "Grid of KPI metrics: label, value, trend, change",
        "defaults": {"metrics": []},
        "collection": "metrics",
    },
    "Chart": {
        "description": "Chart over a list of data points (bar, line, pie, area, scatter)",
        "defaults": {"type": "bar", "data": []},
        "collection": "data",
    },
    "Table": {
        "description": "Table with headers and rows of cells",
        "defaults": {"headers": [], "rows": []},
        "collection": "rows",
    },
    "List": {
        "description": "List of items with title and optional description",
        "defaults": {"items": []},
        "collection": "items",
    },
    "Alert": {
        "description": "Callout with title, description and variant",
        "defaults": {"description": "No description provided"},
        "collection": None,
    },
    "Progress": {
        "description": "Progress bar with label, value and optional max",
        "defaults": {"label": "Progress", "value": 0},
        "collection": None,
    },
}


def is_known_component(component: str) -> bool:
    return component in COMPONENT_REGISTRY


def apply_component_defaults(component: str, props: dict[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *props* with the component's required fields filled in.

    Existing values win; only absent keys are defaulted.  Unknown components
    get their props back unchanged (the renderer shows a fallback box).
    """
    result = dict(props or {})
    spec = COMPONENT_REGISTRY.get(component)
    if spec is None:
        return result
    for key, value in spec["defaults"].items():
        if result.get(key) is None:
            result[key] = copy.deepcopy(value)
    return result


def primary_collection(component: str) -> str:
    """Name of the list prop that generic item operations target."""
    spec = COMPONENT_REGISTRY.get(component) or {}
    return spec.get("collection") or "items"

