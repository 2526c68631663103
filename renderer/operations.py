"""Typed component update operations.

``component_update`` events name an operation (``add_row``,
``set_property``...).  :func:`operation_from_event` resolves the name
against the component's current props into one of a closed set of
operations, and :func:`apply_operation` applies it without mutating its
input, so a failing operation leaves the component untouched.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Union

from config.component_registry import primary_collection
from models.stream_events import ComponentUpdateEvent, UpdateOperationName


@dataclass(frozen=True)
class AppendItem:
    collection: str
    item: Any


@dataclass(frozen=True)
class ReplaceAt:
    collection: str
    index: int
    item: Any


@dataclass(frozen=True)
class RemoveAt:
    collection: str
    index: int


@dataclass(frozen=True)
class SetPath:
    path: tuple[str, ...]
    value: Any


@dataclass(frozen=True)
class Merge:
    data: dict[str, Any]


@dataclass(frozen=True)
class AppendArrays:
    data: dict[str, list[Any]]


Operation = Union[AppendItem, ReplaceAt, RemoveAt, SetPath, Merge, AppendArrays]


# ── Resolution ──────────────────────────────────────────────


def _locate(items: list[Any], index: int | None, data: Any) -> int:
    """Index of the item an update addresses: explicit, or by ``id``/``label``."""
    if index is not None:
        return index
    if isinstance(data, dict):
        for key in ("id", "label"):
            wanted = data.get(key)
            if wanted is None:
                continue
            for i, item in enumerate(items):
                if isinstance(item, dict) and item.get(key) == wanted:
                    return i
    raise ValueError("update needs an index or an item id/label that exists")


def _collection(props: dict[str, Any], name: str) -> list[Any]:
    value = props.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"prop {name!r} is not a list")
    return value


def _path(event: ComponentUpdateEvent) -> tuple[str, ...]:
    raw = event.path or event.key
    if not raw:
        raise ValueError("set_property needs a path or key")
    return tuple(raw.split("."))


def operation_from_event(
    event: ComponentUpdateEvent,
    component: str,
    props: dict[str, Any],
) -> Operation:
    """Resolve an update event into a typed operation.

    Raises:
        ValueError / TypeError: the event cannot address these props.
    """
    name = event.operation
    data = event.data
    collection = primary_collection(component)

    match name:
        case UpdateOperationName.ADD_METRIC:
            return AppendItem("metrics", data)
        case UpdateOperationName.ADD_ROW:
            return AppendItem("rows", data)
        case UpdateOperationName.ADD_ITEM:
            return AppendItem(collection, data)
        case UpdateOperationName.UPDATE_METRIC:
            metrics = _collection(props, "metrics")
            i = _locate(metrics, event.index, data)
            if 0 <= i < len(metrics) and isinstance(metrics[i], dict) and isinstance(data, dict):
                data = {**metrics[i], **data}
            return ReplaceAt("metrics", i, data)
        case UpdateOperationName.UPDATE_ROW:
            if event.index is None:
                raise ValueError("update_row needs an index")
            return ReplaceAt("rows", event.index, data)
        case UpdateOperationName.REMOVE_ITEM:
            return RemoveAt(collection, _locate(_collection(props, collection), event.index, data))
        case UpdateOperationName.SET_PROPERTY:
            return SetPath(_path(event), data)
        case UpdateOperationName.REPLACE_DATA:
            if isinstance(data, dict):
                return Merge(data)
            if isinstance(data, list):
                return SetPath((collection,), data)
            raise TypeError("replace_data needs an object or a list")
        case UpdateOperationName.APPEND_DATA:
            if isinstance(data, list):
                return AppendArrays({collection: data})
            if isinstance(data, dict) and all(isinstance(v, list) for v in data.values()):
                return AppendArrays(data)
            raise TypeError("append_data needs a list or an object of lists")
    raise ValueError(f"unsupported operation {name!r}")


# ── Application ─────────────────────────────────────────────


def _set_path(target: Any, path: tuple[str, ...], value: Any) -> None:
    *parents, last = path
    node = target
    for segment in parents:
        if isinstance(node, list):
            node = node[int(segment)]
        elif isinstance(node, dict):
            if not isinstance(node.get(segment), (dict, list)):
                node[segment] = {}
            node = node[segment]
        else:
            raise TypeError(f"cannot descend into {type(node).__name__} at {segment!r}")
    if isinstance(node, list):
        node[int(last)] = value
    elif isinstance(node, dict):
        node[last] = value
    else:
        raise TypeError(f"cannot set {last!r} on {type(node).__name__}")


def apply_operation(props: dict[str, Any], op: Operation) -> dict[str, Any]:
    """Return new props with *op* applied.

    Raises:
        IndexError: index outside the collection.
        TypeError / ValueError: target is not the expected shape.
    """
    result = copy.deepcopy(props)
    match op:
        case AppendItem(collection=name, item=item):
            result[name] = _collection(result, name) + [item]
        case ReplaceAt(collection=name, index=index, item=item):
            items = _collection(result, name)
            if not 0 <= index < len(items):
                raise IndexError(f"{name}[{index}] out of range ({len(items)} items)")
            items[index] = item
            result[name] = items
        case RemoveAt(collection=name, index=index):
            items = _collection(result, name)
            if not 0 <= index < len(items):
                raise IndexError(f"{name}[{index}] out of range ({len(items)} items)")
            del items[index]
            result[name] = items
        case SetPath(path=path, value=value):
            _set_path(result, path, value)
        case Merge(data=data):
            result.update(copy.deepcopy(data))
        case AppendArrays(data=data):
            for name, values in data.items():
                result[name] = _collection(result, name) + list(values)
    return result
