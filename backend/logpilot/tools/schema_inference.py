"""Schema discovery over sample log objects.

Arrays are probed through their first element only (``items[0]``, and
``items[0][0]`` for nested arrays), so heterogeneous array elements are
under-reported. That approximation is intentional.
"""

from typing import Any, Iterator

from logpilot.models.schemas import FieldDescriptor


class SchemaInferenceError(ValueError):
    """Raised when there is nothing to infer a schema from."""


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def extract_fields(obj: Any, prefix: str = "") -> Iterator[tuple[str, Any, str]]:
    """Yield ``(path, value, type)`` for every field reachable from ``obj``."""
    if obj is None:
        return
    if not isinstance(obj, dict):
        yield prefix, obj, json_type(obj)
        yield from _descend(obj, prefix)
        return

    for key, value in obj.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        yield path, value, json_type(value)
        yield from _descend(value, path)


def _descend(value: Any, path: str) -> Iterator[tuple[str, Any, str]]:
    if isinstance(value, dict):
        yield from extract_fields(value, path)
    elif isinstance(value, (list, tuple)) and value:
        first = f"{path}[0]"
        yield first, value[0], json_type(value[0])
        yield from _descend(value[0], first)


def infer_schema(samples: list[Any]) -> list[FieldDescriptor]:
    if not samples:
        raise SchemaInferenceError("No samples provided to analyze")

    descriptors: dict[str, FieldDescriptor] = {}
    for sample in samples:
        for path, value, kind in extract_fields(sample):
            descriptor = descriptors.get(path)
            if descriptor is None:
                descriptors[path] = FieldDescriptor(path=path, observed_types=[kind], example=value)
            elif kind not in descriptor.observed_types:
                descriptor.observed_types.append(kind)
    return list(descriptors.values())
