"""
Cache key construction.

A key must be byte-identical for logically identical requests and must
differ for requests that are not, so every argument goes through
:func:`canonical_serialize`: a typed canonical tree dumped as JSON with
sorted object keys and compact separators.

JSON-native values (``None``, bools, numbers, strings, lists, and dicts
with plain string keys) are emitted as-is; tuples become lists.  Every
other supported value is wrapped in a single-key tag object so it cannot
collide with a plain value of the same text::

    {"__set__": [...]}          set / frozenset, items sorted
    {"__dict__": [[k, v], ...]} non-string or reserved keys, pairs sorted
    {"__date__": "2024-01-31"}  also __datetime__ / __time__
    {"__decimal__": "1.50"}     also __uuid__ / __bytes__
    {"__enum__": [cls, value]}
    {"__model__": [cls, fields]} pydantic models and dataclasses

Anything else raises :class:`UncacheableValueError`.  Identity-based
``repr()`` output is never used as a key.
"""

import dataclasses
import inspect
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Sequence
from uuid import UUID

from pydantic import BaseModel

from tiercache.exceptions import UncacheableValueError

KEY_SEPARATOR = ":"


def _type_name(obj: Any) -> str:
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def _dumps(tree: Any) -> str:
    return json.dumps(tree, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _is_reserved(key: str) -> bool:
    return key.startswith("__") and key.endswith("__")


def _mapping_tree(mapping: Mapping[Any, Any]) -> Any:
    if all(isinstance(k, str) and not _is_reserved(k) for k in mapping):
        return {k: _canonical(v) for k, v in mapping.items()}
    pairs: List[List[Any]] = [[_canonical(k), _canonical(v)] for k, v in mapping.items()]
    pairs.sort(key=lambda pair: _dumps(pair[0]))
    return {"__dict__": pairs}


def _canonical(obj: Any) -> Any:
    """Convert *obj* into a JSON-encodable tree that keeps its type."""
    # Enum first: IntEnum and StrEnum members are also ints and strs.
    if isinstance(obj, Enum):
        return {"__enum__": [_type_name(obj), _canonical(obj.value)]}
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [_canonical(item) for item in obj]
    if isinstance(obj, dict):
        return _mapping_tree(obj)
    if isinstance(obj, (set, frozenset)):
        items = [_canonical(item) for item in obj]
        items.sort(key=_dumps)
        return {"__set__": items}
    if isinstance(obj, BaseModel):
        fields = {name: getattr(obj, name) for name in type(obj).model_fields}
        return {"__model__": [_type_name(obj), _mapping_tree(fields)]}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        fields = {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
        return {"__model__": [_type_name(obj), _mapping_tree(fields)]}
    if isinstance(obj, datetime):
        return {"__datetime__": obj.isoformat()}
    if isinstance(obj, date):
        return {"__date__": obj.isoformat()}
    if isinstance(obj, time):
        return {"__time__": obj.isoformat()}
    if isinstance(obj, Decimal):
        return {"__decimal__": str(obj)}
    if isinstance(obj, UUID):
        return {"__uuid__": str(obj)}
    if isinstance(obj, (bytes, bytearray)):
        return {"__bytes__": bytes(obj).hex()}
    raise UncacheableValueError(obj)


def canonical_serialize(value: Any) -> str:
    """Serialize *value* to an order-stable, type-preserving string.

    Args:
        value: Any argument value.

    Returns:
        A compact JSON string.

    Raises:
        UncacheableValueError: If *value* contains an object with no
            canonical form.
    """
    return _dumps(_canonical(value))


def make_key(*parts: Any) -> str:
    """Join key parts with ``:``.  Non-string parts are serialized canonically."""
    return KEY_SEPARATOR.join(
        part if isinstance(part, str) else canonical_serialize(part)
        for part in parts
    )


def function_identity(fn: Callable[..., Any]) -> str:
    """Stable name for *fn*: ``module.qualname``."""
    module = getattr(fn, "__module__", None) or "<unknown>"
    qualname = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", repr(fn))
    return f"{module}.{qualname}"


def normalize_call(
    fn: Callable[..., Any],
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
) -> Dict[str, Any]:
    """Bind a call against *fn*'s signature with defaults applied.

    ``f(1)``, ``f(a=1)`` and ``f(1, b=<default>)`` all normalize to the
    same mapping.  Variadic parameters keep their own shape.  Callables
    without an introspectable signature fall back to
    ``{"args": [...], "kwargs": {...}}``.

    Raises:
        TypeError: If the arguments do not match the signature.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return {"args": list(args), "kwargs": dict(kwargs)}

    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()
    return dict(bound.arguments)


def call_key(
    tier: str,
    identity: str,
    arguments: Mapping[str, Any],
) -> str:
    """Key for a memoized call: ``tier:identity:canonical(arguments)``."""
    return make_key(tier, identity, canonical_serialize(dict(arguments)))
