"""Decides which JSON codec a target type or a body value needs.

Plain JSON values (strings, numbers, lists, dicts) are handled by the
standard library. Record shapes (dataclasses, pydantic models, NamedTuple
and TypedDict classes) and the date/time, UUID, Decimal and Enum scalars need
the record codec, which knows how to build them. The resolver walks nested
fields and generic arguments to find them.
"""

import dataclasses
import datetime
import decimal
import enum
import logging
import sys
import typing
import uuid
from typing import Any, Iterable, Optional, Set

import pydantic

from easyrequester.config import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

RECORD_SCALARS = (
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    decimal.Decimal,
    enum.Enum,
)
"""Scalar types that plain JSON cannot represent."""


def is_record_shape(cls: Any) -> bool:
    """Reports whether a class is a record shape: a data-carrying type whose
    fields are its whole visible state."""
    if not isinstance(cls, type):
        return False
    return (
        dataclasses.is_dataclass(cls)
        or issubclass(cls, pydantic.BaseModel)
        or is_namedtuple(cls)
        or typing.is_typeddict(cls)
    )


def is_namedtuple(cls: Any) -> bool:
    return isinstance(cls, type) and issubclass(cls, tuple) and hasattr(cls, "_fields")


def requires_record_codec(target: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> bool:
    """Reports whether decoding into target needs the record codec.

    The target, its generic arguments and the annotated fields of the classes
    it refers to are inspected recursively, up to max_depth levels. Types that
    are already being inspected are skipped, so self-referencing classes
    terminate.
    """
    found = _contains_record(target, set(), max_depth, 0)
    logger.debug("resolved %r, record codec required: %s", target, found)
    return found


def value_requires_record_codec(
    value: Any, max_depth: int = DEFAULT_MAX_DEPTH
) -> bool:
    """Reports whether encoding value needs the record codec. Containers are
    searched element by element since their type says nothing about their
    contents."""
    return _value_contains_record(value, max_depth, 0)


def _value_contains_record(value: Any, max_depth: int, depth: int) -> bool:
    if depth >= max_depth:
        return False
    if isinstance(value, dict):
        return any(
            _value_contains_record(k, max_depth, depth + 1)
            or _value_contains_record(v, max_depth, depth + 1)
            for k, v in value.items()
        )
    if isinstance(value, (list, tuple, set, frozenset)) and not is_namedtuple(
        type(value)
    ):
        return any(_value_contains_record(v, max_depth, depth + 1) for v in value)
    return _contains_record(type(value), set(), max_depth - depth, 0)


def _contains_record(
    target: Any, visiting: Set[Any], max_depth: int, depth: int
) -> bool:
    if depth >= max_depth or target is None:
        return False
    # Unresolved forward references cannot be inspected.
    if isinstance(target, (str, typing.ForwardRef)):
        return False

    key = _type_key(target)
    if key in visiting:
        return False

    visiting.add(key)
    try:
        origin = typing.get_origin(target)
        if origin is not None:
            args = typing.get_args(target)
            if origin is typing.Literal:
                return False
            if origin is typing.Annotated:
                return _contains_record(args[0], visiting, max_depth, depth + 1)
            if is_record_shape(origin):
                return True
            return any(
                _contains_record(arg, visiting, max_depth, depth + 1)
                for arg in args
                if arg is not Ellipsis
            )

        if not isinstance(target, type):
            return False  # Any, TypeVar, NewType, ...
        if is_record_shape(target) or issubclass(target, RECORD_SCALARS):
            return True
        if is_system_type(target):
            return False
        return any(
            _contains_record(field_type, visiting, max_depth, depth + 1)
            for field_type in _field_types(target)
        )
    finally:
        visiting.discard(key)


def _type_key(target: Any) -> Any:
    try:
        hash(target)
    except TypeError:
        return repr(target)
    return target


def is_system_type(cls: type) -> bool:
    """Reports whether a class comes from the standard library."""
    module = (cls.__module__ or "").split(".")[0]
    return module == "builtins" or module in sys.stdlib_module_names


def _field_types(cls: type) -> Iterable[Any]:
    annotations: Optional[dict] = None
    for owner in (cls, getattr(cls, "__init__", None)):
        if owner is None:
            continue
        try:
            annotations = typing.get_type_hints(owner)
        except Exception:
            # Hints referring to names that cannot be resolved are skipped,
            # the raw annotations are used instead.
            annotations = dict(getattr(owner, "__annotations__", {}) or {})
        annotations.pop("return", None)
        if annotations:
            break
    return list((annotations or {}).values())
