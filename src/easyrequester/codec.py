from __future__ import annotations

import dataclasses
import inspect
import json
import logging
import threading
import types
import typing
from typing import Any, Callable, Dict, Optional, Protocol, Set, Union

import json5
import pydantic
import typing_extensions

from easyrequester.config import DEFAULT_MAX_DEPTH
from easyrequester.error import DecodeError, EncodeError
from easyrequester.resolver import (
    is_namedtuple,
    is_record_shape,
    is_system_type,
    requires_record_codec,
    value_requires_record_codec,
)

logger = logging.getLogger(__name__)


class Codec(Protocol):
    """Protocol for JSON codecs."""

    def encode(self, value: Any) -> str:
        """Serialize a value to JSON text."""
        ...

    def decode(self, data: Union[str, bytes], target: Any) -> Any:
        """Parse JSON text and convert it to the target type."""
        ...


_JSON_TYPES = (dict, list, tuple, str, int, float, bool, type(None))


class JsonCodec:
    """JSON codec backed by the standard library, and by pydantic for record
    shapes.

    Args:
        record: Build record shapes (dataclasses, pydantic models, NamedTuple,
            TypedDict), date/time and other rich scalars with pydantic. When
            false, values are limited to what the json module produces.

        ignore_unknown_fields: Drop JSON object keys the target class does
            not declare instead of failing.

        lenient: Accept relaxed JSON (unquoted keys, single quotes, trailing
            commas) when strict parsing fails.
    """

    __slots__ = ("record", "ignore_unknown_fields", "lenient", "_adapters", "_lock")

    def __init__(
        self,
        record: bool = False,
        ignore_unknown_fields: bool = True,
        lenient: bool = False,
    ):
        self.record = record
        self.ignore_unknown_fields = ignore_unknown_fields
        self.lenient = lenient
        self._adapters: Dict[Any, pydantic.TypeAdapter] = {}
        self._lock = threading.Lock()

    def __repr__(self):
        return (
            f"JsonCodec(record={self.record}, "
            f"ignore_unknown_fields={self.ignore_unknown_fields}, "
            f"lenient={self.lenient})"
        )

    def encode(self, value: Any) -> str:
        try:
            if self.record:
                return self.adapter(Any).dump_json(value).decode("utf-8")
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise EncodeError(
                f"cannot encode {type(value).__name__} to JSON: {e}"
            ) from e

    def decode(self, data: Union[str, bytes], target: Any) -> Any:
        document = self.parse(data)
        self._check_unknown_fields(target, document)
        if not self.record:
            return self._convert(document, target)
        return self._validate(document, target)

    def _validate(self, document: Any, target: Any) -> Any:
        fields = annotated_fields(target)
        if fields is not None:
            return self._populate(target, document, fields, self._validate)

        adapter = self.adapter(target)
        try:
            return adapter.validate_python(document)
        except pydantic.ValidationError as e:
            raise DecodeError(f"cannot decode into {_type_name(target)}: {e}") from e

    def parse(self, data: Union[str, bytes]) -> Any:
        """Parse JSON text into plain Python values."""
        try:
            return json.loads(data)
        except ValueError as e:
            if not self.lenient:
                raise DecodeError(f"malformed JSON: {e}") from e
            error = e

        try:
            text = data.decode("utf-8") if isinstance(data, bytes) else data
            return json5.loads(text)
        except ValueError as e:
            raise DecodeError(f"malformed JSON: {error}") from e

    def adapter(self, target: Any) -> pydantic.TypeAdapter:
        """Returns the pydantic TypeAdapter for a target type. Adapters are
        built once per type and reused."""
        try:
            adapter = self._adapters.get(target)
        except TypeError:  # unhashable type descriptor
            return self._new_adapter(target)
        if adapter is not None:
            return adapter

        with self._lock:
            adapter = self._adapters.get(target)
            if adapter is None:
                adapter = self._new_adapter(target)
                self._adapters[target] = adapter
        return adapter

    def _new_adapter(self, target: Any) -> pydantic.TypeAdapter:
        logger.debug("building type adapter for %s", _type_name(target))
        try:
            return pydantic.TypeAdapter(target)
        except (pydantic.PydanticSchemaGenerationError, TypeError) as e:
            raise DecodeError(
                f"unsupported target type {_type_name(target)}: {e}"
            ) from e

    def _check_unknown_fields(self, target: Any, document: Any):
        if self.ignore_unknown_fields or not isinstance(document, dict):
            return
        fields = declared_fields(typing.get_origin(target) or target)
        if fields is None:
            return
        unknown = set(document) - fields
        if unknown:
            raise DecodeError(
                f"unknown field(s) for {_type_name(target)}: "
                + ", ".join(sorted(map(str, unknown)))
            )

    def _convert(self, document: Any, target: Any) -> Any:
        if target is Any or target is object:
            return document

        origin = typing.get_origin(target) or target
        if origin is typing.Union or origin is types.UnionType:
            for arm in typing.get_args(target):
                try:
                    return self._convert(document, arm)
                except DecodeError:
                    continue
            raise DecodeError(
                f"expected {_type_name(target)}, got {type(document).__name__}"
            )

        if origin is None or origin is type(None):
            if document is None:
                return None
        elif origin in _JSON_TYPES:
            if origin is float and _is_number(document):
                return float(document)
            if origin is tuple and isinstance(document, list):
                return tuple(self._convert_items(document, target))
            if isinstance(document, origin) and not (
                origin is int and isinstance(document, bool)
            ):
                return self._convert_items(document, target)
        elif isinstance(origin, type) and isinstance(document, dict):
            return self._construct(origin, document)

        raise DecodeError(
            f"expected {_type_name(target)}, got {type(document).__name__}"
        )

    def _convert_items(self, document: Any, target: Any) -> Any:
        args = typing.get_args(target)
        if not args:
            return document
        if isinstance(document, dict):
            return {k: self._convert(v, args[-1]) for k, v in document.items()}
        if isinstance(document, list):
            if len(args) == 2 and args[1] is Ellipsis:
                return [self._convert(v, args[0]) for v in document]
            if typing.get_origin(target) is tuple:
                if len(args) != len(document):
                    raise DecodeError(
                        f"expected {_type_name(target)}, got {len(document)} items"
                    )
                return [self._convert(v, arg) for v, arg in zip(document, args)]
            return [self._convert(v, args[0]) for v in document]
        return document

    def _construct(self, cls: type, document: Dict[str, Any]) -> Any:
        annotated = annotated_fields(cls)
        if annotated is not None:
            return self._populate(cls, document, annotated, self._convert)

        fields = declared_fields(cls)
        if fields is not None:
            document = {k: v for k, v in document.items() if k in fields}
        try:
            return cls(**document)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"cannot construct {_type_name(cls)}: {e}") from e

    def _populate(
        self,
        cls: type,
        document: Any,
        fields: Dict[str, Any],
        convert: Callable[[Any, Any], Any],
    ) -> Any:
        # Classes without a constructor of their own get their annotated
        # attributes assigned one by one.
        if not isinstance(document, dict):
            raise DecodeError(
                f"expected {_type_name(cls)}, got {type(document).__name__}"
            )
        missing = [
            name for name in fields if name not in document and not hasattr(cls, name)
        ]
        if missing:
            raise DecodeError(
                f"missing field(s) for {_type_name(cls)}: " + ", ".join(missing)
            )

        try:
            instance = cls()
        except (TypeError, ValueError) as e:
            raise DecodeError(f"cannot construct {_type_name(cls)}: {e}") from e
        for name, field_type in fields.items():
            if name in document:
                setattr(instance, name, convert(document[name], field_type))
        return instance


def declared_fields(cls: Any) -> Optional[Set[str]]:
    """Returns the names a class accepts as fields, or None when it accepts
    arbitrary keyword arguments or cannot be inspected."""
    if not isinstance(cls, type) or cls in (dict, list, str, int, float, bool):
        return None
    if dataclasses.is_dataclass(cls):
        return {f.name for f in dataclasses.fields(cls) if f.init}
    if issubclass(cls, pydantic.BaseModel):
        names = set()
        for name, info in cls.model_fields.items():
            names.add(name)
            if info.alias:
                names.add(info.alias)
        return names
    if is_namedtuple(cls):
        return set(cls._fields)  # type: ignore[attr-defined]
    if typing_extensions.is_typeddict(cls):
        return set(typing.get_type_hints(cls))

    annotated = annotated_fields(cls)
    if annotated is not None:
        return set(annotated)

    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return None
    names = set()
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            return None
        if param.kind is not inspect.Parameter.VAR_POSITIONAL:
            names.add(param.name)
    return names


def annotated_fields(cls: Any) -> Optional[Dict[str, Any]]:
    """Returns the annotated attributes of a class that has no constructor of
    its own, mapped to their types. Returns None for any other class.

    Such classes are filled by assigning their attributes after creating an
    empty instance. Annotations that cannot be resolved are typed as Any.
    """
    if (
        not isinstance(cls, type)
        or cls.__init__ is not object.__init__
        or is_record_shape(cls)
        or is_system_type(cls)
    ):
        return None

    try:
        hints = typing.get_type_hints(cls)
    except NameError:
        hints = {}
        for owner in reversed(cls.__mro__):
            hints.update(owner.__dict__.get("__annotations__", {}))

    fields = {}
    for name, hint in hints.items():
        if name.startswith("_") or typing.get_origin(hint) is typing.ClassVar:
            continue
        if isinstance(hint, (str, typing.ForwardRef)):
            hint = Any
        fields[name] = hint
    return fields or None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(target: Any) -> str:
    if isinstance(target, type) and typing.get_origin(target) is None:
        return target.__qualname__
    return repr(target)


_lock = threading.Lock()

PLAIN_CODEC: Optional[JsonCodec] = None
RECORD_CODEC: Optional[JsonCodec] = None


def plain_codec() -> JsonCodec:
    """Returns the shared codec for plain JSON values.

    The codec is created on first use and shared by every requester."""
    global PLAIN_CODEC
    if PLAIN_CODEC is None:
        with _lock:
            if PLAIN_CODEC is None:
                PLAIN_CODEC = JsonCodec()
    return PLAIN_CODEC


def record_codec() -> JsonCodec:
    """Returns the shared codec for record shapes and date/time values.

    The codec tolerates unknown fields and relaxed JSON. It is created on
    first use and shared by every requester; its type adapters are cached
    across requests."""
    global RECORD_CODEC
    if RECORD_CODEC is None:
        with _lock:
            if RECORD_CODEC is None:
                RECORD_CODEC = JsonCodec(
                    record=True, ignore_unknown_fields=True, lenient=True
                )
    return RECORD_CODEC


def codec_for(
    target: Any, record: Optional[bool] = None, max_depth: int = DEFAULT_MAX_DEPTH
) -> JsonCodec:
    """Returns the shared codec suited to decode into target.

    Args:
        target: The target type.

        record: When set, forces (True) or prevents (False) the use of the
            record codec instead of inspecting the target.

        max_depth: How deep nested fields are inspected.
    """
    if record is None:
        record = requires_record_codec(target, max_depth)
    return record_codec() if record else plain_codec()


def codec_for_value(value: Any, record: Optional[bool] = None) -> JsonCodec:
    """Returns the shared codec suited to encode value."""
    if record is None:
        record = value_requires_record_codec(value)
    return record_codec() if record else plain_codec()
