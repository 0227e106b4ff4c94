"""Type binding layer for the bencode codec.

Resolves a Python type annotation (the decode *target*) into a :class:`Shape`
describing how wire tokens bind onto it, and derives the per-record
:class:`RecordFields` registry mapping wire keys to members.

Both are computed by a :class:`TypeRegistry`. Resolution is a pure function of
the annotation, so the registry memoizes results in plain dicts without
locking: two threads racing on the same type at worst compute it twice.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, ClassVar, Union

from pydantic import BaseModel

from bencodec.core.values import FixedLength, IntWidth, RawBencode
from bencodec.utils.exceptions import BencodeError

logger = logging.getLogger(__name__)

SKIP = "-"
"""Wire key override meaning "never bind this member"."""

METADATA_KEY = "bencode"

_SEQUENCE_ORIGINS = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
)
_MAPPING_ORIGINS = (
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)
_UNION_ORIGINS = (Union, types.UnionType)


def bencode_field(
    key: str | None = None,
    *,
    skip: bool = False,
    **kwargs: Any,
) -> Any:
    """Declare a dataclass field with an explicit wire key.

    ``key`` overrides the member name on the wire; ``skip=True`` (or
    ``key="-"``) excludes the member from encoding and decoding. Remaining
    keyword arguments are passed to :func:`dataclasses.field`.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if skip:
        metadata[METADATA_KEY] = SKIP
    elif key is not None:
        metadata[METADATA_KEY] = key
    return dataclasses.field(metadata=metadata, **kwargs)


def describe_type(annotation: Any) -> str:
    """Short human readable name of an annotation for error messages."""
    if annotation is Any:
        return "Any"
    if isinstance(annotation, type) and not typing.get_args(annotation):
        return annotation.__qualname__
    return repr(annotation).replace("typing.", "")


class ShapeKind(str, Enum):
    """Closed set of target shapes."""

    ANY = "any"
    INTEGER = "integer"
    TEXT = "text"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    RECORD = "record"
    OPTIONAL = "optional"
    RAW = "raw"
    UNSUPPORTED = "unsupported"


class Shape:
    """Binding description for one target annotation."""

    kind: ClassVar[ShapeKind]

    def __init__(self, registry: TypeRegistry, annotation: Any) -> None:
        self.registry = registry
        self.annotation = annotation

    @property
    def description(self) -> str:
        return describe_type(self.annotation)

    def zero(self) -> Any:
        """Value a target of this shape holds when nothing was decoded."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.description}>"


class AnyShape(Shape):
    kind = ShapeKind.ANY


class IntegerShape(Shape):
    """Integer target, optionally range-checked to a fixed width."""

    kind = ShapeKind.INTEGER

    def __init__(
        self,
        registry: TypeRegistry,
        annotation: Any,
        width: IntWidth | None = None,
    ) -> None:
        super().__init__(registry, annotation)
        self.width = width

    @property
    def description(self) -> str:
        return self.width.type_name if self.width else "int"

    def fits(self, value: int) -> bool:
        if self.width is None:
            return True
        return self.width.min_value <= value <= self.width.max_value

    def zero(self) -> int:
        return 0


class TextShape(Shape):
    kind = ShapeKind.TEXT

    def zero(self) -> str:
        return ""


class BytesShape(Shape):
    kind = ShapeKind.BYTES

    def __init__(
        self,
        registry: TypeRegistry,
        annotation: Any,
        factory: type = bytes,
    ) -> None:
        super().__init__(registry, annotation)
        self.factory = factory

    def zero(self) -> bytes | bytearray:
        return self.factory()


class SequenceShape(Shape):
    """List target, growable or with a fixed capacity.

    A fixed-capacity sequence either repeats one element type
    (``Annotated[list[T], FixedLength(n)]``) or has one type per slot
    (``tuple[A, B, C]``).
    """

    kind = ShapeKind.SEQUENCE

    def __init__(
        self,
        registry: TypeRegistry,
        annotation: Any,
        element_types: tuple[Any, ...],
        factory: Callable[[list[Any]], Any] = list,
        capacity: int | None = None,
        per_slot: bool = False,
    ) -> None:
        super().__init__(registry, annotation)
        self.element_types = element_types
        self.factory = factory
        self.capacity = capacity
        self.per_slot = per_slot

    @property
    def growable(self) -> bool:
        return self.capacity is None

    def with_capacity(self, capacity: int, annotation: Any) -> SequenceShape:
        return SequenceShape(
            self.registry,
            annotation,
            self.element_types,
            self.factory,
            capacity=capacity,
        )

    def element_shape(self, index: int) -> Shape:
        """Shape used to parse the element at ``index``."""
        if self.per_slot:
            if index < len(self.element_types):
                return self.registry.shape_for(self.element_types[index])
            return self.registry.any_shape
        return self.registry.shape_for(self.element_types[0])

    def keeps(self, index: int) -> bool:
        return self.capacity is None or index < self.capacity

    def finish(self, items: list[Any]) -> Any:
        """Build the target value, zero-filling unused fixed slots."""
        if self.capacity is not None:
            for index in range(len(items), self.capacity):
                items.append(self.element_shape(index).zero())
        return self.factory(items)

    def zero(self) -> Any:
        return self.finish([])


class MappingShape(Shape):
    """Dict target with string-like keys."""

    kind = ShapeKind.MAPPING

    def __init__(
        self,
        registry: TypeRegistry,
        annotation: Any,
        key_type: Any,
        value_type: Any,
    ) -> None:
        super().__init__(registry, annotation)
        self.key_type = key_type
        self.value_type = value_type

    @property
    def key_shape(self) -> Shape | None:
        """Shape for keys, or None when the key type is not string-like."""
        if self.key_type is str:
            return self.registry.shape_for(str)
        if self.key_type in (bytes, Any):
            return self.registry.shape_for(bytes)
        return None

    @property
    def value_shape(self) -> Shape:
        return self.registry.shape_for(self.value_type)

    def zero(self) -> dict[Any, Any]:
        return {}


class RecordShape(Shape):
    """Dataclass or pydantic model target."""

    kind = ShapeKind.RECORD

    @property
    def fields(self) -> RecordFields:
        return self.registry.fields_for(self.annotation)

    def zero(self) -> Any:
        return self.fields.build({})


class OptionalShape(Shape):
    """``T | None`` target; decoding always produces a ``T``."""

    kind = ShapeKind.OPTIONAL

    def __init__(self, registry: TypeRegistry, annotation: Any, inner: Any) -> None:
        super().__init__(registry, annotation)
        self.inner_type = inner

    @property
    def inner(self) -> Shape:
        return self.registry.shape_for(self.inner_type)


class RawShape(Shape):
    kind = ShapeKind.RAW


class UnsupportedShape(Shape):
    """Target no wire token can bind to."""

    kind = ShapeKind.UNSUPPORTED


@dataclass(frozen=True)
class FieldSpec:
    """One bound member of a record type."""

    name: str
    wire_key: bytes
    annotation: Any
    required: bool
    init: bool = True
    input_key: str = ""


class RecordFields:
    """Field registry for one record type.

    ``fields`` is ordered by raw wire-key bytes, which is the order the
    encoder writes them in.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        record_type: type,
        fields: list[FieldSpec],
        unbound: list[FieldSpec] | None = None,
    ) -> None:
        self.registry = registry
        self.record_type = record_type
        self.fields = tuple(sorted(fields, key=lambda f: f.wire_key))
        self.by_key = {f.wire_key: f for f in self.fields}
        # Excluded members that must still be passed to the constructor
        self.unbound = tuple(f for f in unbound or () if f.required and f.init)
        self.is_model = issubclass(record_type, BaseModel)

    def __len__(self) -> int:
        return len(self.fields)

    def lookup(self, wire_key: bytes) -> FieldSpec | None:
        return self.by_key.get(wire_key)

    def shape(self, spec: FieldSpec) -> Shape:
        return self.registry.shape_for(spec.annotation)

    @property
    def mutable(self) -> bool:
        if self.is_model:
            return not self.record_type.model_config.get("frozen", False)
        return not self.record_type.__dataclass_params__.frozen

    def build(self, values: dict[str, Any]) -> Any:
        """Construct an instance from decoded member values.

        Required members that were not decoded get their zero value; optional
        ones keep their declared default.
        """
        if self.is_model:
            data: dict[str, Any] = {}
            for spec in self.fields:
                if spec.name in values:
                    data[spec.input_key] = values[spec.name]
                elif spec.required:
                    data[spec.input_key] = self.shape(spec).zero()
            for spec in self.unbound:
                data[spec.input_key] = self.shape(spec).zero()
            return self.record_type.model_validate(data)

        kwargs: dict[str, Any] = {}
        late: dict[str, Any] = {}
        for spec in self.fields:
            if spec.name in values:
                target = kwargs if spec.init else late
                target[spec.name] = values[spec.name]
            elif spec.required:
                target = kwargs if spec.init else late
                target[spec.name] = self.shape(spec).zero()
        for spec in self.unbound:
            kwargs[spec.name] = self.shape(spec).zero()
        instance = self.record_type(**kwargs)
        for name, value in late.items():
            object.__setattr__(instance, name, value)
        return instance

    def assign(self, instance: Any, spec: FieldSpec, value: Any) -> None:
        setattr(instance, spec.name, value)


def _dataclass_required(field: dataclasses.Field[Any]) -> bool:
    return (
        field.default is dataclasses.MISSING
        and field.default_factory is dataclasses.MISSING
    )


class TypeRegistry:
    """Memoizing resolver from annotations to shapes and record fields."""

    def __init__(self) -> None:
        self._shapes: dict[Any, Shape] = {}
        self._records: dict[type, RecordFields] = {}
        self.any_shape = AnyShape(self, Any)

    def shape_for(self, annotation: Any) -> Shape:
        """Return the (cached) shape for a target annotation."""
        try:
            return self._shapes[annotation]
        except KeyError:
            pass
        except TypeError:
            # Unhashable annotation, resolve without caching
            return self._resolve(annotation)
        shape = self._resolve(annotation)
        self._shapes[annotation] = shape
        return shape

    def fields_for(self, record_type: type) -> RecordFields:
        """Return the (cached) field registry for a record type."""
        fields = self._records.get(record_type)
        if fields is None:
            fields = self._build_fields(record_type)
            self._records[record_type] = fields
        return fields

    def clear(self) -> None:
        self._shapes.clear()
        self._records.clear()

    def _resolve(self, annotation: Any) -> Shape:
        if annotation is Any or annotation is object:
            return self.any_shape

        origin = typing.get_origin(annotation)
        args = typing.get_args(annotation)

        if origin is Annotated:
            return self._resolve_annotated(annotation, args[0], args[1:])

        if origin in _UNION_ORIGINS:
            members = [arg for arg in args if arg is not type(None)]
            if len(members) == 1 and len(members) < len(args):
                return OptionalShape(self, annotation, members[0])
            return UnsupportedShape(self, annotation)

        if origin is tuple:
            return self._resolve_tuple(annotation, args)

        if origin in _SEQUENCE_ORIGINS:
            return SequenceShape(self, annotation, (args[0] if args else Any,))

        if origin in _MAPPING_ORIGINS:
            key_type, value_type = args if args else (bytes, Any)
            return MappingShape(self, annotation, key_type, value_type)

        if origin is not None or not isinstance(annotation, type):
            return UnsupportedShape(self, annotation)

        if issubclass(annotation, RawBencode):
            return RawShape(self, annotation)
        if annotation is int:
            return IntegerShape(self, annotation)
        if annotation is str:
            return TextShape(self, annotation)
        if annotation in (bytes, bytearray):
            return BytesShape(self, annotation, annotation)
        if annotation is list:
            return SequenceShape(self, annotation, (Any,))
        if annotation is tuple:
            return SequenceShape(self, annotation, (Any,), tuple)
        if annotation is dict:
            return MappingShape(self, annotation, bytes, Any)
        if dataclasses.is_dataclass(annotation) or issubclass(annotation, BaseModel):
            return RecordShape(self, annotation)
        return UnsupportedShape(self, annotation)

    def _resolve_annotated(
        self,
        annotation: Any,
        base: Any,
        extras: tuple[Any, ...],
    ) -> Shape:
        shape = self.shape_for(base)
        for extra in extras:
            if isinstance(extra, IntWidth) and isinstance(shape, IntegerShape):
                shape = IntegerShape(self, annotation, extra)
            elif isinstance(extra, FixedLength) and isinstance(shape, SequenceShape):
                shape = shape.with_capacity(extra.length, annotation)
        return shape

    def _resolve_tuple(self, annotation: Any, args: tuple[Any, ...]) -> Shape:
        if not args:
            return SequenceShape(self, annotation, (Any,), tuple)
        if len(args) == 2 and args[1] is Ellipsis:
            return SequenceShape(self, annotation, (args[0],), tuple)
        if args == ((),):
            # tuple[()]
            args = ()
        return SequenceShape(
            self,
            annotation,
            args,
            tuple,
            capacity=len(args),
            per_slot=True,
        )

    def _build_fields(self, record_type: type) -> RecordFields:
        unbound: list[FieldSpec] = []
        if issubclass(record_type, BaseModel):
            specs = list(_model_fields(record_type, unbound))
        else:
            specs = list(_dataclass_fields(record_type, unbound))
        fields = RecordFields(self, record_type, specs, unbound)
        logger.debug(
            "Built field registry for %s with %d fields",
            record_type.__qualname__,
            len(fields),
        )
        return fields


def _dataclass_fields(
    record_type: type,
    unbound: list[FieldSpec],
) -> collections.abc.Iterator[FieldSpec]:
    try:
        hints = typing.get_type_hints(record_type, include_extras=True)
    except NameError as e:
        msg = f"Cannot resolve field annotations of {record_type.__qualname__}: {e}"
        raise BencodeError(msg, {"record": record_type.__qualname__}) from e
    for field in dataclasses.fields(record_type):
        key = field.metadata.get(METADATA_KEY, field.name)
        spec = FieldSpec(
            name=field.name,
            wire_key=key.encode("utf-8"),
            annotation=hints.get(field.name, Any),
            required=_dataclass_required(field),
            init=field.init,
            input_key=field.name,
        )
        if key == SKIP or field.name.startswith("_"):
            unbound.append(spec)
            continue
        yield spec


def _model_fields(
    model: type[BaseModel],
    unbound: list[FieldSpec],
) -> collections.abc.Iterator[FieldSpec]:
    for name, info in model.model_fields.items():
        key = info.alias or name
        annotation = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        spec = FieldSpec(
            name=name,
            wire_key=key.encode("utf-8"),
            annotation=annotation,
            required=info.is_required(),
            input_key=key,
        )
        if info.exclude or key == SKIP or name.startswith("_"):
            unbound.append(spec)
            continue
        yield spec


default_registry = TypeRegistry()
