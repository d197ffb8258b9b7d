"""Read-only view of a graph in the interchange format.

This is what the lowering dispatcher consumes. A front end (see
`onnxlower.frontend`) or a test builds it once; nothing downstream mutates it,
except that passes may read (and, for quantization tables, update) `metadata`.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Sequence

import numpy as np

from .ir.attributes import Attribute
from .ir.dtypes import DType, dtype_from_name, dtype_from_numpy, unknown
from .ir.value import Dim, Shape, as_shape


@dataclass(frozen=True, slots=True)
class SourceValue:
    """Declared type information for a named value of the source graph."""

    name: str
    dtype: DType = unknown
    shape: Shape | None = None


@dataclass(frozen=True, slots=True)
class SourceNode:
    kind: str
    input_names: tuple[str, ...]
    output_names: tuple[str, ...]
    attributes: Mapping[str, Attribute] = field(default_factory=dict)
    name: str = ""
    domain: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_names", tuple(self.input_names))
        object.__setattr__(self, "output_names", tuple(self.output_names))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def attribute(self, key: str) -> Attribute | None:
        return self.attributes.get(key)

    def __repr__(self) -> str:  # pragma: no cover
        ins = ", ".join(self.input_names)
        outs = ", ".join(self.output_names)
        return f"SourceNode({self.kind} {self.name!r}: ({ins}) -> ({outs}))"


@dataclass(frozen=True)
class SourceGraph:
    """A source graph: nodes in source order plus declared values.

    `inputs`/`outputs`/`value_info` carry whatever type information the
    interchange format declared. `initializers` holds constant data by name.
    """

    nodes: tuple[SourceNode, ...]
    inputs: tuple[SourceValue, ...] = ()
    outputs: tuple[SourceValue, ...] = ()
    initializers: Mapping[str, np.ndarray] = field(default_factory=dict)
    value_info: Mapping[str, SourceValue] = field(default_factory=dict)
    name: str = "graph"
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "initializers", MappingProxyType(dict(self.initializers)))
        object.__setattr__(self, "value_info", MappingProxyType(dict(self.value_info)))

        # Each declaration of a name counts once: as a graph input (with or
        # without an initializer), as an initializer, or as a node output.
        declared: Counter[str] = Counter()
        for name in {v.name for v in self.inputs} | set(self.initializers):
            declared[name] += 1
        for node in self.nodes:
            for name in node.output_names:
                declared[name] += 1
        object.__setattr__(self, "_declared", declared)

        table: dict[str, SourceValue] = {}
        for name, data in self.initializers.items():
            table[name] = SourceValue(name, dtype_from_numpy(data.dtype), as_shape(data.shape))
        table.update(self.value_info)
        for v in (*self.inputs, *self.outputs):
            table[v.name] = v
        object.__setattr__(self, "_table", table)

    def __iter__(self) -> Iterator[SourceNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def has_unique_name(self, name: str) -> bool:
        """A name is unique when non-empty and declared at most once.

        Names that are only consumed (declared nowhere) still count as unique:
        lowering then requires a value of that name to exist already.
        """

        return bool(name) and self._declared[name] <= 1  # type: ignore[attr-defined]

    def value(self, name: str) -> SourceValue:
        """Declared type info for `name`, or an untyped placeholder."""
        return self._table.get(name) or SourceValue(name)  # type: ignore[attr-defined]

    def declared_values(self) -> Iterable[SourceValue]:
        return self._table.values()  # type: ignore[attr-defined]


def source_value(name: str, dtype: str | DType = "unknown", shape: Sequence[Dim] | None = None) -> SourceValue:
    if isinstance(dtype, str):
        dtype = dtype_from_name(dtype)
    return SourceValue(name=name, dtype=dtype, shape=as_shape(shape))


def source_node(
    kind: str,
    inputs: Sequence[str],
    outputs: Sequence[str],
    *,
    name: str = "",
    domain: str = "",
    **attrs: Any,
) -> SourceNode:
    """Build a SourceNode; keyword arguments become inferred attributes."""
    return SourceNode(
        kind=kind,
        input_names=tuple(inputs),
        output_names=tuple(outputs),
        attributes={k: Attribute.infer(v) for k, v in attrs.items()},
        name=name,
        domain=domain,
    )
