from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np

if TYPE_CHECKING:
	from .graph import ComputeGraph


class AttributeKindError(TypeError):
	"""An attribute was read or written as a kind it does not have."""


class AttrKind(Enum):
	FLOAT = "float"
	INT = "int"
	STRING = "string"
	TENSOR = "tensor"
	GRAPH = "graph"
	FLOATS = "floats"
	INTS = "ints"
	STRINGS = "strings"
	TENSORS = "tensors"
	GRAPHS = "graphs"

	@property
	def is_sequence(self) -> bool:
		return self in _ELEMENT

	@property
	def element(self) -> AttrKind:
		"""Scalar kind of a sequence kind (a scalar kind is its own element)."""
		return _ELEMENT.get(self, self)


_ELEMENT = {
	AttrKind.FLOATS: AttrKind.FLOAT,
	AttrKind.INTS: AttrKind.INT,
	AttrKind.STRINGS: AttrKind.STRING,
	AttrKind.TENSORS: AttrKind.TENSOR,
	AttrKind.GRAPHS: AttrKind.GRAPH,
}


def _is_graph(x: object) -> bool:
	from .graph import ComputeGraph

	return isinstance(x, ComputeGraph)


def _check_scalar(kind: AttrKind, x: object) -> bool:
	if kind is AttrKind.FLOAT:
		return isinstance(x, (float, int, np.floating, np.integer)) and not isinstance(x, (bool, np.bool_))
	if kind is AttrKind.INT:
		return isinstance(x, (int, np.integer)) and not isinstance(x, (bool, np.bool_))
	if kind is AttrKind.STRING:
		return isinstance(x, str)
	if kind is AttrKind.TENSOR:
		return isinstance(x, np.ndarray)
	return _is_graph(x)


def _normalize_scalar(kind: AttrKind, x: Any) -> Any:
	if kind is AttrKind.FLOAT:
		return float(x)
	if kind is AttrKind.INT:
		return int(x)
	return x


def _copy_scalar(kind: AttrKind, x: Any) -> Any:
	if kind is AttrKind.TENSOR:
		return x.copy()
	if kind is AttrKind.GRAPH:
		return x.copy()
	return x


class Attribute:
	"""A typed, named-by-owner value attached to an IR node.

	The kind is fixed when the attribute is built. The payload may be replaced
	through `set_value`, but only with a payload of the same kind; nothing is
	ever converted across kinds.

	FLOAT/INT accept Python or numpy numbers and store Python numbers. TENSOR
	holds a numpy array, GRAPH a nested ComputeGraph held by value.
	"""

	__slots__ = ("_kind", "_value")

	def __init__(self, kind: AttrKind, value: Any) -> None:
		if not isinstance(kind, AttrKind):
			raise AttributeKindError(f"attribute kind must be an AttrKind, got {kind!r}")
		self._kind = kind
		self._value = self._checked(value)

	@property
	def kind(self) -> AttrKind:
		return self._kind

	@property
	def value(self) -> Any:
		return self._value

	def set_value(self, value: Any) -> None:
		self._value = self._checked(value)

	def _checked(self, value: Any) -> Any:
		kind = self._kind
		if kind.is_sequence:
			if isinstance(value, (str, bytes, np.ndarray)) or not isinstance(value, Sequence):
				raise AttributeKindError(f"{kind.value} attribute needs a sequence, got {type(value).__name__}")
			elem = kind.element
			for x in value:
				if not _check_scalar(elem, x):
					raise AttributeKindError(f"{kind.value} attribute cannot hold {type(x).__name__}")
			return [_normalize_scalar(elem, x) for x in value]
		if not _check_scalar(kind, value):
			raise AttributeKindError(f"{kind.value} attribute cannot hold {type(value).__name__}")
		return _normalize_scalar(kind, value)

	def _expect(self, kind: AttrKind) -> Any:
		if self._kind is not kind:
			raise AttributeKindError(f"attribute is {self._kind.value}, not {kind.value}")
		return self._value

	def as_float(self) -> float:
		return self._expect(AttrKind.FLOAT)

	def as_int(self) -> int:
		return self._expect(AttrKind.INT)

	def as_string(self) -> str:
		return self._expect(AttrKind.STRING)

	def as_tensor(self) -> np.ndarray:
		return self._expect(AttrKind.TENSOR)

	def as_graph(self) -> ComputeGraph:
		return self._expect(AttrKind.GRAPH)

	def as_floats(self) -> list[float]:
		return self._expect(AttrKind.FLOATS)

	def as_ints(self) -> list[int]:
		return self._expect(AttrKind.INTS)

	def as_strings(self) -> list[str]:
		return self._expect(AttrKind.STRINGS)

	def as_tensors(self) -> list[np.ndarray]:
		return self._expect(AttrKind.TENSORS)

	def as_graphs(self) -> list[ComputeGraph]:
		return self._expect(AttrKind.GRAPHS)

	def copy(self) -> Attribute:
		elem = self._kind.element
		if self._kind.is_sequence:
			payload: Any = [_copy_scalar(elem, x) for x in self._value]
		else:
			payload = _copy_scalar(elem, self._value)
		return Attribute(self._kind, payload)

	__copy__ = copy

	def __deepcopy__(self, memo: dict) -> Attribute:
		return self.copy()

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, Attribute):
			return NotImplemented
		if other._kind is not self._kind:
			return False
		elem = self._kind.element
		if elem is AttrKind.TENSOR:
			a = self._value if self._kind.is_sequence else [self._value]
			b = other._value if other._kind.is_sequence else [other._value]
			return len(a) == len(b) and all(np.array_equal(x, y) for x, y in zip(a, b))
		if elem is AttrKind.GRAPH:
			return self._value is other._value
		return self._value == other._value

	__hash__ = None  # type: ignore[assignment]

	def __repr__(self) -> str:  # pragma: no cover
		if self._kind.element in (AttrKind.TENSOR, AttrKind.GRAPH):
			return f"Attribute({self._kind.value})"
		return f"Attribute({self._kind.value}, {self._value!r})"

	# Convenience constructors, one per kind.

	@classmethod
	def float_(cls, x: float) -> Attribute:
		return cls(AttrKind.FLOAT, x)

	@classmethod
	def int_(cls, x: int) -> Attribute:
		return cls(AttrKind.INT, x)

	@classmethod
	def string(cls, x: str) -> Attribute:
		return cls(AttrKind.STRING, x)

	@classmethod
	def tensor(cls, x: np.ndarray) -> Attribute:
		return cls(AttrKind.TENSOR, x)

	@classmethod
	def graph(cls, x: ComputeGraph) -> Attribute:
		return cls(AttrKind.GRAPH, x)

	@classmethod
	def floats(cls, xs: Sequence[float]) -> Attribute:
		return cls(AttrKind.FLOATS, list(xs))

	@classmethod
	def ints(cls, xs: Sequence[int]) -> Attribute:
		return cls(AttrKind.INTS, list(xs))

	@classmethod
	def strings(cls, xs: Sequence[str]) -> Attribute:
		return cls(AttrKind.STRINGS, list(xs))

	@classmethod
	def tensors(cls, xs: Sequence[np.ndarray]) -> Attribute:
		return cls(AttrKind.TENSORS, list(xs))

	@classmethod
	def graphs(cls, xs: Sequence[ComputeGraph]) -> Attribute:
		return cls(AttrKind.GRAPHS, list(xs))

	@classmethod
	def infer(cls, value: Any) -> Attribute:
		"""Pick the kind for a plain Python value.

		Empty sequences are ambiguous and rejected; build those explicitly.
		"""

		if isinstance(value, Attribute):
			return value.copy()
		for kind in (AttrKind.INT, AttrKind.FLOAT, AttrKind.STRING, AttrKind.TENSOR, AttrKind.GRAPH):
			if _check_scalar(kind, value):
				return cls(kind, value)
		if isinstance(value, (list, tuple)) and value:
			for kind in (AttrKind.INTS, AttrKind.FLOATS, AttrKind.STRINGS, AttrKind.TENSORS, AttrKind.GRAPHS):
				if all(_check_scalar(kind.element, x) for x in value):
					return cls(kind, list(value))
		raise AttributeKindError(f"cannot infer an attribute kind for {value!r}")
