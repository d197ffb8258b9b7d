from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from .dtypes import DType

# A dimension is static (int), symbolic (str, e.g. "batch") or unknown (None).
Dim = Union[int, str, None]
Shape = tuple[Dim, ...]


@dataclass(slots=True, eq=False)
class Value:
	"""A named data-flow edge of a compute graph.

	Values are owned by the graph's value table. Nodes refer to them but a
	value never points back at its producer or users; ask the graph instead.
	Identity matters: two values with the same name in different graphs are
	different edges, so equality is object identity.
	"""

	name: str
	dtype: DType
	shape: Shape | None = None

	@property
	def rank(self) -> int | None:
		return None if self.shape is None else len(self.shape)

	@property
	def is_static(self) -> bool:
		return self.shape is not None and all(isinstance(d, int) for d in self.shape)

	@property
	def numel(self) -> int:
		if not self.is_static:
			raise ValueError(f"value {self.name!r} has a non-static shape {self.shape}")
		n = 1
		for dim in self.shape:
			n *= dim
		return n

	def __repr__(self) -> str:  # pragma: no cover
		return f"Value(name={self.name!r}, shape={self.shape}, dtype={self.dtype})"


def as_shape(dims: Iterable[Dim] | None) -> Shape | None:
	if dims is None:
		return None
	out: list[Dim] = []
	for d in dims:
		if d is None or isinstance(d, str):
			out.append(d)
		else:
			out.append(int(d))
	return tuple(out)


def merge_shapes(known: Shape | None, other: Shape | None) -> Shape | None:
	"""Fill unknown entries of `known` from `other`.

	Returns None when the two shapes disagree on rank or on a static dim.
	"""

	if known is None:
		return other
	if other is None:
		return known
	if len(known) != len(other):
		return None
	merged: list[Dim] = []
	for a, b in zip(known, other):
		if a is None:
			merged.append(b)
		elif b is None or a == b:
			merged.append(a)
		elif isinstance(a, int) and isinstance(b, int):
			return None
		else:
			# symbolic vs static: keep the static one
			merged.append(a if isinstance(a, int) else b)
	return tuple(merged)
