from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Sequence, TypeVar

import numpy as np

from ..errors import DuplicateValueNameError, UnknownValueError
from .attributes import Attribute
from .dtypes import DType, unknown
from .node import ComputeOperator, IRValidationError
from .value import Dim, Shape, Value, as_shape, merge_shapes

logger = logging.getLogger(__name__)

OpT = TypeVar("OpT", bound=ComputeOperator)


@dataclass(eq=False)
class ComputeGraph:
	"""The compute IR for one compiled unit.

	Ownership:
	- The graph owns every node and every value. Nodes hold references to
	  values but values never reference nodes; producer/users are derived.
	- Value names are unique within a graph (dict lookup).
	- Nodes keep insertion order; topological order is checked by `verify()`
	  rather than enforced on every insertion.
	"""

	name: str = "graph"
	nodes: list[ComputeOperator] = field(default_factory=list)
	inputs: list[Value] = field(default_factory=list)
	outputs: list[Value] = field(default_factory=list)
	initializers: dict[str, np.ndarray] = field(default_factory=dict)
	attrs: dict[str, Any] = field(default_factory=dict)
	_values: dict[str, Value] = field(default_factory=dict)
	_name_counters: dict[str, int] = field(default_factory=dict)

	def _fresh_name(self, prefix: str) -> str:
		n = self._name_counters.get(prefix, 0) + 1
		self._name_counters[prefix] = n
		return f"{prefix}{n}"

	# -- values ---------------------------------------------------------

	@property
	def values(self) -> Mapping[str, Value]:
		return MappingProxyType(self._values)

	def has_value(self, name: str) -> bool:
		return name in self._values

	def get_value(self, name: str) -> Value:
		try:
			return self._values[name]
		except KeyError:
			raise UnknownValueError(name) from None

	def check_value(self, name: str, dtype: DType) -> None:
		"""Raise DuplicateValueNameError if `add_value(name, dtype)` would."""
		existing = self._values.get(name)
		if existing is None:
			return
		if existing.dtype.is_known and dtype.is_known and existing.dtype != dtype:
			raise DuplicateValueNameError(name, existing.dtype, dtype)

	def add_value(self, name: str, dtype: DType = unknown, shape: Sequence[Dim] | None = None) -> Value:
		"""Create a value, or return the existing one of the same name.

		An existing value is reused when the dtypes agree; `unknown` agrees
		with anything and is refined in place, and so are unknown dims.
		"""

		if not name:
			raise IRValidationError("value name must be non-empty")
		self.check_value(name, dtype)
		shp = as_shape(shape)
		existing = self._values.get(name)
		if existing is None:
			v = Value(name=name, dtype=dtype, shape=shp)
			self._values[name] = v
			logger.debug("graph %s: new value %s %s %s", self.name, name, dtype, shp)
			return v
		if not existing.dtype.is_known and dtype.is_known:
			existing.dtype = dtype
		merged = merge_shapes(existing.shape, shp)
		if merged is None:
			logger.warning("value %s: shape %s conflicts with %s, keeping the first", name, shp, existing.shape)
		else:
			existing.shape = merged
		return existing

	def remove_value(self, value: Value) -> None:
		if self._values.get(value.name) is not value:
			raise UnknownValueError(value.name)
		if value in self.inputs or value in self.outputs:
			raise IRValidationError(f"value {value.name!r} is a graph input/output")
		if self.producer(value) is not None or self.users(value):
			raise IRValidationError(f"value {value.name!r} is still in use")
		del self._values[value.name]
		self.initializers.pop(value.name, None)

	def owns(self, value: Value) -> bool:
		return self._values.get(value.name) is value

	def mark_input(self, value: Value) -> None:
		self._require_owned(value)
		if value not in self.inputs:
			self.inputs.append(value)

	def mark_output(self, value: Value) -> None:
		self._require_owned(value)
		if value not in self.outputs:
			self.outputs.append(value)

	def add_initializer(self, name: str, data: np.ndarray) -> Value:
		from .dtypes import dtype_from_numpy

		data = np.asarray(data)
		v = self.add_value(name, dtype_from_numpy(data.dtype), data.shape)
		self.initializers[name] = data
		return v

	def _require_owned(self, value: Value) -> None:
		if not self.owns(value):
			raise IRValidationError(f"value {value.name!r} does not belong to graph {self.name!r}")

	# -- nodes ----------------------------------------------------------

	def add_operator(
		self,
		kind: type[OpT],
		inputs: Sequence[Value],
		outputs: Sequence[Value],
		*,
		name: str | None = None,
		attrs: Mapping[str, Attribute] | None = None,
	) -> OpT:
		"""Build a node of `kind`, validate it and append it.

		Nothing is inserted if validation fails.
		"""

		op = kind(
			name=name or "",
			inputs=list(inputs),
			outputs=list(outputs),
			attrs=dict(attrs or {}),
		)
		self.insert(op)
		# counter only advances for nodes that made it in
		if not name:
			op.name = self._fresh_name(kind.__name__.lower())
		return op

	def insert(self, op: ComputeOperator, *, index: int | None = None) -> None:
		op.validate()
		for v in (*op.inputs, *op.outputs):
			self._require_owned(v)
		for v in op.outputs:
			other = self.producer(v)
			if other is not None:
				raise IRValidationError(f"value {v.name!r} already produced by {other.name!r}")
		if index is None:
			self.nodes.append(op)
		else:
			self.nodes.insert(index, op)

	def remove_operator(self, op: ComputeOperator) -> None:
		for i, n in enumerate(self.nodes):
			if n is op:
				del self.nodes[i]
				return
		raise IRValidationError(f"node {op.name!r} is not in graph {self.name!r}")

	def replace_uses(self, old: Value, new: Value) -> int:
		"""Rewire every consumer (and graph output) of `old` to read `new`."""
		self._require_owned(new)
		count = 0
		for op in self.nodes:
			for i, v in enumerate(op.inputs):
				if v is old:
					op.inputs[i] = new
					count += 1
		for i, v in enumerate(self.outputs):
			if v is old:
				self.outputs[i] = new
				count += 1
		return count

	def producer(self, value: Value) -> ComputeOperator | None:
		for op in self.nodes:
			if any(v is value for v in op.outputs):
				return op
		return None

	def users(self, value: Value) -> list[ComputeOperator]:
		return [op for op in self.nodes if any(v is value for v in op.inputs)]

	def find(self, name: str) -> ComputeOperator | None:
		for op in self.nodes:
			if op.name == name:
				return op
		return None

	def __iter__(self) -> Iterator[ComputeOperator]:
		return iter(list(self.nodes))

	def __len__(self) -> int:
		return len(self.nodes)

	# -- whole-graph operations ----------------------------------------

	def verify(self) -> None:
		"""Check that the graph is well formed.

		- every bound value is in the value table (no dangling references)
		- every input is a graph input, an initializer, or produced earlier
		- every value has at most one producer
		"""

		available = {v.name for v in self.inputs} | set(self.initializers)
		produced: set[str] = set()
		for op in self.nodes:
			op.validate()
			for v in (*op.inputs, *op.outputs):
				if not self.owns(v):
					raise IRValidationError(f"{op.kind} {op.name!r} refers to dangling value {v.name!r}")
			for v in op.inputs:
				if v.name not in available:
					raise IRValidationError(
						f"{op.kind} {op.name!r} reads {v.name!r} before it is produced"
					)
			for v in op.outputs:
				if v.name in produced or v.name in available:
					raise IRValidationError(f"value {v.name!r} has more than one producer")
				produced.add(v.name)
				available.add(v.name)
		for v in self.outputs:
			if v.name not in available:
				raise IRValidationError(f"graph output {v.name!r} is never produced")

	def copy(self) -> ComputeGraph:
		g = ComputeGraph(name=self.name, attrs=dict(self.attrs))
		g._name_counters = dict(self._name_counters)
		for v in self._values.values():
			g._values[v.name] = Value(name=v.name, dtype=v.dtype, shape=v.shape)
		g.inputs = [g._values[v.name] for v in self.inputs]
		g.outputs = [g._values[v.name] for v in self.outputs]
		g.initializers = {k: a.copy() for k, a in self.initializers.items()}
		for op in self.nodes:
			c = op.copy()
			c.inputs = [g._values[v.name] for v in op.inputs]
			c.outputs = [g._values[v.name] for v in op.outputs]
			g.nodes.append(c)
		return g

	def summary(self) -> str:
		lines: list[str] = [
			f"ComputeGraph(name={self.name!r}, nodes={len(self.nodes)}, values={len(self._values)})"
		]
		for op in self.nodes:
			ins = ", ".join(f"{v.name}:{_fmt_shape(v.shape)}" for v in op.inputs)
			outs = ", ".join(f"{v.name}:{_fmt_shape(v.shape)}" for v in op.outputs)
			attrs = ""
			if op.attrs:
				attrs = " {" + ", ".join(f"{k}={a.kind.value}" for k, a in sorted(op.attrs.items())) + "}"
			lines.append(f"- {op.name}: {op.kind}({ins}) -> {outs}{attrs}")
		return "\n".join(lines)


def _fmt_shape(shape: Shape | None) -> str:
	if shape is None:
		return "?"
	return "(" + ",".join("?" if d is None else str(d) for d in shape) + ")"
