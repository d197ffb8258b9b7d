from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Mapping

from .attributes import Attribute
from .dtypes import DType
from .value import Shape

if TYPE_CHECKING:
	from .value import Value


class IRValidationError(ValueError):
	pass


OutputSpec = tuple[DType, "Shape | None"]


@dataclass(slots=True, eq=False)
class ComputeOperator:
	"""Base class for compute IR nodes.

	A node holds ordered input and output values plus named attributes. The
	number of inputs and outputs a kind accepts is fixed per class
	(`input_arity` / `output_arity`, inclusive ranges) and is checked before a
	node is inserted into a graph.
	"""

	name: str
	inputs: list[Value] = field(default_factory=list)
	outputs: list[Value] = field(default_factory=list)
	attrs: dict[str, Attribute] = field(default_factory=dict)

	input_arity: ClassVar[tuple[int, int]] = (1, 1)
	output_arity: ClassVar[tuple[int, int]] = (1, 1)

	@property
	def kind(self) -> str:
		return self.__class__.__name__

	@classmethod
	def check_arity(cls, n_inputs: int, n_outputs: int) -> None:
		lo, hi = cls.input_arity
		if not lo <= n_inputs <= hi:
			raise IRValidationError(f"{cls.__name__} expects {_arity(lo, hi)} input(s), got {n_inputs}")
		lo, hi = cls.output_arity
		if not lo <= n_outputs <= hi:
			raise IRValidationError(f"{cls.__name__} expects {_arity(lo, hi)} output(s), got {n_outputs}")

	def validate(self) -> None:
		self.check_arity(len(self.inputs), len(self.outputs))
		for key, attr in self.attrs.items():
			if not isinstance(attr, Attribute):
				raise IRValidationError(f"{self.kind}.{key} is not an Attribute")

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		"""Element type and shape of the (single) output, shape None if unknown."""
		return inputs[0].dtype, None

	def get_attr(self, key: str) -> Attribute:
		try:
			return self.attrs[key]
		except KeyError:
			raise KeyError(f"{self.kind} node {self.name!r} has no attribute {key!r}") from None

	def set_attr(self, key: str, attr: Attribute) -> None:
		if not isinstance(attr, Attribute):
			raise IRValidationError(f"{self.kind}.{key} must be an Attribute")
		self.attrs[key] = attr

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_operator(self)

	def copy(self) -> ComputeOperator:
		"""Shallow in values (same edges), deep in attributes."""
		return type(self)(
			name=self.name,
			inputs=list(self.inputs),
			outputs=list(self.outputs),
			attrs={k: a.copy() for k, a in self.attrs.items()},
		)


def _arity(lo: int, hi: int) -> str:
	return str(lo) if lo == hi else f"{lo}..{hi}"


def _same_shape(inputs: list[Value]) -> Shape | None:
	first = inputs[0].shape
	if all(v.shape == first for v in inputs[1:]):
		return first
	return None


@dataclass(slots=True, eq=False)
class Abs(ComputeOperator):
	"""Elementwise |x|."""

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_abs(self)


@dataclass(slots=True, eq=False)
class Relu(ComputeOperator):
	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_relu(self)


@dataclass(slots=True, eq=False)
class Sigmoid(ComputeOperator):
	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_sigmoid(self)


@dataclass(slots=True, eq=False)
class Softplus(ComputeOperator):
	"""Elementwise log(1 + exp(x))."""

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_softplus(self)


@dataclass(slots=True, eq=False)
class HardSigmoid(ComputeOperator):
	"""Elementwise max(0, min(1, alpha * x + beta)); attrs `alpha`, `beta`."""

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_hard_sigmoid(self)


@dataclass(slots=True, eq=False)
class Identity(ComputeOperator):
	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		return inputs[0].dtype, inputs[0].shape

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_identity(self)


@dataclass(slots=True, eq=False)
class Add(ComputeOperator):
	"""Elementwise add. Broadcast shapes are left for later inference."""

	input_arity: ClassVar[tuple[int, int]] = (2, 2)

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		a, b = inputs
		if a.dtype.is_known and b.dtype.is_known and a.dtype != b.dtype:
			raise IRValidationError(f"Add dtype mismatch: {a.dtype} != {b.dtype}")
		return a.dtype, _same_shape(inputs)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_add(self)


@dataclass(slots=True, eq=False)
class Mul(ComputeOperator):
	input_arity: ClassVar[tuple[int, int]] = (2, 2)

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		a, b = inputs
		if a.dtype.is_known and b.dtype.is_known and a.dtype != b.dtype:
			raise IRValidationError(f"Mul dtype mismatch: {a.dtype} != {b.dtype}")
		return a.dtype, _same_shape(inputs)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_mul(self)


@dataclass(slots=True, eq=False)
class MatMul(ComputeOperator):
	"""Matrix multiplication; rank-2 shapes are inferred, others left unknown."""

	input_arity: ClassVar[tuple[int, int]] = (2, 2)

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		a, b = inputs
		if a.rank != 2 or b.rank != 2:
			return a.dtype, None
		m, k1 = a.shape
		k2, n = b.shape
		if isinstance(k1, int) and isinstance(k2, int) and k1 != k2:
			raise IRValidationError(f"MatMul K mismatch: {k1} != {k2}")
		return a.dtype, (m, n)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_mat_mul(self)


@dataclass(slots=True, eq=False)
class Gemm(ComputeOperator):
	"""alpha * A' @ B' + beta * C; attrs `alpha`, `beta`, `transA`, `transB`."""

	input_arity: ClassVar[tuple[int, int]] = (2, 3)

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		a, b = inputs[0], inputs[1]
		if a.rank != 2 or b.rank != 2:
			return a.dtype, None
		m, k1 = a.shape[::-1] if _flag(attrs, "transA") else a.shape
		k2, n = b.shape[::-1] if _flag(attrs, "transB") else b.shape
		if isinstance(k1, int) and isinstance(k2, int) and k1 != k2:
			raise IRValidationError(f"Gemm K mismatch: {k1} != {k2}")
		return a.dtype, (m, n)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_gemm(self)


@dataclass(slots=True, eq=False)
class Conv(ComputeOperator):
	"""N-d convolution (X, W[, B]); spatial output shape is not inferred."""

	input_arity: ClassVar[tuple[int, int]] = (2, 3)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_conv(self)


@dataclass(slots=True, eq=False)
class Reshape(ComputeOperator):
	input_arity: ClassVar[tuple[int, int]] = (2, 2)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_reshape(self)


@dataclass(slots=True, eq=False)
class Transpose(ComputeOperator):
	"""Axis permutation; attr `perm` (defaults to reversing the axes)."""

	@classmethod
	def infer(cls, inputs: list[Value], attrs: Mapping[str, Attribute]) -> OutputSpec:
		x = inputs[0]
		if x.shape is None:
			return x.dtype, None
		perm = attrs["perm"].as_ints() if "perm" in attrs else list(reversed(range(len(x.shape))))
		if sorted(perm) != list(range(len(x.shape))):
			raise IRValidationError(f"Transpose perm {perm} does not match rank {len(x.shape)}")
		return x.dtype, tuple(x.shape[p] for p in perm)

	def accept(self, visitor: Any) -> Any:
		return visitor.visit_transpose(self)


def _flag(attrs: Mapping[str, Attribute], key: str) -> bool:
	return key in attrs and attrs[key].as_int() != 0
