from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class DType:
	"""Element type of an IR value.

	`unknown` is a placeholder for values whose element type is not known at
	lowering time; the graph refines it once a producer declares one.
	"""

	name: str
	itemsize: int

	@property
	def is_known(self) -> bool:
		return self.name != "unknown"

	def __str__(self) -> str:  # pragma: no cover
		return self.name


float16 = DType("float16", 2)
float32 = DType("float32", 4)
float64 = DType("float64", 8)
int8 = DType("int8", 1)
int16 = DType("int16", 2)
int32 = DType("int32", 4)
int64 = DType("int64", 8)
uint8 = DType("uint8", 1)
bool_ = DType("bool", 1)
string = DType("string", 0)
unknown = DType("unknown", 0)

_BY_NAME: dict[str, DType] = {
	d.name: d
	for d in (float16, float32, float64, int8, int16, int32, int64, uint8, bool_, string, unknown)
}


def dtype_from_name(name: str) -> DType:
	try:
		return _BY_NAME[name]
	except KeyError:
		raise ValueError(f"unknown dtype name {name!r}") from None


def dtype_from_numpy(dt: np.dtype | type) -> DType:
	dt = np.dtype(dt)
	if dt.kind in ("U", "S", "O"):
		return string
	if dt == np.bool_:
		return bool_
	return dtype_from_name(dt.name)
