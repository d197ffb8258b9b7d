"""Reference int8 accelerator target.

Shows the two backend extension points:

- `Int8ReluLower` claims ``Relu``/``LeakyRelu`` with a CUSTOM match level, so
  it wins over the standard Relu rule without that rule knowing about it.
- `UpdateCtablePass` and `LegalizePass` are generic visitor walks; all of the
  per-kind behaviour lives in their visitors.

Quantization thresholds come from a calibration table keyed by value name,
either passed in or read from ``source.metadata["ctable"]``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

import numpy as np

from onnxlower.errors import PassError
from onnxlower.ir import Attribute, AttrKind, ComputeOperator, Relu
from onnxlower.lowering.rule import AttrSpec, MatchLevel, StandardLower
from onnxlower.passes import ComputeVisitor, GraphPass, PassResult, VisitorPass

from .base import Target, register_target

if TYPE_CHECKING:
    from onnxlower.ir import ComputeGraph
    from onnxlower.ir import node as ops
    from onnxlower.lowering import LowerRegistry
    from onnxlower.passes import PassManager
    from onnxlower.source import SourceGraph, SourceNode

logger = logging.getLogger(__name__)

CTABLE_KEY = "ctable"
INT8_MAX = 127
MAX_RIGHT_SHIFT = 31


@dataclass
class CalibrationTable:
    """Per-value activation thresholds (absolute max) as float32."""

    thresholds: dict[str, np.float32] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> CalibrationTable:
        return cls({k: np.float32(v) for k, v in data.items()})

    @classmethod
    def from_source(cls, source: SourceGraph) -> CalibrationTable:
        data = source.metadata.get(CTABLE_KEY) or {}
        if not isinstance(data, Mapping):
            raise PassError(f"source metadata {CTABLE_KEY!r} must be a mapping of value name to threshold")
        return cls.from_dict(data)

    def threshold(self, name: str) -> float | None:
        t = self.thresholds.get(name)
        return None if t is None else float(t)

    def __len__(self) -> int:
        return len(self.thresholds)


def quantize_multiplier(ratio: float) -> tuple[int, int]:
    """Express `ratio` as multiplier / 2**right_shift with |multiplier| <= 127."""

    if ratio <= 0:
        raise ValueError(f"threshold ratio must be positive, got {ratio}")
    shift = int(np.floor(np.log2(INT8_MAX / ratio)))
    shift = int(np.clip(shift, 0, MAX_RIGHT_SHIFT))
    multiplier = int(np.clip(np.rint(ratio * (1 << shift)), 1, INT8_MAX))
    return multiplier, shift


@dataclass(frozen=True)
class Int8ReluLower(StandardLower):
    """Relu and LeakyRelu both become Relu with a `negative_slope`."""

    symbol: str = "Relu"
    op: type[ComputeOperator] = Relu
    attrs: Mapping[str, AttrSpec] = field(
        default_factory=lambda: {"alpha": AttrSpec(AttrKind.FLOAT, Attribute.float_(0.01))}
    )
    level: MatchLevel = MatchLevel.CUSTOM

    @property
    def name(self) -> str:
        return "Int8ReluLower"

    def is_me(self, node: SourceNode) -> MatchLevel:
        if node.kind in ("Relu", "LeakyRelu"):
            return self.level
        return MatchLevel.NOT_ME

    def build_attrs(self, node: SourceNode) -> dict[str, Attribute] | None:
        attrs = super().build_attrs(node)
        if attrs is None:
            return None
        alpha = attrs.pop("alpha")
        slope = alpha.as_float() if node.kind == "LeakyRelu" else 0.0
        attrs["negative_slope"] = Attribute.float_(slope)
        return attrs


def _set_if_changed(node: ComputeOperator, key: str, attr: Attribute) -> bool:
    if node.attrs.get(key) == attr:
        return False
    node.set_attr(key, attr)
    return True


class UpdateCtableVisitor(ComputeVisitor):
    """Writes quantization parameters onto nodes from a calibration table.

    Generic nodes get `threshold_x` (one per input), `threshold_y`,
    `multiplier` and `right_shift`. Relu keeps its input scale, so it only
    gets thresholds.
    """

    def __init__(self, table: CalibrationTable) -> None:
        self.table = table
        self.updated: list[str] = []

    def _threshold(self, node: ComputeOperator, name: str) -> float | None:
        t = self.table.threshold(name)
        if t is not None and t < 0:
            raise PassError(f"negative threshold {t} for value {name!r}", node=node.name)
        return t

    def _thresholds(self, node: ComputeOperator) -> tuple[list[float], float] | None:
        xs = [self._threshold(node, v.name) for v in node.inputs]
        y = self._threshold(node, node.outputs[0].name)
        if y is None or any(x is None for x in xs):
            return None
        return [float(x) for x in xs], y

    def visit_operator(self, node: ComputeOperator) -> bool:
        t = self._thresholds(node)
        if t is None:
            return False
        xs, y = t
        # a value that is always zero has no scale to requantize to
        if y == 0 or xs[0] == 0:
            logger.warning("%s: zero threshold, leaving node unquantized", node.name)
            return False
        multiplier, shift = quantize_multiplier(xs[0] / y)
        changed = _set_if_changed(node, "threshold_x", Attribute.floats(xs))
        changed |= _set_if_changed(node, "threshold_y", Attribute.float_(y))
        changed |= _set_if_changed(node, "multiplier", Attribute.int_(multiplier))
        changed |= _set_if_changed(node, "right_shift", Attribute.int_(shift))
        if changed:
            self.updated.append(node.name)
        return changed

    def visit_relu(self, node: ops.Relu) -> bool:
        x = self._threshold(node, node.inputs[0].name)
        if x is None:
            return False
        changed = _set_if_changed(node, "threshold_x", Attribute.floats([x]))
        changed |= _set_if_changed(node, "threshold_y", Attribute.float_(x))
        if changed:
            self.updated.append(node.name)
        return changed


@dataclass
class UpdateCtablePass(GraphPass):
    table: CalibrationTable | None = None
    name: str = "update-ctable"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        table = self.table if self.table is not None else CalibrationTable.from_source(source)
        if not len(table):
            logger.warning("%s: empty calibration table, nothing to update", self.name)
            return PassResult.NO_CHANGE
        visitor = UpdateCtableVisitor(table)
        result = VisitorPass(visitor, name=self.name).run(source, graph)
        logger.info("%s: updated %d node(s)", self.name, len(visitor.updated))
        return result


class LegalizeVisitor(ComputeVisitor):
    """Rejects node kinds the int8 target cannot execute."""

    def visit_softplus(self, node: ops.Softplus) -> bool:
        raise PassError(f"Softplus {node.name!r} cannot be legalized for int8", node=node.name)


@dataclass
class LegalizePass(VisitorPass):
    visitor: ComputeVisitor = field(default_factory=LegalizeVisitor)
    name: str = "int8-legalize"


@register_target("int8")
class Int8Target(Target):
    def __init__(self, table: CalibrationTable | None = None) -> None:
        self.table = table

    def register_lowers(self, registry: LowerRegistry) -> None:
        registry.register(Int8ReluLower())

    def add_passes(self, manager: PassManager) -> None:
        manager.add(LegalizePass())
        manager.add(UpdateCtablePass(self.table))
