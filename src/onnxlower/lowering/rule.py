from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping

from onnxlower.ir import Attribute, AttrKind, ComputeGraph, ComputeOperator, IRValidationError
from onnxlower.source import SourceGraph, SourceNode

logger = logging.getLogger(__name__)


class MatchLevel(IntEnum):
    """How strongly a rule claims a source node. Higher wins."""

    NOT_ME = 0
    STANDARD = 1
    CUSTOM = 2


class LowerRule(abc.ABC):
    """Strategy that lowers one kind of source node into compute IR.

    Rules are stateless (or hold read-only backend data) and are shared by
    every compilation that uses the registry they live in.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abc.abstractmethod
    def is_me(self, node: SourceNode) -> MatchLevel:
        """Pure, cheap check. Return NOT_ME for kinds this rule does not own."""

    @abc.abstractmethod
    def activate(
        self, graph: ComputeGraph, node: SourceNode, source: SourceGraph
    ) -> ComputeOperator | None:
        """Add the IR for `node` to `graph` and return it.

        Return None, leaving `graph` untouched, if the node does not validate.
        Only called after `is_me` answered better than NOT_ME.
        """


@dataclass(frozen=True)
class AttrSpec:
    """A source attribute the lowered node keeps (with optional default)."""

    kind: AttrKind
    default: Attribute | None = None


@dataclass(frozen=True)
class StandardLower(LowerRule):
    """Table-driven rule for a single-output operator.

    activate():
    1. input/output counts match the node class arity
    2. every input/output name is unique in the source graph, and every input
       already has a value in the compute graph
    3. declared attributes have the expected kind; defaults fill the gaps
    4. output dtype/shape come from source declarations, refined by the node
       class' inference
    Only after all of that succeeds are output values created and the node
    inserted.
    """

    symbol: str
    op: type[ComputeOperator]
    attrs: Mapping[str, AttrSpec] = field(default_factory=dict)
    level: MatchLevel = MatchLevel.STANDARD

    @property
    def name(self) -> str:
        return f"{self.symbol}Lower"

    def is_me(self, node: SourceNode) -> MatchLevel:
        if node.kind == self.symbol:
            return self.level
        return MatchLevel.NOT_ME

    def activate(
        self, graph: ComputeGraph, node: SourceNode, source: SourceGraph
    ) -> ComputeOperator | None:
        try:
            self.op.check_arity(len(node.input_names), len(node.output_names))
        except IRValidationError as exc:
            logger.debug("%s: %s", self.name, exc)
            return None

        for name in (*node.input_names, *node.output_names):
            if not source.has_unique_name(name):
                logger.debug("%s: value name %r is not unique", self.name, name)
                return None
        if len(set(node.output_names)) != len(node.output_names):
            return None
        for name in node.input_names:
            if not graph.has_value(name):
                logger.debug("%s: input %r has no value", self.name, name)
                return None

        attrs = self.build_attrs(node)
        if attrs is None:
            return None

        inputs = [graph.get_value(name) for name in node.input_names]
        try:
            dtype, shape = self.op.infer(inputs, attrs)
        except IRValidationError as exc:
            logger.debug("%s: %s", self.name, exc)
            return None

        specs = []
        for out in node.output_names:
            declared = source.value(out)
            out_dtype = declared.dtype if declared.dtype.is_known else dtype
            out_shape = declared.shape if declared.shape is not None else shape
            graph.check_value(out, out_dtype)
            if graph.has_value(out) and graph.producer(graph.get_value(out)) is not None:
                logger.debug("%s: output %r is already produced", self.name, out)
                return None
            specs.append((out, out_dtype, out_shape))

        outputs = [graph.add_value(n, d, s) for n, d, s in specs]
        return graph.add_operator(
            self.op,
            inputs,
            outputs,
            name=node.name or None,
            attrs=attrs,
        )

    def build_attrs(self, node: SourceNode) -> dict[str, Attribute] | None:
        """Copy the declared attributes this kind keeps, filling defaults.

        Unknown attribute names are ignored; a known name with the wrong
        kind makes the node malformed.
        """

        attrs: dict[str, Attribute] = {}
        for key, spec in self.attrs.items():
            attr = node.attributes.get(key)
            if attr is None:
                if spec.default is not None:
                    attrs[key] = spec.default.copy()
                continue
            if attr.kind is not spec.kind:
                logger.debug("%s: attribute %r is %s, expected %s", self.name, key, attr.kind.value, spec.kind.value)
                return None
            attrs[key] = attr.copy()
        return attrs


__all__ = ["MatchLevel", "LowerRule", "AttrSpec", "StandardLower"]
