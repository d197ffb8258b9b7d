from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from onnxlower.errors import PassError
from onnxlower.ir import Identity, IRValidationError

from .base import GraphPass, PassResult

if TYPE_CHECKING:
    from onnxlower.ir import ComputeGraph
    from onnxlower.source import SourceGraph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EliminateIdentity(GraphPass):
    """Removes Identity nodes, rewiring their consumers to the input."""

    name: str = "eliminate-identity"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        changed = False
        for op in graph:
            if not isinstance(op, Identity):
                continue
            src, dst = op.inputs[0], op.outputs[0]
            # graph output names are part of the interface
            if dst in graph.outputs:
                continue
            graph.remove_operator(op)
            graph.replace_uses(dst, src)
            graph.remove_value(dst)
            logger.debug("removed identity %s (%s -> %s)", op.name, src.name, dst.name)
            changed = True
        return PassResult.GRAPH_CHANGED if changed else PassResult.NO_CHANGE


@dataclass(slots=True)
class DeadValueElimination(GraphPass):
    """Drops values no node touches that are not graph I/O or initializers."""

    name: str = "dead-value-elimination"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        live: set[str] = {v.name for v in (*graph.inputs, *graph.outputs)} | set(graph.initializers)
        for op in graph:
            live.update(v.name for v in (*op.inputs, *op.outputs))
        dead = [v for name, v in graph.values.items() if name not in live]
        for v in dead:
            graph.remove_value(v)
        if dead:
            logger.debug("dropped %d dead value(s)", len(dead))
            return PassResult.GRAPH_CHANGED
        return PassResult.NO_CHANGE


@dataclass(slots=True)
class VerifyGraph(GraphPass):
    name: str = "verify"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        try:
            graph.verify()
        except IRValidationError as exc:
            raise PassError(str(exc), pass_name=self.name) from exc
        return PassResult.NO_CHANGE
